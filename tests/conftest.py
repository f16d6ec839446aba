# Copyright 2024 Michael Maillet, Damien Davison, Sacha Davison
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.

"""
Shared fixtures, including an in-memory container engine.
"""
import posixpath
from typing import Dict, List, Set

import pytest

from chainrig.ENGINE.container_engine import ContainerEngine
from chainrig.MANAGERS.chain_orchestrator import ChainOrchestrator
from chainrig.MODELS.container import ContainerSpec
from chainrig.UTILS.settings import Settings
from chainrig.errors import EngineError, NotFound


class FakeContainer:
    """A container tracked by FakeEngine."""

    def __init__(self, spec: ContainerSpec, mounts: List[tuple]):
        self.spec = spec
        self.status = "created"
        self.mounts = mounts  # (volume, target)
        self.files: Dict[str, bytes] = {}
        self.log_lines: List[bytes] = []


class FakeEngine(ContainerEngine):
    """
    Engine double keeping containers, volumes and files in memory.

    Supports ``cat``, ``ls`` and ``true`` inside containers; any other
    command fails with exit code 127. Link targets are not validated.
    """

    def __init__(self):
        self.containers: Dict[str, FakeContainer] = {}
        self.volumes: Dict[str, Dict[str, bytes]] = {}
        self.fail_start: Set[str] = set()
        self.calls: List[tuple] = []

    def _get(self, name: str) -> FakeContainer:
        if name not in self.containers:
            raise NotFound(f"Container {name} does not exist")
        return self.containers[name]

    def exists(self, name):
        return name in self.containers

    def running(self, name):
        return name in self.containers and self.containers[name].status == "running"

    def create(self, spec):
        self.calls.append(("create", spec.name))
        if spec.name in self.containers:
            raise EngineError(f"Conflict: {spec.name} already in use")
        mounts = []
        if spec.volume:
            self.volumes.setdefault(spec.volume.volume, {})
            mounts.append((spec.volume.volume, spec.volume.target))
        for source in spec.volumes_from:
            mounts.extend(self._get(source).mounts)
        self.containers[spec.name] = FakeContainer(spec, mounts)

    def start(self, name):
        self.calls.append(("start", name))
        container = self._get(name)
        if name in self.fail_start:
            raise EngineError(f"Failed to start container {name}")
        container.status = "running"
        container.log_lines.append(f"{name} started\n".encode())

    def stop(self, name, timeout):
        self.calls.append(("stop", name, timeout))
        self._get(name).status = "exited"

    def kill(self, name):
        self.calls.append(("kill", name))
        self._get(name).status = "exited"

    def remove(self, name, force=False, volumes=False):
        self.calls.append(("remove", name))
        container = self._get(name)
        if container.status == "running" and not force:
            raise EngineError(f"Cannot remove running container {name}")
        del self.containers[name]

    def remove_volume(self, volume):
        if volume not in self.volumes:
            raise NotFound(f"Volume {volume} does not exist")
        del self.volumes[volume]

    def _storage(self, container: FakeContainer, path: str) -> Dict[str, bytes]:
        for volume, target in container.mounts:
            if path == target or path.startswith(target.rstrip("/") + "/"):
                return self.volumes[volume]
        return container.files

    def _visible(self, container: FakeContainer) -> Dict[str, bytes]:
        files = dict(container.files)
        for volume, _ in container.mounts:
            files.update(self.volumes[volume])
        return files

    def exec(self, name, args):
        container = self._get(name)
        if container.status != "running":
            raise EngineError(f"Container {name} is not running")
        self.calls.append(("exec", name, tuple(args)))
        files = self._visible(container)
        if args == ["true"]:
            return 0, b""
        if len(args) == 2 and args[0] == "cat":
            if args[1] in files:
                return 0, files[args[1]]
            return 1, f"cat: {args[1]}: No such file or directory\n".encode()
        if len(args) == 2 and args[0] == "ls":
            prefix = args[1].rstrip("/") + "/"
            entries = sorted({p[len(prefix):].split("/")[0] for p in files if p.startswith(prefix)})
            if not entries:
                return 1, f"ls: {args[1]}: No such file or directory\n".encode()
            return 0, ("\n".join(entries) + "\n").encode()
        return 127, f"exec: {args[0]}: executable file not found in $PATH\n".encode()

    def logs(self, name, follow=False, tail="all"):
        lines = self._get(name).log_lines
        if tail != "all":
            lines = lines[-int(tail):] if int(tail) else []
        yield b"".join(lines)

    def inspect(self, name):
        container = self._get(name)
        return {
            "Name": "/" + name,
            "State": {"Status": container.status, "Running": container.status == "running"},
            "Config": {
                "Image": container.spec.image,
                "Labels": dict(container.spec.labels),
                "Env": [f"{k}={v}" for k, v in container.spec.environment.items()],
            },
            "HostConfig": {
                "Links": [link.render(name) for link in container.spec.links] or None,
                "VolumesFrom": list(container.spec.volumes_from),
                "PublishAllPorts": container.spec.publish_all_ports,
            },
            "Mounts": [{"Name": v, "Destination": t} for v, t in container.mounts],
        }

    def put_files(self, name, dest_dir, files):
        container = self._get(name)
        for rel_name, data in files.items():
            path = posixpath.join(dest_dir, rel_name)
            self._storage(container, path)[path] = data

    def list_names(self, prefix):
        return sorted(n for n in self.containers if n.startswith(prefix))


@pytest.fixture
def settings(tmp_path):
    return Settings(home=tmp_path / "home", start_timeout=1.0, stop_timeout=1)


@pytest.fixture
def engine():
    return FakeEngine()


@pytest.fixture
def orchestrator(settings, engine):
    return ChainOrchestrator(settings, engine)


@pytest.fixture
def write_service(settings):
    """Writes a TOML service definition into the services directory."""
    def _write(name: str, content: str):
        settings.services_path.mkdir(parents=True, exist_ok=True)
        path = settings.services_path / f"{name}.toml"
        path.write_text(content)
        return path
    return _write
