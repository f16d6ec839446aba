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
Container engine boundary: the primitives the orchestration core consumes,
and their implementation on top of the Docker daemon.
"""
import io
import posixpath
import tarfile
import time
from abc import ABC, abstractmethod
from typing import Any, Dict, Iterator, List, Optional, Tuple

import docker
from docker.errors import DockerException, ImageNotFound
from docker.errors import NotFound as DockerNotFound
from requests.exceptions import RequestException

from ..MODELS.container import ContainerSpec
from ..errors import EngineError, NotFound
from ..UTILS.logger import logger

# Daemon rejections and transport failures alike surface as EngineError
ENGINE_ERRORS = (DockerException, RequestException)


class ContainerEngine(ABC):
    """
    Operations on named containers. Implementations own no orchestration logic.
    """

    @abstractmethod
    def exists(self, name: str) -> bool:
        """Whether a container with this name exists, running or not."""

    @abstractmethod
    def running(self, name: str) -> bool:
        """Whether the container exists and is running."""

    @abstractmethod
    def create(self, spec: ContainerSpec) -> None:
        """Creates a container without starting it."""

    @abstractmethod
    def start(self, name: str) -> None:
        pass

    @abstractmethod
    def stop(self, name: str, timeout: int) -> None:
        """Stops a container, killing it after ``timeout`` seconds."""

    @abstractmethod
    def kill(self, name: str) -> None:
        pass

    @abstractmethod
    def remove(self, name: str, force: bool = False, volumes: bool = False) -> None:
        pass

    @abstractmethod
    def remove_volume(self, volume: str) -> None:
        pass

    @abstractmethod
    def exec(self, name: str, args: List[str]) -> Tuple[int, bytes]:
        """Runs ``args`` in a running container; returns exit code and combined output."""

    @abstractmethod
    def logs(self, name: str, follow: bool = False, tail: str = "all") -> Iterator[bytes]:
        pass

    @abstractmethod
    def inspect(self, name: str) -> Dict[str, Any]:
        """Low-level metadata in the engine's own layout."""

    @abstractmethod
    def put_files(self, name: str, dest_dir: str, files: Dict[str, bytes]) -> None:
        """Writes ``files`` (relative name -> content) under ``dest_dir`` in a container."""

    @abstractmethod
    def list_names(self, prefix: str) -> List[str]:
        """Names of all containers starting with ``prefix``."""


class DockerEngine(ContainerEngine):
    """
    Container engine backed by the Docker daemon through the docker SDK.
    """

    def __init__(self, client: Optional[docker.DockerClient] = None):
        """
        :param client: An existing client. Defaults to ``docker.from_env()``.
        """
        if client is None:
            try:
                client = docker.from_env()
            except DockerException as e:
                raise EngineError(f"Cannot connect to Docker: {e}") from e
        self.client = client

    def _get(self, name: str):
        try:
            return self.client.containers.get(name)
        except DockerNotFound as e:
            raise NotFound(f"Container {name} does not exist") from e
        except ENGINE_ERRORS as e:
            raise EngineError(f"Failed to look up container {name}: {e}") from e

    def exists(self, name: str) -> bool:
        try:
            self._get(name)
        except NotFound:
            return False
        return True

    def running(self, name: str) -> bool:
        try:
            return self._get(name).status == "running"
        except NotFound:
            return False

    def create(self, spec: ContainerSpec) -> None:
        kwargs: Dict[str, Any] = {
            "image": spec.image,
            "name": spec.name,
            "detach": True,
            "environment": spec.environment,
            "labels": spec.labels,
            "publish_all_ports": spec.publish_all_ports,
        }
        if spec.command:
            kwargs["command"] = spec.command
        if spec.ports:
            kwargs["ports"] = {port: None for port in spec.ports}
        if spec.volumes_from:
            kwargs["volumes_from"] = spec.volumes_from
        if spec.volume:
            self._ensure_volume(spec.volume.volume)
            kwargs["volumes"] = {
                spec.volume.volume: {
                    "bind": spec.volume.target,
                    "mode": "ro" if spec.volume.read_only else "rw",
                }
            }
        if spec.links:
            kwargs["links"] = {link.container: link.alias for link in spec.links}

        self._ensure_image(spec.image)
        try:
            self.client.containers.create(**kwargs)
        except ENGINE_ERRORS as e:
            raise EngineError(f"Failed to create container {spec.name}: {e}") from e
        logger.debug("container created", container=spec.name, image=spec.image)

    def _ensure_image(self, image: str):
        try:
            self.client.images.get(image)
        except ImageNotFound:
            logger.info("pulling image", image=image)
            try:
                self.client.images.pull(image)
            except ENGINE_ERRORS as e:
                raise EngineError(f"Failed to pull image {image}: {e}") from e
        except ENGINE_ERRORS as e:
            raise EngineError(f"Failed to look up image {image}: {e}") from e

    def _ensure_volume(self, volume: str):
        try:
            self.client.volumes.get(volume)
        except DockerNotFound:
            try:
                self.client.volumes.create(name=volume)
            except ENGINE_ERRORS as e:
                raise EngineError(f"Failed to create volume {volume}: {e}") from e
        except ENGINE_ERRORS as e:
            raise EngineError(f"Failed to look up volume {volume}: {e}") from e

    def start(self, name: str) -> None:
        container = self._get(name)
        try:
            container.start()
        except ENGINE_ERRORS as e:
            raise EngineError(f"Failed to start container {name}: {e}") from e

    def stop(self, name: str, timeout: int) -> None:
        container = self._get(name)
        try:
            container.stop(timeout=timeout)
        except ENGINE_ERRORS as e:
            raise EngineError(f"Failed to stop container {name}: {e}") from e

    def kill(self, name: str) -> None:
        container = self._get(name)
        if container.status != "running":
            return
        try:
            container.kill()
        except ENGINE_ERRORS as e:
            raise EngineError(f"Failed to kill container {name}: {e}") from e

    def remove(self, name: str, force: bool = False, volumes: bool = False) -> None:
        container = self._get(name)
        try:
            container.remove(force=force, v=volumes)
        except ENGINE_ERRORS as e:
            raise EngineError(f"Failed to remove container {name}: {e}") from e

    def remove_volume(self, volume: str) -> None:
        try:
            self.client.volumes.get(volume).remove(force=True)
        except DockerNotFound as e:
            raise NotFound(f"Volume {volume} does not exist") from e
        except ENGINE_ERRORS as e:
            raise EngineError(f"Failed to remove volume {volume}: {e}") from e

    def exec(self, name: str, args: List[str]) -> Tuple[int, bytes]:
        container = self._get(name)
        try:
            result = container.exec_run(args, stdout=True, stderr=True)
        except ENGINE_ERRORS as e:
            raise EngineError(f"Failed to exec in container {name}: {e}") from e
        return result.exit_code, result.output or b""

    def logs(self, name: str, follow: bool = False, tail: str = "all") -> Iterator[bytes]:
        container = self._get(name)
        tail_arg = tail if tail == "all" else int(tail)
        try:
            if follow:
                yield from container.logs(stream=True, follow=True, tail=tail_arg)
            else:
                yield container.logs(tail=tail_arg)
        except ENGINE_ERRORS as e:
            raise EngineError(f"Failed to read logs of {name}: {e}") from e

    def inspect(self, name: str) -> Dict[str, Any]:
        return self._get(name).attrs

    def put_files(self, name: str, dest_dir: str, files: Dict[str, bytes]) -> None:
        container = self._get(name)
        archive = _build_archive(dest_dir, files)
        try:
            container.put_archive("/", archive)
        except ENGINE_ERRORS as e:
            raise EngineError(f"Failed to copy files into {name}: {e}") from e

    def list_names(self, prefix: str) -> List[str]:
        try:
            containers = self.client.containers.list(all=True, filters={"name": prefix})
        except ENGINE_ERRORS as e:
            raise EngineError(f"Failed to list containers: {e}") from e
        return sorted(c.name for c in containers if c.name.startswith(prefix))


def _build_archive(dest_dir: str, files: Dict[str, bytes]) -> bytes:
    """
    Packs files into an uncompressed tar rooted at ``/``, including parent directories.
    """
    buf = io.BytesIO()
    now = int(time.time())
    with tarfile.open(fileobj=buf, mode="w") as tar:
        seen_dirs = set()
        for rel_name, data in files.items():
            path = posixpath.join(dest_dir, rel_name).lstrip("/")
            parent = posixpath.dirname(path)
            parts = parent.split("/") if parent else []
            for i in range(1, len(parts) + 1):
                d = "/".join(parts[:i])
                if d in seen_dirs:
                    continue
                seen_dirs.add(d)
                dir_info = tarfile.TarInfo(name=d)
                dir_info.type = tarfile.DIRTYPE
                dir_info.mode = 0o755
                dir_info.mtime = now
                tar.addfile(dir_info)

            info = tarfile.TarInfo(name=path)
            info.size = len(data)
            info.mode = 0o644
            info.mtime = now
            tar.addfile(info, io.BytesIO(data))
    return buf.getvalue()
