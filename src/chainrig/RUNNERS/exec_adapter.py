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
Running commands inside containers, and log and metadata passthrough.
"""
import json
import sys
from typing import Any, Dict, List, Optional, TextIO

from ..ENGINE.container_engine import ContainerEngine
from ..ENGINE.container_handle import ContainerHandle
from ..MODELS.container import ContainerType
from ..UTILS.settings import Settings
from ..errors import EngineError, ExecFailed, NotFound

CHAIN_FILES = {
    "config": "config.toml",
    "genesis": "genesis.json",
}


class ExecAdapter:
    """
    Executes commands in running containers and exposes diagnostics.
    """
    def __init__(self, engine: ContainerEngine, settings: Settings):
        self.engine = engine
        self.settings = settings

    def handle(self, ctype: ContainerType, name: str) -> ContainerHandle:
        return ContainerHandle(self.engine, ctype, name, self.settings.name_prefix)

    def exec(self, handle: ContainerHandle, args: List[str]) -> str:
        """
        Runs ``args`` in the container and returns its combined stdout and stderr.

        :raises ExecFailed: If the container is not running or the command exits non-zero.
        """
        if not handle.running():
            raise ExecFailed(f"Container {handle.container_name} is not running")
        try:
            exit_code, output = handle.exec(args)
        except EngineError as e:
            raise ExecFailed(str(e)) from e

        text = output.decode("utf-8", errors="replace")
        if exit_code != 0:
            raise ExecFailed(
                f"Command {' '.join(args)!r} in {handle.container_name} exited with {exit_code}",
                exit_code=exit_code,
                output=text,
            )
        return text

    def exec_chain(self, name: str, args: List[str]) -> str:
        return self.exec(self.handle(ContainerType.CHAIN, name), args)

    def exec_service(self, name: str, args: List[str]) -> str:
        return self.exec(self.handle(ContainerType.SERVICE, name), args)

    def logs(self, handle: ContainerHandle, follow: bool = False, tail: str = "all",
             out: Optional[TextIO] = None) -> None:
        """
        Writes container logs to ``out``.

        With ``follow`` the call streams until the container stops; otherwise
        it writes the requested history and returns.
        """
        if not handle.exists():
            raise NotFound(f"Container {handle.container_name} does not exist")
        out = out or sys.stdout
        for chunk in handle.logs(follow=follow, tail=tail):
            out.write(chunk.decode("utf-8", errors="replace"))
        out.flush()

    def inspect(self, handle: ContainerHandle, fields: Optional[List[str]] = None,
                out: Optional[TextIO] = None) -> Dict[str, Any]:
        """
        Prints selected metadata about a container.

        :param handle: The container.
        :param fields: ``name``, ``state``, ``mounts``, ``links``, ``image``,
            ``all``, or a dotted path into the engine's inspect data such as
            ``Config.Env``. Defaults to ``all``.
        :param out: Stream to print to; defaults to stdout.
        :return: The selected values keyed by field.
        :raises NotFound: If the container or a field does not exist.
        """
        if not handle.exists():
            raise NotFound(f"Container {handle.container_name} does not exist")
        attrs = handle.inspect()
        out = out or sys.stdout

        selected: Dict[str, Any] = {}
        for field in fields or ["all"]:
            selected[field] = self._select(handle, attrs, field)

        for field, value in selected.items():
            if field == "all":
                print(json.dumps(value, indent=2, default=str), file=out)
            elif isinstance(value, (list, tuple)):
                print(f"{field}: {' '.join(str(v) for v in value)}", file=out)
            else:
                print(f"{field}: {value}", file=out)
        return selected

    def _select(self, handle: ContainerHandle, attrs: Dict[str, Any], field: str) -> Any:
        key = field.lower()
        if key == "all":
            return attrs
        if key == "name":
            return (attrs.get("Name") or handle.container_name).lstrip("/")
        if key == "state":
            return (attrs.get("State") or {}).get("Status", handle.state())
        if key == "mounts":
            return [m.get("Destination") for m in attrs.get("Mounts") or []]
        if key == "links":
            return list((attrs.get("HostConfig") or {}).get("Links") or [])
        if key == "image":
            return (attrs.get("Config") or {}).get("Image")

        value: Any = attrs
        for part in field.split("."):
            if not isinstance(value, dict) or part not in value:
                raise NotFound(f"No field {field} in {handle.container_name}")
            value = value[part]
        return value

    def cat_chain(self, name: str, kind: str) -> str:
        """
        Returns the contents of a chain's ``config`` or ``genesis`` file.
        """
        if kind not in CHAIN_FILES:
            raise NotFound(f"Unknown chain file {kind}, expected one of {', '.join(CHAIN_FILES)}")
        path = f"{self.settings.chain_dir(name)}/{CHAIN_FILES[kind]}"
        return self.exec_chain(name, ["cat", path])
