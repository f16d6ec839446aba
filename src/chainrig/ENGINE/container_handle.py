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
Handle over a single named container: state queries and passthrough operations.
"""
from typing import Any, Dict, Iterator, List

from tenacity import RetryError, retry, retry_if_result, stop_after_delay, wait_fixed

from ..MODELS.container import ContainerType, Link, container_name
from ..errors import EngineError
from .container_engine import ContainerEngine


class ContainerHandle:
    """
    Observes and operates one container; never owns it.
    """
    def __init__(self, engine: ContainerEngine, ctype: ContainerType, name: str, prefix: str = "chainrig"):
        """
        :param engine: The container engine.
        :param ctype: Role of the container.
        :param name: Chain or service name (not the engine name).
        :param prefix: Engine name prefix.
        """
        self.engine = engine
        self.ctype = ContainerType(ctype)
        self.name = name
        self.container_name = container_name(prefix, self.ctype, name)

    def __repr__(self) -> str:
        return f"ContainerHandle({self.container_name!r})"

    def exists(self) -> bool:
        return self.engine.exists(self.container_name)

    def running(self) -> bool:
        return self.engine.running(self.container_name)

    def state(self) -> str:
        """
        One of ``absent``, ``created`` (never started), ``running`` or ``stopped``.
        """
        if not self.exists():
            return "absent"
        if self.running():
            return "running"
        status = (self.inspect().get("State") or {}).get("Status")
        return "created" if status == "created" else "stopped"

    def exec(self, args: List[str]):
        return self.engine.exec(self.container_name, args)

    def logs(self, follow: bool = False, tail: str = "all") -> Iterator[bytes]:
        return self.engine.logs(self.container_name, follow=follow, tail=tail)

    def inspect(self) -> Dict[str, Any]:
        return self.engine.inspect(self.container_name)

    def links(self) -> List[Link]:
        """
        Links the container was created with, read back from the engine.
        """
        host_config = self.inspect().get("HostConfig") or {}
        return [Link.parse(raw) for raw in host_config.get("Links") or []]

    def put_files(self, dest_dir: str, files: Dict[str, bytes]) -> None:
        self.engine.put_files(self.container_name, dest_dir, files)

    def wait_running(self, timeout: float = 15.0, interval: float = 0.25) -> None:
        """
        Blocks until the container reports running.

        :raises EngineError: If it is not running within ``timeout`` seconds.
        """
        @retry(
            retry=retry_if_result(lambda is_running: not is_running),
            stop=stop_after_delay(timeout),
            wait=wait_fixed(interval),
        )
        def poll() -> bool:
            return self.running()

        try:
            poll()
        except RetryError as e:
            raise EngineError(
                f"Container {self.container_name} did not start within {timeout}s"
            ) from e
