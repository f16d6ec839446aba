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
Models describing engine containers, their naming and the links between them.
"""
from enum import Enum
from typing import Dict, List, Optional

from pydantic import BaseModel


class ContainerType(str, Enum):
    """
    Role a container plays; part of its engine name.
    """
    CHAIN = "chain"
    SERVICE = "service"
    DATA = "data"


def container_name(prefix: str, ctype: ContainerType, name: str) -> str:
    """
    Builds the engine name of a container, e.g. ``chainrig_chain_mychain``.
    """
    return f"{prefix}_{ContainerType(ctype).value}_{name}"


class VolumeMount(BaseModel):
    """
    A named engine volume mounted into a container.
    """
    volume: str
    target: str
    read_only: bool = False


class Link(BaseModel):
    """
    An engine-level link: ``container`` becomes reachable as ``alias``
    inside the container the link is applied to.
    """
    container: str
    alias: str

    def render(self, dependent: str) -> str:
        """
        Formats the link the way the engine reports it in inspect data.

        :param dependent: Engine name of the container holding the link.
        """
        return f"/{self.container}:/{dependent}/{self.alias}"

    @classmethod
    def parse(cls, raw: str) -> "Link":
        """
        Parses ``/target:/dependent/alias`` as found in ``HostConfig.Links``.
        """
        target, _, path = raw.partition(":")
        alias = path.rstrip("/").rsplit("/", 1)[-1] if path else target.lstrip("/")
        return cls(container=target.lstrip("/"), alias=alias)


class ContainerSpec(BaseModel):
    """
    Everything the engine needs to create a container.
    """
    name: str
    image: str
    command: List[str] = []
    environment: Dict[str, str] = {}
    labels: Dict[str, str] = {}
    ports: List[str] = []
    volumes_from: List[str] = []
    volume: Optional[VolumeMount] = None
    links: List[Link] = []
    publish_all_ports: bool = False
