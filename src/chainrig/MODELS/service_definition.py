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
Models for service definitions and the chain links they declare.
"""
from typing import Annotated, Dict, List, Literal, Optional, Union

from pydantic import BaseModel, Field

from .container import Link

CHAIN_PLACEHOLDER = "$chain"


class PlaceholderLink(BaseModel):
    """
    Link to whichever chain is named when the service starts.
    """
    kind: Literal["placeholder"] = "placeholder"
    alias: str


class LiteralLink(BaseModel):
    """
    Link to a chain named in the definition itself.
    """
    kind: Literal["literal"] = "literal"
    name: str
    alias: str


ChainLink = Annotated[Union[PlaceholderLink, LiteralLink], Field(discriminator="kind")]


class ServiceDefinition(BaseModel):
    """
    The definition of a single auxiliary service.
    """
    name: str
    image: str
    chain: Optional[ChainLink] = None
    data_container: bool = False
    dependencies: List[str] = []

    # Execution
    command: List[str] = []
    environment: Dict[str, str] = {}
    ports: List[str] = []


class StartResult(BaseModel):
    """
    Outcome of starting a service together with its dependencies.
    """
    started: List[str] = []
    links_by_service: Dict[str, List[Link]] = {}

    @property
    def links(self) -> List[Link]:
        """
        Links of every service in start order.
        """
        return [link for name in self.started for link in self.links_by_service.get(name, [])]

    def links_for(self, name: str) -> List[Link]:
        return list(self.links_by_service.get(name, []))
