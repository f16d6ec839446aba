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
Wiring of the orchestration components behind a single entry point.
"""
from typing import List, Optional

from ..ENGINE.container_engine import ContainerEngine, DockerEngine
from ..ENGINE.container_handle import ContainerHandle
from ..MODELS.chain import SIMPLECHAIN, Chain
from ..MODELS.container import ContainerType
from ..MODELS.service_definition import StartResult
from ..PARSERS.definition_parser import DefinitionStore
from ..RUNNERS.dependency_walker import DependencyWalker
from ..RUNNERS.exec_adapter import ExecAdapter
from ..RUNNERS.link_resolver import LinkResolver
from ..UTILS.settings import Settings, load_settings
from .chain_lifecycle import ChainLifecycle
from .config_materializer import ConfigMaterializer
from .keys_client import KeysClient
from .service_manager import ServiceManager
from .volume_manager import VolumeManager


class ChainOrchestrator:
    """
    Builds and holds every component needed to run chains and services.
    """
    def __init__(self, settings: Optional[Settings] = None, engine: Optional[ContainerEngine] = None):
        """
        Initializes the orchestrator.

        :param settings: Settings; loaded from the environment when omitted.
        :param engine: Container engine; a Docker engine when omitted.
        """
        self.settings = settings or load_settings()
        self.engine = engine or DockerEngine()

        self.definitions = DefinitionStore(self.settings)
        self.volumes = VolumeManager(self.engine, self.settings)
        self.resolver = LinkResolver(self.handle, strict_literal_links=self.settings.strict_literal_links)
        self.services = ServiceManager(self.engine, self.settings, self.resolver, self.volumes)
        self.walker = DependencyWalker(self.definitions, self.services,
                                       max_depth=self.settings.max_dependency_depth)
        self.diagnostics = ExecAdapter(self.engine, self.settings)
        self.keys = KeysClient(self.walker, self.diagnostics, self.settings)
        self.materializer = ConfigMaterializer(self.settings, keys=self.keys)
        self.chains = ChainLifecycle(self.engine, self.settings, self.volumes,
                                     self.materializer, self.definitions)

    def handle(self, ctype: ContainerType, name: str) -> ContainerHandle:
        return ContainerHandle(self.engine, ctype, name, self.settings.name_prefix)

    def create_chain(self, name: str, chain_type: str = SIMPLECHAIN.name,
                     init_dir: Optional[str] = None, publish_all_ports: bool = False) -> Chain:
        return self.chains.create(name, chain_type, init_dir=init_dir,
                                  publish_all_ports=publish_all_ports)

    def start_service(self, name: str, chain_name: str = "") -> StartResult:
        """
        Starts a service and its dependencies, linking ``$chain`` to ``chain_name``.
        """
        return self.walker.start(name, chain_name)

    def kill_service(self, names: List[str], remove: bool = False, remove_data: bool = False) -> None:
        """
        Stops services immediately; with ``remove`` their containers are deleted too.
        """
        for name in names:
            if remove:
                self.services.remove(name, remove_data=remove_data, force=True)
            else:
                self.services.stop(name, force=True)
