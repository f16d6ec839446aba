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
Lifecycle management for individual service containers.
"""
from typing import Iterable, List

from ..ENGINE.container_engine import ContainerEngine
from ..ENGINE.container_handle import ContainerHandle
from ..MODELS.container import ContainerSpec, ContainerType, Link
from ..MODELS.service_definition import ServiceDefinition
from ..RUNNERS.link_resolver import LinkResolver
from ..UTILS.logger import logger
from ..UTILS.settings import Settings
from ..errors import NotFound
from .volume_manager import VolumeManager


class ServiceManager:
    """
    Starts, stops and removes one service at a time.
    """
    def __init__(self,
                 engine: ContainerEngine,
                 settings: Settings,
                 resolver: LinkResolver,
                 volumes: VolumeManager):
        """
        Initializes the service manager.

        :param engine: The container engine.
        :param settings: Naming prefix and timeouts.
        :param resolver: Resolves service chain links.
        :param volumes: Manages service data containers.
        """
        self.engine = engine
        self.settings = settings
        self.resolver = resolver
        self.volumes = volumes

    def handle(self, name: str) -> ContainerHandle:
        return ContainerHandle(self.engine, ContainerType.SERVICE, name, self.settings.name_prefix)

    def exists(self, name: str) -> bool:
        return self.handle(name).exists()

    def running(self, name: str) -> bool:
        return self.handle(name).running()

    def start(self,
              definition: ServiceDefinition,
              chain_name: str = "",
              dependency_links: Iterable[Link] = ()) -> List[Link]:
        """
        Starts a single service; its dependencies must already be running.

        The chain link is resolved before anything is created, so a link
        error leaves no containers behind.

        :param definition: The service definition.
        :param chain_name: Chain that ``$chain`` links refer to; may be empty.
        :param dependency_links: Links to already running dependency services.
        :return: The links the service container was created with.
        """
        handle = self.handle(definition.name)
        if handle.running():
            logger.info("service already running", service=definition.name)
            return handle.links()

        chain_link = self.resolver.resolve(definition.chain, chain_name)
        links = ([chain_link] if chain_link else []) + list(dependency_links)

        if definition.data_container and not self.volumes.exists(definition.name):
            self.volumes.create(definition.name)

        if handle.exists():
            # Links are fixed when a container is created
            self.engine.start(handle.container_name)
            handle.wait_running(self.settings.start_timeout)
            logger.info("service restarted", service=definition.name)
            return handle.links()

        spec = ContainerSpec(
            name=handle.container_name,
            image=definition.image,
            command=definition.command,
            environment=definition.environment,
            ports=definition.ports,
            labels={"chainrig.type": ContainerType.SERVICE.value, "chainrig.name": definition.name},
            volumes_from=[self.volumes.handle(definition.name).container_name] if definition.data_container else [],
            links=links,
        )
        self.engine.create(spec)
        self.engine.start(handle.container_name)
        handle.wait_running(self.settings.start_timeout)
        logger.info("service started", service=definition.name,
                    links=[link.alias for link in links])
        return links

    def stop(self, name: str, force: bool = False) -> None:
        """
        Stops a running service; a stopped service is left alone.

        :raises NotFound: If the service container does not exist.
        """
        handle = self.handle(name)
        if not handle.exists():
            raise NotFound(f"Service {name} does not exist")
        if not handle.running():
            logger.info("service already stopped", service=name)
            return
        self.engine.stop(handle.container_name, timeout=0 if force else self.settings.stop_timeout)
        logger.info("service stopped", service=name)

    def remove(self, name: str, remove_data: bool = False, force: bool = False) -> None:
        """
        Stops and removes a service container, optionally with its data container.

        :raises NotFound: If the service container does not exist.
        """
        handle = self.handle(name)
        if not handle.exists():
            raise NotFound(f"Service {name} does not exist")
        if handle.running():
            self.stop(name, force=force)
        self.engine.remove(handle.container_name, force=force)
        logger.info("service removed", service=name)

        if remove_data:
            self.volumes.remove(name)

    def list(self) -> List[str]:
        prefix = f"{self.settings.name_prefix}_{ContainerType.SERVICE.value}_"
        return [n[len(prefix):] for n in self.engine.list_names(prefix)]
