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
Dependency walking for services: prerequisites are started before the
services that declare them.
"""
from typing import Callable, List, Set

from ..MODELS.container import Link
from ..MODELS.service_definition import ServiceDefinition, StartResult
from ..errors import DependencyCycle
from ..UTILS.logger import logger


class DependencyWalker:
    """
    Starts a service after recursively starting its declared dependencies.
    """
    def __init__(self, definitions, services, max_depth: int = 32):
        """
        :param definitions: Looks up service definitions by name.
        :param services: Starts individual services.
        :param max_depth: Deepest dependency chain accepted.
        """
        self.definitions = definitions
        self.services = services
        self.max_depth = max_depth

    def _walk(self, name: str, on_ready: Callable[[ServiceDefinition], None]):
        """
        Depth-first walk calling ``on_ready`` once per service, dependencies first.

        :raises DependencyCycle: On a cycle, a self-reference or excessive depth.
        """
        visited: Set[str] = set()
        processing: List[str] = []

        def visit(service: str):
            if service in processing:
                cycle = processing[processing.index(service):] + [service]
                raise DependencyCycle(f"Dependency cycle: {' -> '.join(cycle)}")
            if service in visited:
                return
            if len(processing) >= self.max_depth:
                raise DependencyCycle(
                    f"Dependencies of {name} nest deeper than {self.max_depth} levels"
                )

            definition = self.definitions.service(service)
            processing.append(service)
            for dep in definition.dependencies:
                visit(dep)
            processing.pop()

            on_ready(definition)
            visited.add(service)

        visit(name)

    def order(self, name: str) -> List[str]:
        """
        Start order for ``name`` and its dependencies, without starting anything.
        """
        ordered: List[str] = []
        self._walk(name, lambda definition: ordered.append(definition.name))
        return ordered

    def start(self, name: str, chain_name: str = "") -> StartResult:
        """
        Starts ``name`` and everything it depends on.

        The whole graph is walked before anything starts, so cycles and
        missing definitions fail with nothing running. If a start fails the
        error propagates and services started so far keep running.

        :param name: Service to start.
        :param chain_name: Chain that ``$chain`` links refer to; may be empty.
        :return: Started services and the links each was created with.
        """
        result = StartResult()
        ordered: List[ServiceDefinition] = []
        self._walk(name, ordered.append)

        for definition in ordered:
            dependency_links = []
            for dep in definition.dependencies:
                dep_name = self.definitions.service(dep).name
                dependency_links.append(
                    Link(container=self.services.handle(dep_name).container_name, alias=dep_name)
                )
            links = self.services.start(definition, chain_name, dependency_links)
            result.started.append(definition.name)
            result.links_by_service[definition.name] = links

        logger.debug("dependency walk finished", service=name, started=result.started)
        return result
