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
Parsers for service definition and chain type files (TOML or YAML).
"""
import tomllib
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml
from pydantic import ValidationError

from ..MODELS.chain import SIMPLECHAIN, ChainType
from ..MODELS.service_definition import ServiceDefinition
from ..RUNNERS.link_resolver import parse_chain_link
from ..UTILS.settings import Settings
from ..errors import DefinitionError, NotFound

KEYS_SERVICE = "keys"
DEFINITION_SUFFIXES = (".toml", ".yaml", ".yml")


def parse_definition_file(path: str) -> Dict[str, Any]:
    """
    Reads a TOML or YAML definition file into a dictionary.

    :raises DefinitionError: If the file cannot be parsed.
    """
    path = Path(path)
    try:
        if path.suffix == ".toml":
            with open(path, "rb") as f:
                data = tomllib.load(f)
        else:
            with open(path, "r") as f:
                data = yaml.safe_load(f)
    except (tomllib.TOMLDecodeError, yaml.YAMLError) as e:
        raise DefinitionError(f"Cannot parse {path}: {e}") from e
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise DefinitionError(f"{path} does not contain a table")
    return data


class DefinitionParser:
    """
    Converts raw definition data into models.
    """

    def parse_service(self, name: str, data: Dict[str, Any]) -> ServiceDefinition:
        """
        Parses a service definition.

        :param name: Name used when the file does not set ``service.name``.
        :param data: Raw definition data.
        :return: The service definition, with its chain link already parsed.
        """
        service = data.get("service") or {}
        dependencies = data.get("dependencies") or {}
        try:
            return ServiceDefinition(
                name=service.get("name") or name,
                image=service.get("image", ""),
                chain=parse_chain_link(data.get("chain")),
                data_container=bool(service.get("data_container", False)),
                dependencies=self._to_list(dependencies.get("services")),
                command=self._to_list(service.get("command")),
                environment=self._parse_environment(service.get("environment")),
                ports=[str(p) for p in self._to_list(service.get("ports"))],
            )
        except ValidationError as e:
            raise DefinitionError(f"Invalid definition for service {name}: {e}") from e

    def parse_chain_type(self, name: str, data: Dict[str, Any]) -> ChainType:
        try:
            return ChainType(**{"name": name, **data})
        except ValidationError as e:
            raise DefinitionError(f"Invalid chain type {name}: {e}") from e

    def _parse_environment(self, env_spec: Any) -> Dict[str, str]:
        environment = {}
        if isinstance(env_spec, list):
            for e in env_spec:
                if '=' in e:
                    k, v = e.split('=', 1)
                    environment[k] = v
        elif isinstance(env_spec, dict):
            environment = {k: str(v) for k, v in env_spec.items()}
        return environment

    def _to_list(self, val: Any) -> List[str]:
        if val is None:
            return []
        if isinstance(val, str):
            return [val]
        return list(val)


class DefinitionStore:
    """
    Looks up service definitions and chain types on disk, falling back to built-ins.
    """
    def __init__(self, settings: Settings):
        self.settings = settings
        self.parser = DefinitionParser()
        self._builtin_services = {
            KEYS_SERVICE: ServiceDefinition(
                name=KEYS_SERVICE,
                image=settings.image_keys,
                data_container=True,
                command=["keys", "server"],
            ),
        }
        self._builtin_chain_types = {SIMPLECHAIN.name: SIMPLECHAIN}

    def _find(self, directory: Path, name: str) -> Optional[Path]:
        for suffix in DEFINITION_SUFFIXES:
            candidate = directory / f"{name}{suffix}"
            if candidate.is_file():
                return candidate
        return None

    def service(self, name: str) -> ServiceDefinition:
        """
        Loads the definition of service ``name``.

        :raises NotFound: If there is neither a file nor a built-in definition.
        """
        path = self._find(self.settings.services_path, name)
        if path is not None:
            return self.parser.parse_service(name, parse_definition_file(str(path)))
        if name in self._builtin_services:
            return self._builtin_services[name]
        raise NotFound(f"No definition for service {name} in {self.settings.services_path}")

    def chain_type(self, name: str) -> ChainType:
        path = self._find(self.settings.chain_types_path, name)
        if path is not None:
            return self.parser.parse_chain_type(name, parse_definition_file(str(path)))
        if name in self._builtin_chain_types:
            return self._builtin_chain_types[name]
        raise NotFound(f"Unknown chain type {name}")

    def service_names(self) -> List[str]:
        """
        Names of all known services, built-ins included.
        """
        names = set(self._builtin_services)
        if self.settings.services_path.is_dir():
            for path in self.settings.services_path.iterdir():
                if path.suffix in DEFINITION_SUFFIXES:
                    names.add(path.stem)
        return sorted(names)
