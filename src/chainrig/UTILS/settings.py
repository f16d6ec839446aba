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
Settings for the orchestrator, merged from defaults, a dotenv file and the
process environment.
"""
import os
from pathlib import Path
from typing import Dict, Optional

from dotenv import dotenv_values
from pydantic import BaseModel

ENV_PREFIX = "CHAINRIG_"


class Settings(BaseModel):
    """
    Every tunable value used by the orchestration core.
    """
    home: Path = Path.home() / ".chainrig"
    container_root: str = "/home/chainrig/.chainrig"
    name_prefix: str = "chainrig"

    # Images
    image_data: str = "busybox:latest"
    image_chain: str = "hyperledger/burrow:latest"
    image_keys: str = "hyperledger/burrow:latest"
    # Node command of chain containers; {chain_dir} and {chain_name} are substituted
    chain_command: str = (
        "burrow start --config {chain_dir}/config.toml --genesis {chain_dir}/genesis.json"
    )

    # Timeouts in seconds
    stop_timeout: int = 10
    start_timeout: float = 15.0

    max_dependency_depth: int = 32
    strict_literal_links: bool = False
    log_level: str = "INFO"

    @property
    def chains_path(self) -> Path:
        return self.home / "chains"

    @property
    def services_path(self) -> Path:
        return self.home / "services"

    @property
    def chain_types_path(self) -> Path:
        return self.chains_path / "chain-types"

    def chain_dir(self, name: str) -> str:
        """
        Directory holding a chain's files inside its data volume.
        """
        return f"{self.container_root}/chains/{name}"

    @property
    def keys_data_dir(self) -> str:
        return f"{self.container_root}/keys/data"


def load_settings(env_file: Optional[str] = None,
                  environ: Optional[Dict[str, str]] = None,
                  **overrides) -> Settings:
    """
    Builds settings from defaults, an optional dotenv file and environment variables.

    Later sources override earlier ones: the dotenv file, then ``CHAINRIG_*``
    variables from the environment, then explicit keyword overrides.

    :param env_file: Path to a dotenv file. Defaults to ``<home>/.env`` when it exists.
    :param environ: Environment to read instead of ``os.environ``.
    :return: The merged settings.
    """
    environ = dict(os.environ) if environ is None else environ
    values: Dict[str, str] = {}

    # The dotenv file may itself live under a home set in the environment
    home = overrides.get("home") or environ.get(f"{ENV_PREFIX}HOME")
    if env_file is None:
        default_home = Path(home) if home else Settings.model_fields["home"].default
        candidate = Path(default_home) / ".env"
        if candidate.is_file():
            env_file = str(candidate)

    if env_file:
        values.update(_strip_prefix(dotenv_values(env_file)))
    values.update(_strip_prefix(environ))
    values.update({k: v for k, v in overrides.items() if v is not None})

    known = Settings.model_fields.keys()
    return Settings(**{k: v for k, v in values.items() if k in known})


def _strip_prefix(source) -> Dict[str, str]:
    """
    Keeps ``CHAINRIG_*`` keys, lowercased and without the prefix.
    """
    result = {}
    for key, value in source.items():
        if key.startswith(ENV_PREFIX) and value is not None:
            result[key[len(ENV_PREFIX):].lower()] = value
    return result
