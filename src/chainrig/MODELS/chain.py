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
Models for chains: lifecycle state, chain type templates and the identity
artifacts written into a chain's data volume.
"""
from enum import Enum
from typing import Dict, List, Optional

from pydantic import BaseModel, Field


class ChainState(str, Enum):
    """
    Lifecycle state of a chain container.
    """
    ABSENT = "absent"
    CREATED = "created"
    RUNNING = "running"
    STOPPED = "stopped"


class ChainType(BaseModel):
    """
    Template describing the accounts and validators of a new chain.
    """
    name: str
    validators: int = 1
    account_amount: int = 99999999999999
    validator_amount: int = 9999999999
    permissions: Dict[str, int] = Field(
        default_factory=lambda: {"perms": 16383, "set": 16383}
    )
    # Overrides Settings.chain_command when set
    command: List[str] = []


SIMPLECHAIN = ChainType(name="simplechain")


class UnbondTo(BaseModel):
    address: str
    amount: int


class GenesisAccount(BaseModel):
    address: str
    amount: int
    name: str
    permissions: Dict[str, Dict[str, int]] = {}


class GenesisValidator(BaseModel):
    pub_key: List
    amount: int
    name: str
    unbond_to: List[UnbondTo] = []


class GenesisDoc(BaseModel):
    """
    The genesis document; ``chain_id`` always equals the chain name.
    """
    chain_id: str
    genesis_time: str
    accounts: List[GenesisAccount] = []
    validators: List[GenesisValidator] = []


class PrivValidator(BaseModel):
    """
    Validator key material as the node reads it from ``priv_validator.json``.
    """
    address: str
    pub_key: List
    priv_key: List
    last_height: int = 0
    last_round: int = 0
    last_step: int = 0


class ChainArtifacts(BaseModel):
    """
    Identity artifacts generated when a chain is created.
    """
    chain_id: str
    moniker: str
    validator_address: str
    genesis: GenesisDoc
    priv_validator: PrivValidator
    config_toml: str
    key_imported: bool = False


class Chain(BaseModel):
    """
    A chain container together with its dedicated data container.
    """
    name: str
    chain_type: str = SIMPLECHAIN.name
    state: ChainState = ChainState.ABSENT
    container: str
    data_container: str
    home_dir: str
    artifacts: Optional[ChainArtifacts] = None
