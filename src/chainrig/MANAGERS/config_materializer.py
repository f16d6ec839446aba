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
Generation of a new chain's identity artifacts: validator keys, genesis
document and node configuration.
"""
import hashlib
import os
from datetime import datetime, timezone
from pathlib import Path
from typing import Dict, List, Optional

from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric.ed25519 import Ed25519PrivateKey
from jinja2 import Template

from ..ENGINE.container_handle import ContainerHandle
from ..MODELS.chain import (
    ChainArtifacts,
    ChainType,
    GenesisAccount,
    GenesisDoc,
    GenesisValidator,
    PrivValidator,
    UnbondTo,
)
from ..UTILS.logger import logger
from ..UTILS.settings import Settings
from ..errors import ChainrigError

# Key type tag used in the [type, hex] key encoding
ED25519 = 1

CONFIG_TEMPLATE = """# Node configuration for chain {{ chain_id }}
moniker = "{{ moniker }}"
chain_id = "{{ chain_id }}"
db_backend = "leveldb"
genesis_file = "{{ chain_dir }}/genesis.json"
priv_validator_file = "{{ chain_dir }}/priv_validator.json"

[p2p]
laddr = "tcp://0.0.0.0:{{ p2p_port }}"
seeds = "{{ seeds | join(',') }}"

[rpc]
laddr = "tcp://0.0.0.0:{{ rpc_port }}"
"""


def generate_validator_key() -> PrivValidator:
    """
    Generates an ed25519 validator key.

    The address is the first 20 bytes of the SHA-256 of the public key.
    """
    key = Ed25519PrivateKey.generate()
    priv_raw = key.private_bytes(
        serialization.Encoding.Raw,
        serialization.PrivateFormat.Raw,
        serialization.NoEncryption(),
    )
    pub_raw = key.public_key().public_bytes(
        serialization.Encoding.Raw,
        serialization.PublicFormat.Raw,
    )
    address = hashlib.sha256(pub_raw).digest()[:20].hex().upper()
    return PrivValidator(
        address=address,
        pub_key=[ED25519, pub_raw.hex().upper()],
        priv_key=[ED25519, (priv_raw + pub_raw).hex().upper()],
    )


class ConfigMaterializer:
    """
    Writes a chain's genesis, node config and validator key on creation and
    imports the validator key into the keys service.
    """
    def __init__(self, settings: Settings, keys=None, p2p_port: int = 46656, rpc_port: int = 46657):
        """
        :param settings: Provides the in-container chain directory.
        :param keys: Keys service client; without one the import is skipped.
        :param p2p_port: Peer-to-peer listen port written to the config.
        :param rpc_port: RPC listen port written to the config.
        """
        self.settings = settings
        self.keys = keys
        self.p2p_port = p2p_port
        self.rpc_port = rpc_port
        self.template = Template(CONFIG_TEMPLATE)

    def materialize(self, name: str, chain_type: ChainType, home_dir: str,
                    seeds: Optional[List[str]] = None) -> ChainArtifacts:
        """
        Generates the artifacts of chain ``name`` and writes them into ``home_dir``.

        Files already in ``home_dir`` under other names are left in place.

        :param name: Chain name, also used as the chain id.
        :param chain_type: Template for accounts and validators.
        :param home_dir: Host directory receiving the files.
        :param seeds: Peer addresses for the node config.
        :return: The generated artifacts.
        """
        validators = [generate_validator_key() for _ in range(max(chain_type.validators, 1))]
        names = [f"{name}_val_{i}" for i in range(len(validators))]

        genesis = GenesisDoc(
            chain_id=name,
            genesis_time=datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%S.000Z"),
            accounts=[
                GenesisAccount(
                    address=v.address,
                    amount=chain_type.account_amount,
                    name=n,
                    permissions={"base": dict(chain_type.permissions)},
                )
                for v, n in zip(validators, names)
            ],
            validators=[
                GenesisValidator(
                    pub_key=v.pub_key,
                    amount=chain_type.validator_amount,
                    name=n,
                    unbond_to=[UnbondTo(address=v.address, amount=chain_type.validator_amount)],
                )
                for v, n in zip(validators, names)
            ],
        )

        moniker = names[0]
        config_toml = self.template.render(
            moniker=moniker,
            chain_id=name,
            chain_dir=self.settings.chain_dir(name),
            p2p_port=self.p2p_port,
            rpc_port=self.rpc_port,
            seeds=seeds or [],
        )

        files: Dict[str, str] = {
            "genesis.json": genesis.model_dump_json(indent=2),
            "config.toml": config_toml,
            "priv_validator.json": validators[0].model_dump_json(indent=2),
            "addresses.csv": "".join(f"{v.address},{n}\n" for v, n in zip(validators, names)),
        }
        for i, v in enumerate(validators[1:], start=1):
            files[f"priv_validator_{i}.json"] = v.model_dump_json(indent=2)

        os.makedirs(home_dir, exist_ok=True)
        for filename, content in files.items():
            with open(os.path.join(home_dir, filename), "w") as f:
                f.write(content)

        logger.info("chain config materialized", chain=name, home_dir=home_dir,
                    validator=validators[0].address)
        return ChainArtifacts(
            chain_id=name,
            moniker=moniker,
            validator_address=validators[0].address,
            genesis=genesis,
            priv_validator=validators[0],
            config_toml=config_toml,
        )

    def install(self, data_handle: ContainerHandle, name: str, home_dir: str) -> List[str]:
        """
        Copies every regular file in ``home_dir`` into the chain's data volume.

        :return: Names of the copied files.
        """
        files = {
            path.name: path.read_bytes()
            for path in sorted(Path(home_dir).iterdir())
            if path.is_file()
        }
        data_handle.put_files(self.settings.chain_dir(name), files)
        return list(files)

    def import_key(self, artifacts: ChainArtifacts) -> bool:
        """
        Imports the validator key into the keys service, best-effort.

        A failure is logged and reported through the return value and
        ``artifacts.key_imported``; it never aborts chain creation.
        """
        if self.keys is None:
            return False
        try:
            self.keys.import_key(artifacts.priv_validator)
        except ChainrigError as e:
            logger.warning("key import failed", chain=artifacts.chain_id,
                           address=artifacts.validator_address, error=str(e))
            return False
        artifacts.key_imported = True
        return True
