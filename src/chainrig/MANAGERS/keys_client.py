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
Client for the key-management service.
"""
import json
from typing import List

from ..MODELS.chain import PrivValidator
from ..MODELS.container import ContainerType
from ..PARSERS.definition_parser import KEYS_SERVICE
from ..RUNNERS.dependency_walker import DependencyWalker
from ..RUNNERS.exec_adapter import ExecAdapter
from ..UTILS.logger import logger
from ..UTILS.settings import Settings
from ..errors import ChainrigError, KeyImportFailed


class KeysClient:
    """
    Imports validator keys into the keys service and lists what it holds.
    Keys are stored under ``<container_root>/keys/data/<ADDRESS>/<ADDRESS>``.
    """
    def __init__(self, walker: DependencyWalker, executor: ExecAdapter, settings: Settings):
        self.walker = walker
        self.executor = executor
        self.settings = settings

    @property
    def handle(self):
        return self.executor.handle(ContainerType.SERVICE, KEYS_SERVICE)

    def import_key(self, priv_validator: PrivValidator) -> str:
        """
        Imports a validator key, starting the keys service if needed.

        :return: The address the key is stored under.
        :raises KeyImportFailed: If the service cannot be started or written to.
        """
        address = priv_validator.address
        artifact = json.dumps(
            {
                "address": address,
                "type": "ed25519",
                "pub_key": priv_validator.pub_key,
                "priv_key": priv_validator.priv_key,
            },
            separators=(",", ":"),
        )
        try:
            self.walker.start(KEYS_SERVICE)
            self.handle.put_files(f"{self.settings.keys_data_dir}/{address}",
                                  {address: artifact.encode()})
        except ChainrigError as e:
            raise KeyImportFailed(f"Could not import key {address}: {e}") from e

        logger.info("key imported", address=address)
        return address

    def list_addresses(self) -> List[str]:
        output = self.executor.exec(self.handle, ["ls", self.settings.keys_data_dir])
        return output.split()

    def read_key(self, address: str) -> str:
        path = f"{self.settings.keys_data_dir}/{address}/{address}"
        return self.executor.exec(self.handle, ["cat", path])
