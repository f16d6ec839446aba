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
Lifecycle of chain containers and their data containers.
"""
import os
import shlex
import shutil
from typing import List, Optional

from ..ENGINE.container_engine import ContainerEngine
from ..ENGINE.container_handle import ContainerHandle
from ..MODELS.chain import SIMPLECHAIN, Chain, ChainArtifacts, ChainState, ChainType
from ..MODELS.container import ContainerSpec, ContainerType
from ..UTILS.logger import logger
from ..UTILS.settings import Settings
from ..errors import AlreadyExists, NotFound
from .config_materializer import ConfigMaterializer
from .volume_manager import VolumeManager


class ChainLifecycle:
    """
    Creates, starts, stops, kills and removes chains.

    A chain is a chain container plus a data container holding its volume.
    Whenever the chain container exists, so does its data container.
    """
    def __init__(self,
                 engine: ContainerEngine,
                 settings: Settings,
                 volumes: VolumeManager,
                 materializer: ConfigMaterializer,
                 definitions):
        """
        Initializes the chain lifecycle.

        :param engine: The container engine.
        :param settings: Images, timeouts and host paths.
        :param volumes: Manages data containers.
        :param materializer: Generates chain config on creation.
        :param definitions: Looks up chain types.
        """
        self.engine = engine
        self.settings = settings
        self.volumes = volumes
        self.materializer = materializer
        self.definitions = definitions

    def handle(self, name: str) -> ContainerHandle:
        return ContainerHandle(self.engine, ContainerType.CHAIN, name, self.settings.name_prefix)

    def home_dir(self, name: str) -> str:
        return str(self.settings.chains_path / name)

    def command(self, name: str, template: ChainType) -> List[str]:
        """
        Node command for chain ``name``, pointed at its files in the data volume.

        The chain type's own command wins over ``Settings.chain_command``.
        ``{chain_dir}`` and ``{chain_name}`` are substituted in every argument.
        """
        raw = template.command or shlex.split(self.settings.chain_command)
        chain_dir = self.settings.chain_dir(name)
        return [arg.replace("{chain_dir}", chain_dir).replace("{chain_name}", name) for arg in raw]

    def exists(self, name: str) -> bool:
        return self.handle(name).exists()

    def running(self, name: str) -> bool:
        return self.handle(name).running()

    def state(self, name: str) -> ChainState:
        return ChainState(self.handle(name).state())

    def get(self, name: str) -> Chain:
        """
        Current view of chain ``name``.

        :raises NotFound: If the chain container does not exist.
        """
        handle = self.handle(name)
        if not handle.exists():
            raise NotFound(f"Chain {name} does not exist")
        labels = (handle.inspect().get("Config") or {}).get("Labels") or {}
        return self._chain(name, labels.get("chainrig.chain_type", SIMPLECHAIN.name),
                           labels.get("chainrig.home_dir") or self.home_dir(name))

    def list(self) -> List[str]:
        prefix = f"{self.settings.name_prefix}_{ContainerType.CHAIN.value}_"
        return [n[len(prefix):] for n in self.engine.list_names(prefix)]

    def _chain(self, name: str, chain_type: str, home_dir: str,
               artifacts: Optional[ChainArtifacts] = None) -> Chain:
        return Chain(
            name=name,
            chain_type=chain_type,
            state=self.state(name),
            container=self.handle(name).container_name,
            data_container=self.volumes.handle(name).container_name,
            home_dir=home_dir,
            artifacts=artifacts,
        )

    def create(self, name: str, chain_type: str = SIMPLECHAIN.name,
               init_dir: Optional[str] = None, publish_all_ports: bool = False) -> Chain:
        """
        Creates and starts a new chain.

        The data container is created first, then the config is generated and
        copied into it, the validator key is imported into the keys service
        (best-effort), and finally the chain container is created and started.
        A failure before the chain container exists removes the data container
        again.

        :param name: Chain name; also the chain id.
        :param chain_type: Name of the chain type template.
        :param init_dir: Host directory for the chain's files. Defaults to
            ``<home>/chains/<name>``.
        :param publish_all_ports: Publish every exposed port on the host.
        :return: The running chain.
        :raises AlreadyExists: If the chain or its data container exists.
        """
        handle = self.handle(name)
        if handle.exists():
            raise AlreadyExists(f"Chain {name} already exists")
        if self.volumes.exists(name):
            raise AlreadyExists(f"Data container for chain {name} already exists")

        template = self.definitions.chain_type(chain_type)
        home_dir = os.path.abspath(init_dir) if init_dir else self.home_dir(name)

        spec = ContainerSpec(
            name=handle.container_name,
            image=self.settings.image_chain,
            command=self.command(name, template),
            environment={
                "CHAIN_NAME": name,
                "CHAIN_ID": name,
                "CHAIN_DIR": self.settings.chain_dir(name),
            },
            labels={
                "chainrig.type": ContainerType.CHAIN.value,
                "chainrig.name": name,
                "chainrig.chain_type": template.name,
                "chainrig.home_dir": home_dir,
            },
            volumes_from=[self.volumes.handle(name).container_name],
            publish_all_ports=publish_all_ports,
        )

        data_handle = self.volumes.create(name)
        try:
            artifacts = self.materializer.materialize(name, template, home_dir)
            self.materializer.install(data_handle, name, home_dir)
            self.materializer.import_key(artifacts)
            self.engine.create(spec)
        except Exception:
            # Do not leave an orphaned data container behind
            self.volumes.remove(name)
            raise

        self.engine.start(handle.container_name)
        handle.wait_running(self.settings.start_timeout)
        logger.info("chain created", chain=name, chain_type=template.name)
        return self._chain(name, template.name, home_dir, artifacts)

    def start(self, name: str, publish_all_ports: bool = False) -> None:
        """
        Starts an existing, stopped chain. A running chain is left alone.

        Ports are published according to how the container was created;
        ``publish_all_ports`` is only recorded in the log.

        :raises NotFound: If the chain or its data container does not exist.
        """
        handle = self.handle(name)
        if not handle.exists():
            raise NotFound(f"Chain {name} does not exist")
        if not self.volumes.exists(name):
            raise NotFound(f"Data container for chain {name} does not exist")
        if handle.running():
            logger.info("chain already running", chain=name)
            return

        self.engine.start(handle.container_name)
        handle.wait_running(self.settings.start_timeout)
        logger.info("chain started", chain=name, publish_all_ports=publish_all_ports)

    def stop(self, name: str, force: bool = False) -> None:
        """
        Stops a running chain; the data container and files are kept.

        :param force: Skip the graceful shutdown wait.
        :raises NotFound: If the chain does not exist.
        """
        handle = self.handle(name)
        if not handle.exists():
            raise NotFound(f"Chain {name} does not exist")
        if not handle.running():
            logger.info("chain already stopped", chain=name)
            return

        self.engine.stop(handle.container_name, timeout=0 if force else self.settings.stop_timeout)
        logger.info("chain stopped", chain=name, force=force)

    def kill(self, name: str, remove_home_dir: bool = False) -> None:
        """
        Kills a chain and removes its chain and data containers.

        The host-side home directory is kept unless ``remove_home_dir`` is set.

        :raises NotFound: If the chain does not exist.
        """
        handle = self.handle(name)
        if not handle.exists():
            raise NotFound(f"Chain {name} does not exist")
        self.engine.kill(handle.container_name)
        self.remove(name, remove_data_volume=True, remove_home_dir=remove_home_dir, force=True)

    def remove(self, name: str, remove_data_volume: bool = False,
               remove_home_dir: bool = False, force: bool = False) -> None:
        """
        Removes a chain container, stopping it first if it runs.

        :param remove_data_volume: Also remove the data container and its volume.
        :param remove_home_dir: Also delete the host-side home directory.
        :param force: Stop without waiting for a graceful shutdown.
        :raises NotFound: If the chain container does not exist.
        """
        handle = self.handle(name)
        if not handle.exists():
            raise NotFound(f"Chain {name} does not exist")

        home_dir = self.get(name).home_dir
        if handle.running():
            self.stop(name, force=force)
        self.engine.remove(handle.container_name, force=force)
        logger.info("chain removed", chain=name)

        if remove_data_volume:
            self.volumes.remove(name)

        if remove_home_dir:
            if os.path.isdir(home_dir):
                shutil.rmtree(home_dir)
                logger.info("chain home removed", chain=name, home_dir=home_dir)
            else:
                logger.warning("chain home already absent", chain=name, home_dir=home_dir)
