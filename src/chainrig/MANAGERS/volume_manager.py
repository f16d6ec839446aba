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
Data containers: the containers whose only job is to hold the persistent
volume of a chain or service.
"""
from ..ENGINE.container_engine import ContainerEngine
from ..ENGINE.container_handle import ContainerHandle
from ..MODELS.container import ContainerSpec, ContainerType, VolumeMount
from ..UTILS.settings import Settings
from ..errors import AlreadyExists, NotFound
from ..UTILS.logger import logger


class VolumeManager:
    """
    Creates and removes data containers and the named volumes they carry.
    """
    def __init__(self, engine: ContainerEngine, settings: Settings):
        """
        :param engine: The container engine.
        :param settings: Images, container root and naming prefix.
        """
        self.engine = engine
        self.settings = settings

    def handle(self, name: str) -> ContainerHandle:
        return ContainerHandle(self.engine, ContainerType.DATA, name, self.settings.name_prefix)

    def volume_name(self, name: str) -> str:
        return self.handle(name).container_name

    def exists(self, name: str) -> bool:
        return self.handle(name).exists()

    def create(self, name: str) -> ContainerHandle:
        """
        Creates the data container for ``name``; it is never started.

        :raises AlreadyExists: If the data container exists.
        """
        handle = self.handle(name)
        if handle.exists():
            raise AlreadyExists(f"Data container {handle.container_name} already exists")

        spec = ContainerSpec(
            name=handle.container_name,
            image=self.settings.image_data,
            command=["true"],
            labels={"chainrig.type": ContainerType.DATA.value, "chainrig.name": name},
            volume=VolumeMount(volume=self.volume_name(name), target=self.settings.container_root),
        )
        self.engine.create(spec)
        logger.info("data container created", name=name, container=handle.container_name)
        return handle

    def remove(self, name: str) -> bool:
        """
        Removes the data container for ``name`` and its volume.

        :return: False if there was nothing to remove.
        """
        handle = self.handle(name)
        if not handle.exists():
            logger.warning("data container already absent", name=name)
            return False

        self.engine.remove(handle.container_name, force=True, volumes=True)
        try:
            self.engine.remove_volume(self.volume_name(name))
        except NotFound:
            logger.debug("volume already absent", volume=self.volume_name(name))
        logger.info("data container removed", name=name)
        return True
