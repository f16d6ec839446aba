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
Exceptions raised by the orchestration core.
"""
from typing import Optional


class ChainrigError(Exception):
    """Base class for every error the core raises."""


class AlreadyExists(ChainrigError):
    """A container with the requested name already exists."""


class NotFound(ChainrigError):
    """A chain, service, data container or definition is absent."""


class MissingChainContext(ChainrigError):
    """A placeholder chain link was used without a chain name to resolve it."""


class UnresolvedChainLink(ChainrigError):
    """A chain link points at a chain whose container does not exist."""


class ExecFailed(ChainrigError):
    """
    A command could not run in a container or exited non-zero.
    """
    def __init__(self, message: str, exit_code: Optional[int] = None, output: str = ""):
        super().__init__(message)
        self.exit_code = exit_code
        self.output = output


class KeyImportFailed(ChainrigError):
    """Importing validator key material into the keys service failed."""


class DependencyCycle(ChainrigError):
    """Service dependencies refer back to themselves."""


class DefinitionError(ChainrigError):
    """A service or chain type definition could not be read."""


class EngineError(ChainrigError):
    """The container engine rejected a call."""
