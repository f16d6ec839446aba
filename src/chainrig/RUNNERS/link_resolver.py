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
Resolution of a service's chain link against running infrastructure.
"""
from typing import Callable, Optional

from ..ENGINE.container_handle import ContainerHandle
from ..MODELS.container import ContainerType, Link
from ..MODELS.service_definition import (
    CHAIN_PLACEHOLDER,
    ChainLink,
    LiteralLink,
    PlaceholderLink,
)
from ..errors import DefinitionError, MissingChainContext, UnresolvedChainLink
from ..UTILS.logger import logger


def parse_chain_link(raw: Optional[str]) -> Optional[ChainLink]:
    """
    Parses a definition's ``chain`` field of the form ``<target>:<alias>``.

    ``<target>`` is either ``$chain`` or a literal chain name. Without an alias
    the target doubles as the alias (``chain`` for the placeholder).

    :param raw: The raw field; empty or missing means no linking.
    :return: The parsed link, or None.
    :raises DefinitionError: If the field has an empty target or alias.
    """
    if raw is None:
        return None
    if not isinstance(raw, str):
        raise DefinitionError(f"Chain link must be a string, got {raw!r}")
    if not raw.strip():
        return None

    target, sep, alias = raw.strip().partition(":")
    target, alias = target.strip(), alias.strip()
    if not target or (sep and not alias):
        raise DefinitionError(f"Malformed chain link {raw!r}, expected <chain>:<alias>")

    if target == CHAIN_PLACEHOLDER:
        return PlaceholderLink(alias=alias or "chain")
    return LiteralLink(name=target, alias=alias or target)


class LinkResolver:
    """
    Turns a parsed chain link into a concrete engine link.
    """
    def __init__(self, handle_factory: Callable[[ContainerType, str], ContainerHandle],
                 strict_literal_links: bool = False):
        """
        :param handle_factory: Builds a handle from a container type and name.
        :param strict_literal_links: Also require literal targets to exist.
        """
        self.handle_factory = handle_factory
        self.strict_literal_links = strict_literal_links

    def resolve(self, link: Optional[ChainLink], chain_name: str = "") -> Optional[Link]:
        """
        Resolves ``link`` with ``chain_name`` as the chain context.

        :param link: Parsed chain link of a service, or None.
        :param chain_name: Name of the chain placeholders refer to; may be empty.
        :return: The engine link, or None when the service does not link.
        :raises MissingChainContext: Placeholder link with an empty context.
        :raises UnresolvedChainLink: The target chain has no container.
        """
        if link is None:
            return None

        if isinstance(link, PlaceholderLink):
            if not chain_name:
                raise MissingChainContext(
                    f"Service links to {CHAIN_PLACEHOLDER} but no chain was given"
                )
            return self._checked(chain_name, link.alias)

        if self.strict_literal_links:
            return self._checked(link.name, link.alias)

        # Literal targets are linked as named whether or not the chain exists
        handle = self.handle_factory(ContainerType.CHAIN, link.name)
        logger.debug("literal chain link", chain=link.name, alias=link.alias)
        return Link(container=handle.container_name, alias=link.alias)

    def _checked(self, chain: str, alias: str) -> Link:
        handle = self.handle_factory(ContainerType.CHAIN, chain)
        if not handle.exists():
            raise UnresolvedChainLink(f"Chain {chain} does not exist")
        return Link(container=handle.container_name, alias=alias)
