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
Unit tests for starting services and linking them to chains.
"""
import pytest

from chainrig.MODELS.container import ContainerType
from chainrig.errors import (
    MissingChainContext,
    NotFound,
    UnresolvedChainLink,
)


def service_running(orchestrator, name):
    return orchestrator.handle(ContainerType.SERVICE, name).running()


def data_exists(orchestrator, name):
    return orchestrator.handle(ContainerType.DATA, name).exists()


def links_of(orchestrator, name):
    host_config = orchestrator.handle(ContainerType.SERVICE, name).inspect()["HostConfig"]
    return host_config["Links"] or []


class TestServiceLinks:
    """Tests for chain linking at service start."""

    def test_link_no_chain(self, orchestrator, write_service):
        """Test that a $chain link without a chain name fails and creates nothing."""
        write_service("fake", """
chain = "$chain:fake"

[service]
name = "fake"
image = "ipfs"
data_container = true
""")
        with pytest.raises(MissingChainContext):
            orchestrator.start_service("fake")
        assert not orchestrator.services.exists("fake")
        assert not data_exists(orchestrator, "fake")

    def test_link_bad_chain(self, orchestrator, write_service):
        """Test that a $chain link to an absent chain fails."""
        write_service("fake", """
chain = "$chain:fake"

[service]
name = "fake"
image = "ipfs"
""")
        with pytest.raises(UnresolvedChainLink):
            orchestrator.start_service("fake", "non-existent-chain")
        assert not service_running(orchestrator, "fake")

    def test_no_chain_in_definition(self, orchestrator, write_service):
        """Test that a service without a chain field ignores the chain name."""
        orchestrator.create_chain("test-chain")
        write_service("fake", """
[service]
name = "fake"
image = "ipfs"
""")
        result = orchestrator.start_service("fake", "non-existent-chain")
        assert service_running(orchestrator, "fake")
        assert not data_exists(orchestrator, "fake")
        assert result.links == []
        assert links_of(orchestrator, "fake") == []

    def test_link(self, orchestrator, write_service):
        """Test linking a service to the named chain."""
        chain = orchestrator.create_chain("test-chain-link")
        write_service("fake", """
chain = "$chain:fake"

[service]
name = "fake"
image = "keys"
data_container = false
""")
        assert not service_running(orchestrator, "fake")

        result = orchestrator.start_service("fake", "test-chain-link")
        assert service_running(orchestrator, "fake")
        assert not data_exists(orchestrator, "fake")

        links = links_of(orchestrator, "fake")
        assert len(links) == 1
        assert "/fake" in links[0]
        assert links[0].startswith(f"/{chain.container}:")
        assert [link.alias for link in result.links] == ["fake"]

    def test_link_with_data_container(self, orchestrator, write_service):
        """Test a linked service that also gets a data container."""
        orchestrator.create_chain("test-chain-data-container")
        write_service("fake", """
chain = "$chain:fake"

[service]
name = "fake"
image = "ipfs"
data_container = true
""")
        assert not data_exists(orchestrator, "fake")

        result = orchestrator.start_service("fake", "test-chain-data-container")
        assert service_running(orchestrator, "fake")
        assert data_exists(orchestrator, "fake")
        assert len(result.links) == 1
        assert "/fake" in result.links[0].render("x")

    def test_link_literal(self, orchestrator, write_service):
        """Test a literal chain link."""
        chain = orchestrator.create_chain("test-chain-literal")
        write_service("fake", """
chain = "test-chain-literal:fake"

[service]
name = "fake"
image = "keys"
""")
        orchestrator.start_service("fake", "test-chain-literal")
        assert service_running(orchestrator, "fake")
        assert not data_exists(orchestrator, "fake")

        links = links_of(orchestrator, "fake")
        assert len(links) == 1
        assert links[0].startswith(f"/{chain.container}:")
        assert links[0].endswith("/fake")

    def test_link_bad_literal(self, orchestrator, write_service):
        """Test that a literal naming a missing chain still starts and links."""
        orchestrator.create_chain("test-chain-bad-literal")
        write_service("fake", """
chain = "blah-blah:blah"

[service]
name = "fake"
image = "keys"
""")
        orchestrator.start_service("fake", "test-chain-bad-literal")
        links = links_of(orchestrator, "fake")
        assert len(links) == 1
        assert "/blah" in links[0]

    def test_keys_has_no_links(self, orchestrator):
        """Test that the built-in keys service starts without links."""
        orchestrator.create_chain("chain-test-keys")
        result = orchestrator.start_service("keys", "chain-test-keys")
        assert service_running(orchestrator, "keys")
        assert result.links == []
        assert links_of(orchestrator, "keys") == []


class TestServiceLifecycle:
    """Tests for idempotence, stop and removal."""

    def test_start_twice_is_noop(self, orchestrator, write_service, engine):
        """Test that a running service is not restarted."""
        orchestrator.create_chain("c")
        write_service("fake", 'chain = "$chain:fake"\n[service]\nimage = "x"\ndata_container = true\n')
        first = orchestrator.start_service("fake", "c")
        starts = engine.calls.count(("start", "chainrig_service_fake"))

        second = orchestrator.start_service("fake", "c")
        assert engine.calls.count(("start", "chainrig_service_fake")) == starts
        assert second.links == first.links

    def test_running_service_ignores_context(self, orchestrator, write_service):
        """Test that a running service is not re-resolved."""
        orchestrator.create_chain("c")
        write_service("fake", 'chain = "$chain:fake"\n[service]\nimage = "x"\n')
        orchestrator.start_service("fake", "c")
        assert len(orchestrator.start_service("fake").links) == 1

    def test_restart_stopped_service(self, orchestrator, write_service):
        """Test that a stopped service is started again with its original links."""
        orchestrator.create_chain("c")
        write_service("fake", 'chain = "$chain:fake"\n[service]\nimage = "x"\n')
        orchestrator.start_service("fake", "c")
        orchestrator.services.stop("fake")
        assert not service_running(orchestrator, "fake")

        result = orchestrator.start_service("fake", "c")
        assert service_running(orchestrator, "fake")
        assert [link.alias for link in result.links] == ["fake"]

    def test_stop_missing(self, orchestrator):
        with pytest.raises(NotFound):
            orchestrator.services.stop("nope")

    def test_remove_with_data(self, orchestrator, write_service):
        """Test removing a service together with its data container."""
        write_service("fake", '[service]\nimage = "x"\ndata_container = true\n')
        orchestrator.start_service("fake")
        orchestrator.kill_service(["fake"], remove=True, remove_data=True)
        assert not orchestrator.services.exists("fake")
        assert not data_exists(orchestrator, "fake")

    def test_remove_keeps_data(self, orchestrator, write_service):
        """Test that removal keeps the data container unless asked."""
        write_service("fake", '[service]\nimage = "x"\ndata_container = true\n')
        orchestrator.start_service("fake")
        orchestrator.kill_service(["fake"], remove=True)
        assert not orchestrator.services.exists("fake")
        assert data_exists(orchestrator, "fake")

    def test_kill_without_remove(self, orchestrator, write_service):
        write_service("fake", '[service]\nimage = "x"\n')
        orchestrator.start_service("fake")
        orchestrator.kill_service(["fake"])
        assert orchestrator.services.exists("fake")
        assert not service_running(orchestrator, "fake")

    def test_remove_missing(self, orchestrator):
        with pytest.raises(NotFound):
            orchestrator.services.remove("nope")

    def test_list(self, orchestrator, write_service):
        write_service("fake", '[service]\nimage = "x"\n')
        orchestrator.start_service("fake")
        assert orchestrator.services.list() == ["fake"]
