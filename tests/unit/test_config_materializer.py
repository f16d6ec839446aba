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
Unit tests for chain config generation and validator key import.
"""
import json

from chainrig.MANAGERS.config_materializer import ConfigMaterializer, generate_validator_key
from chainrig.MODELS.chain import SIMPLECHAIN, ChainType
from chainrig.errors import KeyImportFailed


class TestGenerateValidatorKey:
    """Tests for validator key generation."""

    def test_address_format(self):
        """Test that the address is 20 bytes of upper-case hex."""
        key = generate_validator_key()
        assert len(key.address) == 40
        assert key.address == key.address.upper()
        int(key.address, 16)

    def test_key_lengths(self):
        """Test the encoded key sizes."""
        key = generate_validator_key()
        assert key.pub_key[0] == 1
        assert len(key.pub_key[1]) == 64
        assert len(key.priv_key[1]) == 128
        assert key.priv_key[1].endswith(key.pub_key[1])

    def test_keys_are_unique(self):
        """Test that two generated keys differ."""
        assert generate_validator_key().address != generate_validator_key().address


class TestMaterialize:
    """Tests for ConfigMaterializer.materialize."""

    def test_files_written(self, settings, tmp_path):
        """Test that every artifact file is written to the home dir."""
        home = tmp_path / "chain"
        ConfigMaterializer(settings).materialize("mychain", SIMPLECHAIN, str(home))
        for name in ("genesis.json", "config.toml", "priv_validator.json", "addresses.csv"):
            assert (home / name).exists()

    def test_genesis_chain_id_matches_name(self, settings, tmp_path):
        """Test that the genesis chain id equals the chain name."""
        home = tmp_path / "chain"
        artifacts = ConfigMaterializer(settings).materialize("test-dir-gen", SIMPLECHAIN, str(home))
        genesis = json.loads((home / "genesis.json").read_text())
        assert genesis["chain_id"] == "test-dir-gen"
        assert artifacts.chain_id == "test-dir-gen"
        assert "accounts" in genesis
        assert "validators" in genesis

    def test_validator_in_genesis(self, settings, tmp_path):
        """Test that the validator public key is in the validator set."""
        home = tmp_path / "chain"
        artifacts = ConfigMaterializer(settings).materialize("c", SIMPLECHAIN, str(home))
        genesis = json.loads((home / "genesis.json").read_text())
        assert genesis["validators"][0]["pub_key"] == artifacts.priv_validator.pub_key
        assert genesis["accounts"][0]["address"] == artifacts.validator_address
        assert genesis["validators"][0]["unbond_to"][0]["address"] == artifacts.validator_address

    def test_config_contains_moniker(self, settings, tmp_path):
        """Test that the node config carries the moniker and chain id."""
        home = tmp_path / "chain"
        artifacts = ConfigMaterializer(settings).materialize("test-config-new", SIMPLECHAIN, str(home))
        config = (home / "config.toml").read_text()
        assert f'moniker = "{artifacts.moniker}"' in config
        assert 'chain_id = "test-config-new"' in config
        assert settings.chain_dir("test-config-new") in config

    def test_multiple_validators(self, settings, tmp_path):
        """Test a chain type with several validators."""
        home = tmp_path / "chain"
        chain_type = ChainType(name="multi", validators=3)
        artifacts = ConfigMaterializer(settings).materialize("multi", chain_type, str(home))
        genesis = json.loads((home / "genesis.json").read_text())
        assert len(genesis["validators"]) == 3
        assert (home / "priv_validator_2.json").exists()
        assert artifacts.moniker == "multi_val_0"

    def test_existing_files_kept(self, settings, tmp_path):
        """Test that unrelated files in the home dir survive."""
        home = tmp_path / "chain"
        home.mkdir()
        (home / "notes.txt").write_text("keep me")
        ConfigMaterializer(settings).materialize("c", SIMPLECHAIN, str(home))
        assert (home / "notes.txt").read_text() == "keep me"


class StubKeys:
    """Keys client double recording imports."""

    def __init__(self, fail=False):
        self.fail = fail
        self.imported = []

    def import_key(self, priv_validator):
        if self.fail:
            raise KeyImportFailed("keys service unavailable")
        self.imported.append(priv_validator.address)
        return priv_validator.address


class TestImportKey:
    """Tests for the best-effort key import."""

    def test_import_success(self, settings, tmp_path):
        """Test that a successful import is recorded."""
        keys = StubKeys()
        materializer = ConfigMaterializer(settings, keys=keys)
        artifacts = materializer.materialize("c", SIMPLECHAIN, str(tmp_path / "c"))
        assert materializer.import_key(artifacts) is True
        assert artifacts.key_imported is True
        assert keys.imported == [artifacts.validator_address]

    def test_import_failure_is_not_fatal(self, settings, tmp_path):
        """Test that a failed import only reports False."""
        materializer = ConfigMaterializer(settings, keys=StubKeys(fail=True))
        artifacts = materializer.materialize("c", SIMPLECHAIN, str(tmp_path / "c"))
        assert materializer.import_key(artifacts) is False
        assert artifacts.key_imported is False

    def test_no_keys_client(self, settings, tmp_path):
        """Test that the import is skipped without a keys client."""
        materializer = ConfigMaterializer(settings)
        artifacts = materializer.materialize("c", SIMPLECHAIN, str(tmp_path / "c"))
        assert materializer.import_key(artifacts) is False


class TestChainFiles:
    """Tests against the files of a created chain."""

    def test_cat_config(self, orchestrator):
        """Test that the chain config in the data volume has a moniker."""
        orchestrator.create_chain("test-cat-cont-config")
        assert "moniker" in orchestrator.diagnostics.cat_chain("test-cat-cont-config", "config")

    def test_cat_genesis(self, orchestrator):
        """Test that the genesis in the data volume has accounts and validators."""
        orchestrator.create_chain("test-chain")
        genesis = orchestrator.diagnostics.cat_chain("test-chain", "genesis")
        assert "accounts" in genesis
        assert "validators" in genesis
        assert json.loads(genesis)["chain_id"] == "test-chain"

    def test_keys_imported(self, orchestrator):
        """Test that the validator key shows up in the keys service under its address."""
        chain = orchestrator.create_chain("test-config-keys")
        assert chain.artifacts.key_imported

        addresses = orchestrator.keys.list_addresses()
        assert addresses == [chain.artifacts.validator_address]
        stored = orchestrator.keys.read_key(addresses[0])
        assert addresses[0] in stored.split()[0]

    def test_key_import_failure_keeps_chain(self, orchestrator, engine):
        """Test that chain creation succeeds when the keys service cannot start."""
        engine.fail_start.add("chainrig_service_keys")
        chain = orchestrator.create_chain("no-keys")
        assert chain.artifacts.key_imported is False
        assert orchestrator.chains.running("no-keys")
