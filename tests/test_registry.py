"""
Tests for the adapter registry.
"""
from unittest.mock import AsyncMock, MagicMock

import pytest

from xchain_sdk.adapters.eos import EosAdapter
from xchain_sdk.adapters.evm import EvmAdapter
from xchain_sdk.exceptions import CapabilityError, ConfigError
from xchain_sdk.registry import AdapterRegistry
from conftest import FakeNonceSource, TEST_ADDRESS


class TestGetAdapter:
    """Tests for lazy adapter creation"""

    def test_creates_adapter_per_family(self):
        registry = AdapterRegistry()

        eos = registry.get_adapter("eos")
        eth = registry.get_adapter("ETH")

        assert isinstance(eos, EosAdapter)
        assert isinstance(eth, EvmAdapter)
        assert registry.get_adapter("EOS") is eos

    def test_leader_flag_propagates(self):
        registry = AdapterRegistry(is_leader=True)
        assert registry.get_adapter("EOS").is_leader is True

    def test_overrides_applied(self):
        registry = AdapterRegistry(overrides={"eos": {"node_url": "https://other.example.com"}})
        assert registry.get_adapter("EOS").settings.node_url == "https://other.example.com"

    def test_testnet_section(self):
        registry = AdapterRegistry(testnet=True)
        assert "jungle" in registry.get_adapter("EOS").settings.node_url

    def test_unknown_chain_type(self):
        with pytest.raises(ConfigError):
            AdapterRegistry().get_adapter("DOGE")

    def test_unknown_family(self):
        registry = AdapterRegistry(overrides={"EOS": {"family": "utxo"}})
        with pytest.raises(ConfigError) as exc_info:
            registry.get_adapter("EOS")
        assert "utxo" in str(exc_info.value)

    def test_register_replaces(self):
        registry = AdapterRegistry()
        adapter = MagicMock(chain_type="eos")
        registry.register(adapter)
        assert registry.get_adapter("EOS") is adapter


class TestNonces:
    """Tests for nonce operations routed through the registry"""

    @pytest.mark.asyncio
    async def test_allocate_through_registry(self):
        registry = AdapterRegistry()
        source = FakeNonceSource(nonce=3)
        source.chain_type = "ETH"
        registry.register(source)

        assert await registry.allocate_nonce("ETH", TEST_ADDRESS) == 3
        assert await registry.allocate_nonce("eth", TEST_ADDRESS) == 4

        source.nonce = 10
        state = await registry.renew_nonce("ETH", TEST_ADDRESS)
        assert state.last_allocated == 9

    @pytest.mark.asyncio
    async def test_init_nonce(self):
        registry = AdapterRegistry()
        source = FakeNonceSource(nonce=5)
        source.chain_type = "ETH"
        registry.register(source)

        state = await registry.init_nonce("ETH", TEST_ADDRESS)
        assert state.last_allocated == 4

    @pytest.mark.asyncio
    async def test_init_nonce_skipped_during_storeman_renewal(self):
        registry = AdapterRegistry(storeman_renew=True)
        source = FakeNonceSource(nonce=5)
        source.chain_type = "ETH"
        registry.register(source)

        assert await registry.init_nonce("ETH", TEST_ADDRESS) is None
        assert source.calls == 0

    @pytest.mark.asyncio
    async def test_chain_without_nonces(self):
        registry = AdapterRegistry()
        with pytest.raises(CapabilityError):
            await registry.allocate_nonce("EOS", TEST_ADDRESS)


@pytest.mark.asyncio
async def test_aclose_closes_adapters():
    registry = AdapterRegistry()
    adapter = MagicMock(chain_type="EOS")
    adapter.aclose = AsyncMock()
    registry.register(adapter)

    await registry.aclose()

    adapter.aclose.assert_awaited_once()
    assert registry._adapters == {}
