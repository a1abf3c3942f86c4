"""
Wallet session tests: signer resolution, RPC resolution and broadcast.
"""

import pytest
from hexbytes import HexBytes

from lock_checkout.adapters.evm.adapter import WalletSession, to_hex_hash
from lock_checkout.adapters.evm.schemas import TransactionPlan
from lock_checkout.engine.exceptions import ConfigurationError, UserRejectedError

from mocks import (
    MOCK_BASE_FEE,
    MOCK_CHAIN_ID,
    MOCK_GAS_ESTIMATE,
    MOCK_GAS_PRICE,
    MOCK_LOCK_ADDRESS,
    MOCK_PRIORITY_FEE,
    MOCK_PRIVATE_KEY,
    MOCK_SIGNER_ADDRESS,
    MockWeb3Provider,
    create_session,
)


class TestSessionSetup:

    def test_requires_a_signer(self):
        with pytest.raises(ConfigurationError):
            WalletSession()

    def test_private_key_from_environment(self, monkeypatch):
        monkeypatch.setenv("EVM_PRIVATE_KEY", MOCK_PRIVATE_KEY)

        session = WalletSession()

        assert session.get_wallet_address() == MOCK_SIGNER_ADDRESS
        assert session.account is not None

    def test_remote_signer_address(self):
        session = WalletSession(address=MOCK_SIGNER_ADDRESS.lower())

        assert session.account is None
        assert session.wallet_address == MOCK_SIGNER_ADDRESS

    def test_unknown_network_has_no_rpc(self):
        session = WalletSession(address=MOCK_SIGNER_ADDRESS)

        with pytest.raises(ConfigurationError):
            session.web3(999_999)

    def test_web3_instance_cached_per_network(self):
        session = WalletSession(address=MOCK_SIGNER_ADDRESS, rpc_urls={MOCK_CHAIN_ID: "http://localhost:8545"})

        assert session.web3(MOCK_CHAIN_ID) is session.web3(MOCK_CHAIN_ID)

    def test_receipt_timeout_from_environment(self, monkeypatch):
        monkeypatch.setenv("EVM_RECEIPT_TIMEOUT", "30")

        session = WalletSession(address=MOCK_SIGNER_ADDRESS)

        assert session._receipt_timeout == 30.0


class TestSendTransaction:

    @pytest.mark.asyncio
    async def test_remote_signer_fills_gas_and_fees(self):
        provider = MockWeb3Provider()
        session = create_session(provider)

        tx_hash = await session.send_transaction(TransactionPlan(to=MOCK_LOCK_ADDRESS, data="0x", value=9), MOCK_CHAIN_ID)

        assert tx_hash.startswith("0x") and len(tx_hash) == 66
        sent = provider.sent[0]
        assert sent["from"] == MOCK_SIGNER_ADDRESS
        assert sent["chainId"] == MOCK_CHAIN_ID
        assert sent["value"] == 9
        assert sent["gas"] == MOCK_GAS_ESTIMATE
        assert sent["maxFeePerGas"] == 2 * MOCK_BASE_FEE + MOCK_PRIORITY_FEE
        assert "gasPrice" not in sent

    @pytest.mark.asyncio
    async def test_plan_gas_limit_is_kept(self):
        provider = MockWeb3Provider()
        session = create_session(provider)

        await session.send_transaction(TransactionPlan(to=MOCK_LOCK_ADDRESS, gas_limit=260_000), MOCK_CHAIN_ID)

        assert provider.sent[0]["gas"] == 260_000
        provider.eth.estimate_gas.assert_not_called()

    @pytest.mark.asyncio
    async def test_plan_fees_are_kept(self):
        provider = MockWeb3Provider()
        session = create_session(provider)

        await session.send_transaction(
            TransactionPlan(to=MOCK_LOCK_ADDRESS, gas_limit=21_000, gas_price=7), MOCK_CHAIN_ID
        )

        assert provider.sent[0]["gasPrice"] == 7
        provider.eth.get_block.assert_not_called()

    @pytest.mark.asyncio
    async def test_legacy_network_uses_gas_price(self):
        provider = MockWeb3Provider(base_fee=None)
        session = create_session(provider)

        await session.send_transaction(TransactionPlan(to=MOCK_LOCK_ADDRESS, gas_limit=21_000), MOCK_CHAIN_ID)

        assert provider.sent[0]["gasPrice"] == MOCK_GAS_PRICE

    @pytest.mark.asyncio
    async def test_local_key_signs_and_broadcasts_raw(self):
        provider = MockWeb3Provider(tx_count=4)
        session = create_session(provider, private_key=MOCK_PRIVATE_KEY)

        tx_hash = await session.send_transaction(
            TransactionPlan(to=MOCK_LOCK_ADDRESS, data="0x1234", value=1, gas_limit=100_000), MOCK_CHAIN_ID
        )

        provider.eth.send_transaction.assert_not_called()
        provider.eth.send_raw_transaction.assert_awaited_once()
        provider.eth.get_transaction_count.assert_awaited_once_with(MOCK_SIGNER_ADDRESS, "pending")
        assert isinstance(provider.sent[0]["raw"], bytes)
        assert tx_hash == provider.timeline[0][1]

    @pytest.mark.asyncio
    async def test_wallet_rejection_raises_user_rejected(self):
        provider = MockWeb3Provider()
        rejection = ValueError({"code": 4001, "message": "User rejected the request."})
        provider.eth.send_transaction.side_effect = rejection
        session = create_session(provider)

        with pytest.raises(UserRejectedError) as exc_info:
            await session.send_transaction(TransactionPlan(to=MOCK_LOCK_ADDRESS, gas_limit=21_000), MOCK_CHAIN_ID)

        assert exc_info.value.__cause__ is rejection
        assert provider.sent == []

    @pytest.mark.asyncio
    async def test_action_rejected_from_local_signer(self):
        provider = MockWeb3Provider()
        rejection = ValueError("ACTION_REJECTED")
        rejection.code = "ACTION_REJECTED"
        provider.eth.send_raw_transaction.side_effect = rejection
        session = create_session(provider, private_key=MOCK_PRIVATE_KEY)

        with pytest.raises(UserRejectedError):
            await session.send_transaction(TransactionPlan(to=MOCK_LOCK_ADDRESS, gas_limit=21_000), MOCK_CHAIN_ID)

    @pytest.mark.asyncio
    async def test_other_broadcast_errors_propagate(self):
        provider = MockWeb3Provider()
        provider.eth.send_transaction.side_effect = ValueError("nonce too low")
        session = create_session(provider)

        with pytest.raises(ValueError, match="nonce too low") as exc_info:
            await session.send_transaction(TransactionPlan(to=MOCK_LOCK_ADDRESS, gas_limit=21_000), MOCK_CHAIN_ID)

        assert not isinstance(exc_info.value, UserRejectedError)


def test_to_hex_hash():
    assert to_hex_hash(HexBytes(b"\x01" * 32)) == "0x" + "01" * 32
    assert to_hex_hash("ab" * 32) == "0x" + "ab" * 32
