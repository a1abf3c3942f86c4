"""
Allowance manager tests.
"""

import pytest
from web3.exceptions import TimeExhausted

from lock_checkout.adapters.evm.allowances import ensure_allowance
from lock_checkout.adapters.evm.constants import MAX_UINT256, ZERO_ADDRESS
from lock_checkout.adapters.evm.ERC20_ABI import get_approve_abi
from lock_checkout.engine.exceptions import ApprovalFailedError

from mocks import (
    MOCK_CHAIN_ID,
    MOCK_LOCK_ADDRESS,
    MOCK_SIGNER_ADDRESS,
    MOCK_TOKEN_ADDRESS,
    MockWeb3Provider,
    create_session,
    decode_call,
    make_receipt,
    setup_token,
)


def _decode_approve(data: str):
    params = decode_call(get_approve_abi(), data)
    return params["spender"], params["amount"]


@pytest.mark.asyncio
async def test_native_currency_needs_no_approval():
    provider = MockWeb3Provider()
    session = create_session(provider)

    result = await ensure_allowance(session, MOCK_CHAIN_ID, ZERO_ADDRESS, MOCK_LOCK_ADDRESS, 10**18)

    assert result is None
    provider.eth.contract.assert_not_called()
    assert provider.sent == []


@pytest.mark.asyncio
async def test_sufficient_allowance_is_idempotent():
    provider = MockWeb3Provider()
    token = setup_token(provider, allowance=1000)
    session = create_session(provider)

    for _ in range(3):
        result = await ensure_allowance(session, MOCK_CHAIN_ID, MOCK_TOKEN_ADDRESS, MOCK_LOCK_ADDRESS, 1000)
        assert result is None

    assert provider.sent == []
    owner, spender = token.functions.allowance.call_args.args
    assert owner == MOCK_SIGNER_ADDRESS
    assert spender == MOCK_LOCK_ADDRESS


@pytest.mark.asyncio
async def test_approves_required_amount_and_waits_for_receipt():
    provider = MockWeb3Provider()
    setup_token(provider, allowance=10)
    session = create_session(provider)

    tx_hash = await ensure_allowance(session, MOCK_CHAIN_ID, MOCK_TOKEN_ADDRESS, MOCK_LOCK_ADDRESS, 1000)

    assert len(provider.sent) == 1
    sent = provider.sent[0]
    assert sent["to"] == MOCK_TOKEN_ADDRESS
    assert sent["value"] == 0
    assert _decode_approve(sent["data"]) == (MOCK_LOCK_ADDRESS, 1000)
    assert provider.timeline == [("submitted", tx_hash), ("receipt", tx_hash)]


@pytest.mark.asyncio
async def test_approves_cap_when_given():
    provider = MockWeb3Provider()
    setup_token(provider, allowance=0)
    session = create_session(provider)

    await ensure_allowance(session, MOCK_CHAIN_ID, MOCK_TOKEN_ADDRESS, MOCK_LOCK_ADDRESS, 1000, cap=MAX_UINT256)

    assert _decode_approve(provider.sent[0]["data"]) == (MOCK_LOCK_ADDRESS, MAX_UINT256)


@pytest.mark.asyncio
async def test_reverted_approval_raises():
    provider = MockWeb3Provider()
    setup_token(provider, allowance=0)
    provider.queue_receipt(make_receipt(status=0))
    session = create_session(provider)

    with pytest.raises(ApprovalFailedError) as exc_info:
        await ensure_allowance(session, MOCK_CHAIN_ID, MOCK_TOKEN_ADDRESS, MOCK_LOCK_ADDRESS, 1000)

    assert exc_info.value.tx_hash == provider.timeline[0][1]
    assert len(provider.sent) == 1


@pytest.mark.asyncio
async def test_unmined_approval_raises_chained():
    provider = MockWeb3Provider()
    setup_token(provider, allowance=0)
    provider.eth.wait_for_transaction_receipt.side_effect = TimeExhausted("not mined")
    session = create_session(provider)

    with pytest.raises(ApprovalFailedError) as exc_info:
        await ensure_allowance(session, MOCK_CHAIN_ID, MOCK_TOKEN_ADDRESS, MOCK_LOCK_ADDRESS, 1000)

    assert isinstance(exc_info.value.__cause__, TimeExhausted)
