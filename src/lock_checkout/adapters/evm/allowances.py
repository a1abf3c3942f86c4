"""
ERC20 Allowance Management

Makes sure a spender contract (the lock, or the swap purchaser) may pull
enough of the payment token before the spending call is built. Native
currency needs no approval.
"""

from typing import Optional

import structlog
from web3 import AsyncWeb3, Web3
from web3.exceptions import TimeExhausted, Web3Exception

from .adapter import WalletSession
from .constants import is_native_currency
from .ERC20_ABI import get_allowance_abi, get_approve_abi, get_balance_abi
from .schemas import TransactionPlan
from ...engine.exceptions import ApprovalFailedError

logger = structlog.get_logger(__name__)

_approve_codec = Web3().eth.contract(abi=get_approve_abi())


async def query_erc20_allowance(w3: AsyncWeb3, token_addr: str, owner: str, spender: str) -> int:
    """
    Retrieves the amount of tokens that an owner allowed a spender to withdraw.

    Args:
        w3 (AsyncWeb3): The Web3 instance connected to the target blockchain.
        token_addr (str): The contract address of the ERC20 token.
        owner (str): The address of the token holder.
        spender (str): The address authorized to spend the tokens.

    Returns:
        int: The remaining allowance amount in the token's base units.

    Raises:
        ValueError: If any provided address is not a valid hex address.
        Web3Exception: If the contract call fails or the node returns an error.
    """
    contract = w3.eth.contract(address=w3.to_checksum_address(token_addr), abi=get_allowance_abi())
    allowance = await contract.functions.allowance(
        w3.to_checksum_address(owner),
        w3.to_checksum_address(spender),
    ).call()
    return int(allowance)


async def query_erc20_balance(w3: AsyncWeb3, token_addr: str, owner: str) -> int:
    """Token balance of ``owner`` in base units."""
    contract = w3.eth.contract(address=w3.to_checksum_address(token_addr), abi=get_balance_abi())
    return int(await contract.functions.balanceOf(w3.to_checksum_address(owner)).call())


def build_approve_plan(w3: AsyncWeb3, token_addr: str, spender: str, amount: int) -> TransactionPlan:
    """Encode ``approve(spender, amount)`` on ``token_addr``."""
    token = w3.to_checksum_address(token_addr)
    data = _approve_codec.encode_abi("approve", args=[w3.to_checksum_address(spender), amount])
    return TransactionPlan(to=token, data=data, value=0)


async def ensure_allowance(
    session: WalletSession,
    chain_id: int,
    token_addr: Optional[str],
    spender: str,
    required: int,
    cap: Optional[int] = None,
) -> Optional[str]:
    """
    Guarantee ``spender`` may spend at least ``required`` of ``token_addr``.

    Returns immediately for the native currency or when the current
    allowance already covers ``required``. Otherwise broadcasts a single
    ``approve(spender, cap)`` and waits for it to be mined.

    Args:
        session: Signing session (the token owner).
        chain_id: Network of the token.
        token_addr: Payment token (zero address / None for native).
        spender: Contract that will pull the tokens.
        required: Amount the upcoming call spends, in base units.
        cap: Amount to approve; defaults to ``required``. May be MAX_UINT256.

    Returns:
        The approval transaction hash, or None when no approval was needed.

    Raises:
        ApprovalFailedError: If the approval reverted or was not mined in time.
        Web3Exception: If the allowance lookup or the broadcast fails.
    """
    if is_native_currency(token_addr):
        return None

    w3 = session.web3(chain_id)
    current = await query_erc20_allowance(w3, token_addr, session.wallet_address, spender)
    if current >= required:
        logger.debug("allowance_sufficient", token=token_addr, spender=spender, allowance=current)
        return None

    amount = cap if cap is not None else required
    plan = build_approve_plan(w3, token_addr, spender, amount)
    tx_hash = await session.send_transaction(plan, chain_id)
    logger.info("approval_submitted", token=token_addr, spender=spender, amount=amount, tx_hash=tx_hash)

    try:
        receipt = await session.wait_for_receipt(tx_hash, chain_id)
    except (TimeExhausted, Web3Exception) as e:
        raise ApprovalFailedError(f"Approval transaction was not mined: {e}", tx_hash=tx_hash) from e

    if receipt.get("status") != 1:
        raise ApprovalFailedError(f"Approval transaction reverted: {tx_hash}", tx_hash=tx_hash)
    return tx_hash
