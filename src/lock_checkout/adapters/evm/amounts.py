"""
Key Price Resolution

Turns a nominal key price into the integer base-unit amount the lock
expects, reading the lock's default price or the currency decimals from
chain when they are not supplied. Lookup failures propagate unchanged.
"""

from decimal import Decimal
from typing import List, Optional, Sequence

from web3 import AsyncWeb3

from .constants import NATIVE_DECIMALS, amount_to_value, is_native_currency
from .ERC20_ABI import get_decimals_abi
from .LOCK_ABI import get_lock_read_abi


async def query_key_price(w3: AsyncWeb3, lock_address: str) -> int:
    """Current default key price of the lock, in base units."""
    lock = w3.eth.contract(address=w3.to_checksum_address(lock_address), abi=get_lock_read_abi())
    return int(await lock.functions.keyPrice().call())


async def query_lock_currency(w3: AsyncWeb3, lock_address: str) -> str:
    """Currency the lock is priced in (zero address for native)."""
    lock = w3.eth.contract(address=w3.to_checksum_address(lock_address), abi=get_lock_read_abi())
    return await lock.functions.tokenAddress().call()


async def query_token_decimals(w3: AsyncWeb3, token_address: Optional[str]) -> int:
    """
    Decimals of ``token_address``; 18 for the native currency sentinel.
    """
    if is_native_currency(token_address):
        return NATIVE_DECIMALS
    token = w3.eth.contract(address=w3.to_checksum_address(token_address), abi=get_decimals_abi())
    return int(await token.functions.decimals().call())


async def resolve_amount(
    w3: AsyncWeb3,
    lock_address: str,
    key_price: Optional[Decimal],
    decimals: Optional[int],
    token_address: Optional[str],
) -> int:
    """
    Resolve the base-unit amount to pay for one key.

    Policy, in order:
        1. No price given: the lock's current ``keyPrice()``.
        2. Price and decimals given: direct conversion.
        3. Otherwise: decimals read from the token (18 for native).

    Args:
        w3: AsyncWeb3 instance for the lock's network.
        lock_address: Lock contract address.
        key_price: Human-readable price, or None.
        decimals: Currency decimals, or None.
        token_address: Currency address (zero address / None for native).

    Returns:
        int: Amount in base units.
    """
    if key_price is None:
        return await query_key_price(w3, lock_address)
    if decimals is None:
        decimals = await query_token_decimals(w3, token_address)
    return amount_to_value(amount=key_price, decimals=decimals)


async def resolve_amounts(
    w3: AsyncWeb3,
    lock_address: str,
    key_prices: Optional[Sequence[Decimal]],
    size: int,
    decimals: Optional[int],
    token_address: Optional[str],
) -> List[int]:
    """
    Resolve one amount per recipient.

    Without overrides the lock's price is read once and shared; with
    overrides the decimals are looked up at most once.
    """
    if key_prices is None:
        default_price = await query_key_price(w3, lock_address)
        return [default_price] * size

    if decimals is None and any(price is not None for price in key_prices):
        decimals = await query_token_decimals(w3, token_address)

    amounts = []
    for price in key_prices:
        amounts.append(await resolve_amount(w3, lock_address, price, decimals, token_address))
    return amounts
