"""
Purchase Confirmation

Waits for a purchase transaction to be mined and reads the key ids the lock
reported. Logs are filtered by emitter before decoding: a payment token's
own ``Transfer`` has the same shape as a key mint and must not count.
"""

from typing import Any, Iterable, List, Mapping, Optional

import structlog
from eth_abi.exceptions import DecodingError
from web3 import Web3
from web3.exceptions import LogTopicError, MismatchedABI

from .adapter import WalletSession
from .LOCK_ABI import get_lock_events_abi
from ...engine.exceptions import TransactionFailedError
from ...schemas.bases import PurchaseStatus
from ...schemas.purchases import PurchaseOutcome

logger = structlog.get_logger(__name__)

_lock_events = Web3().eth.contract(abi=get_lock_events_abi())


def _emitted_by(log: Mapping[str, Any], address: str) -> bool:
    emitter = log.get("address")
    return isinstance(emitter, str) and emitter.lower() == address.lower()


def extract_token_ids(logs: Iterable[Mapping[str, Any]], lock_address: str, renew: bool = False) -> List[int]:
    """
    Key ids announced by ``lock_address`` in ``logs``.

    Purchases are read from ``Transfer``, renewals from ``KeyExtended``.
    Logs from other emitters are skipped without decoding; logs from the
    lock that are not the expected event are skipped after a failed decode.
    """
    event = _lock_events.events.KeyExtended() if renew else _lock_events.events.Transfer()
    token_ids = []
    for log in logs:
        if not _emitted_by(log, lock_address):
            continue
        try:
            decoded = event.process_log(log)
        except (MismatchedABI, LogTopicError, DecodingError):
            continue
        token_ids.append(int(decoded["args"]["tokenId"]))
    return token_ids


def extract_renewed_owners(logs: Iterable[Mapping[str, Any]], lock_address: str) -> List[str]:
    """Owners whose keys ``lock_address`` renewed through a legacy ``purchase``."""
    event = _lock_events.events.RenewKeyPurchase()
    owners = []
    for log in logs:
        if not _emitted_by(log, lock_address):
            continue
        try:
            decoded = event.process_log(log)
        except (MismatchedABI, LogTopicError, DecodingError):
            continue
        owners.append(decoded["args"]["owner"])
    return owners


async def resolve_confirmation(
    session: WalletSession,
    chain_id: int,
    tx_hash: str,
    lock_address: str,
    renew: bool = False,
    renewed_owner: Optional[str] = None,
    renewed_token_id: Optional[int] = None,
) -> PurchaseOutcome:
    """
    Wait for ``tx_hash`` and interpret its receipt.

    Args:
        session: Session the transaction was sent through.
        chain_id: Network of the transaction.
        tx_hash: Hash returned at broadcast.
        lock_address: Lock the key event is expected from.
        renew: Look for ``KeyExtended`` instead of ``Transfer``.
        renewed_owner: Owner of the key a legacy lock renews. Its
            ``RenewKeyPurchase`` event carries no key id, so a match is
            reported as ``renewed_token_id``.
        renewed_token_id: Key id known for ``renewed_owner``.

    Returns:
        PurchaseOutcome: CONFIRMED with the key ids, or UNCONFIRMED when the
        receipt succeeded but carried no key event.

    Raises:
        TransactionFailedError: If the receipt status is 0, whatever the logs.
        web3.exceptions.TimeExhausted: If the network client gave up waiting.
    """
    receipt = await session.wait_for_receipt(tx_hash, chain_id)
    if receipt.get("status") != 1:
        raise TransactionFailedError(f"Transaction reverted: {tx_hash}", tx_hash=tx_hash)

    logs = receipt.get("logs") or []
    token_ids = extract_token_ids(logs, lock_address, renew=renew)
    if not token_ids and renewed_owner is not None and renewed_token_id is not None:
        owners = [owner.lower() for owner in extract_renewed_owners(logs, lock_address)]
        if renewed_owner.lower() in owners:
            token_ids = [renewed_token_id]
    if not token_ids:
        logger.warning("key_event_missing", network=chain_id, tx_hash=tx_hash, lock=lock_address)
        return PurchaseOutcome(
            status=PurchaseStatus.UNCONFIRMED,
            network=chain_id,
            transaction_hashes=[tx_hash],
            message="Transaction succeeded but no key event was found",
        )

    logger.info("purchase_confirmed", network=chain_id, tx_hash=tx_hash, token_ids=token_ids)
    return PurchaseOutcome(
        status=PurchaseStatus.CONFIRMED,
        network=chain_id,
        transaction_hashes=[tx_hash],
        token_ids=token_ids,
    )
