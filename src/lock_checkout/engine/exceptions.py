"""
Exception and Error Definitions Module

Defines the exception hierarchy for key purchases, allowance approvals and
checkout state transitions. All exceptions inherit from CheckoutError for
unified exception handling.

Exception Hierarchy:
    CheckoutError (root)
    ├── RequestValidationError
    ├── ConfigurationError
    ├── UserRejectedError
    ├── InsufficientValueError
    ├── GasEstimationError
    ├── BlockchainInteractionError
    │   ├── ApprovalFailedError
    │   └── TransactionFailedError
    └── InvalidTransition
        └── PurchaseInFlightError

``classify_error`` maps any exception raised during an attempt, including raw
web3 RPC errors, to an :class:`ErrorReason`.
"""

from typing import Any, Optional

from pydantic import ValidationError
from web3.exceptions import ContractLogicError, TimeExhausted, Web3Exception

from ..schemas.bases import ErrorReason


#: Wallet error codes meaning the signer declined the request.
USER_REJECTION_CODES = (4001, -32000, "ACTION_REJECTED")


class CheckoutError(Exception):
    """
    Root exception class for all project-specific exceptions.

    All custom exceptions inherit from this class so callers can catch the
    whole family in one place.
    """
    pass


class RequestValidationError(CheckoutError, ValueError):
    """
    Raised when a purchase request is malformed.

    This includes scenarios such as:
    - Per-recipient arrays whose length differs from the recipient count
    - Renewal requested for more than one recipient
    - Swap requested against a lock that cannot batch recipients

    Always raised before any network call is made.
    """
    pass


class ConfigurationError(CheckoutError):
    """
    Raised when configuration is missing or invalid.

    This includes scenarios such as:
    - No RPC URL known for a network
    - No swap purchaser contract configured for a network
    - No signer available for the session
    """
    pass


class UserRejectedError(CheckoutError):
    """
    Raised when the signer declined to sign the transaction.

    Reported to the user, never retried automatically.
    """
    pass


class InsufficientValueError(CheckoutError):
    """
    Raised before broadcast when the signer cannot cover the resolved price.

    Attributes:
        required: Amount required in base units
        available: Amount available in base units
    """

    def __init__(self, message: str, required: int = 0, available: int = 0):
        super().__init__(message)
        self.required = required
        self.available = available


class GasEstimationError(CheckoutError):
    """
    Raised inside the gas estimator when precise estimation fails.

    Never leaves the estimator: it is converted to an "estimate unavailable"
    result and the wallet estimates unaided.
    """
    pass


class BlockchainInteractionError(CheckoutError):
    """
    Raised when a blockchain transaction does not reach the expected outcome.

    Attributes:
        tx_hash: Transaction hash if one was broadcast
    """

    def __init__(self, message: str, tx_hash: Optional[str] = None):
        super().__init__(message)
        self.tx_hash = tx_hash


class ApprovalFailedError(BlockchainInteractionError):
    """
    Raised when the ERC20 approval transaction reverted or failed to mine.

    Fatal to the enclosing purchase attempt: no spending call is attempted.
    """
    pass


class TransactionFailedError(BlockchainInteractionError):
    """
    Raised when the purchase receipt status indicates reversion.

    The transaction hash is kept for explorer lookup.
    """
    pass


class InvalidTransition(CheckoutError):
    """
    Raised when the checkout state machine receives an event that is not
    valid for its current state.

    Attributes:
        state: Current checkout state
        event_type: Name of the rejected event
    """

    def __init__(self, message: str, state: Any = None, event_type: Optional[str] = None):
        super().__init__(message)
        self.state = state
        self.event_type = event_type


class PurchaseInFlightError(InvalidTransition):
    """
    Raised when a confirm request arrives while a purchase attempt is
    already outstanding for the same session. The request is rejected, not
    queued; the first attempt's outcome stays authoritative.
    """
    pass


def _rpc_error_code(exc: BaseException) -> Any:
    """Extract a wallet/RPC error code from an exception, if it carries one."""
    code = getattr(exc, "code", None)
    if code is not None:
        return code
    rpc_response = getattr(exc, "rpc_response", None)
    if isinstance(rpc_response, dict):
        error = rpc_response.get("error") or {}
        if isinstance(error, dict):
            return error.get("code")
    if exc.args and isinstance(exc.args[0], dict):
        return exc.args[0].get("code")
    return None


def is_user_rejection(exc: BaseException) -> bool:
    """
    True when a raw wallet or RPC error means the signer declined.

    Insufficient-funds errors share the generic ``-32000`` code and are
    never treated as rejections.
    """
    message = str(exc).lower()
    if "insufficient funds" in message or "insufficient_value" in message:
        return False
    return _rpc_error_code(exc) in USER_REJECTION_CODES or "user rejected" in message


def classify_error(exc: BaseException) -> ErrorReason:
    """
    Map an exception raised during a purchase attempt to an ErrorReason.

    Typed checkout errors map directly. Raw web3 errors are inspected for
    well-known wallet rejection codes and for insufficient-funds or
    ``INSUFFICIENT_VALUE`` revert messages.

    Args:
        exc: The exception that terminated the attempt.

    Returns:
        ErrorReason: Classified reason for the ERROR state payload.
    """
    if isinstance(exc, UserRejectedError):
        return ErrorReason.USER_REJECTED
    if isinstance(exc, InsufficientValueError):
        return ErrorReason.INSUFFICIENT_VALUE
    if isinstance(exc, ApprovalFailedError):
        return ErrorReason.APPROVAL_FAILED
    if isinstance(exc, TransactionFailedError):
        return ErrorReason.TRANSACTION_FAILED
    if isinstance(exc, (RequestValidationError, ValidationError)):
        return ErrorReason.INVALID_REQUEST

    message = str(exc).lower()
    if "insufficient funds" in message or "insufficient_value" in message:
        return ErrorReason.INSUFFICIENT_VALUE
    if is_user_rejection(exc):
        return ErrorReason.USER_REJECTED
    if isinstance(exc, ContractLogicError):
        return ErrorReason.TRANSACTION_FAILED
    if isinstance(exc, (Web3Exception, TimeExhausted, ConnectionError, TimeoutError)):
        return ErrorReason.NETWORK_ERROR
    return ErrorReason.UNKNOWN_ERROR
