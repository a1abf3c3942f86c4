"""
lock-checkout: buy and renew membership keys on lock contracts.

    from lock_checkout import PurchaseOrchestrator, PurchaseRequest, WalletSession

    orchestrator = PurchaseOrchestrator(WalletSession())
    outcome = await orchestrator.purchase(
        PurchaseRequest(lock_address=lock, network=8453, recipients=[me])
    )
"""

from .adapters.evm.adapter import WalletSession
from .engine.exceptions import (
    CheckoutError,
    RequestValidationError,
    ConfigurationError,
    UserRejectedError,
    InsufficientValueError,
    ApprovalFailedError,
    TransactionFailedError,
    InvalidTransition,
    PurchaseInFlightError,
    classify_error,
)
from .engine.events import Dependencies, PricingSource
from .engine.machine import CheckoutMachine
from .engine.orchestrator import PurchaseOrchestrator
from .engine.states import CheckoutState
from .logs import configure_logging
from .schemas.bases import ErrorReason, PurchaseStatus
from .schemas.purchases import (
    CrossChainRoute,
    CryptoPayment,
    CrossChainPayment,
    LockInfo,
    PricingResult,
    PurchaseOutcome,
    PurchaseRequest,
    SwapPayment,
    SwapRoute,
)

__all__ = [
    "WalletSession",
    "CheckoutError",
    "RequestValidationError",
    "ConfigurationError",
    "UserRejectedError",
    "InsufficientValueError",
    "ApprovalFailedError",
    "TransactionFailedError",
    "InvalidTransition",
    "PurchaseInFlightError",
    "classify_error",
    "Dependencies",
    "PricingSource",
    "CheckoutMachine",
    "PurchaseOrchestrator",
    "CheckoutState",
    "configure_logging",
    "ErrorReason",
    "PurchaseStatus",
    "CrossChainRoute",
    "CryptoPayment",
    "CrossChainPayment",
    "LockInfo",
    "PricingResult",
    "PurchaseOutcome",
    "PurchaseRequest",
    "SwapPayment",
    "SwapRoute",
]
