"""
Checkout events with typed data.

Events carry their own data; the state machine maps (state, event type) to
the next state. Dependencies are injected separately from business data.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Protocol

from pydantic import BaseModel, Field

from ..schemas.bases import ErrorReason
from ..schemas.purchases import LockInfo, PaymentMethod, PricingResult, PurchaseOutcome
from .orchestrator import PurchaseOrchestrator

# ==================== Base Event ====================

class BaseEvent(ABC):
    """Base class for all checkout events."""

    @abstractmethod
    def __repr__(self) -> str:
        """String representation of the event."""
        pass


# ==================== Data Collection Events ====================

class SelectLockEvent(BaseModel, BaseEvent):
    """User picked the lock to buy from."""
    lock: LockInfo

    def __repr__(self) -> str:
        return f"SelectLockEvent(lock={self.lock.address}, network={self.lock.network})"


class SelectRecipientsEvent(BaseModel, BaseEvent):
    """User entered the recipients and their per-recipient options."""
    recipients: List[str] = Field(..., min_length=1)
    key_managers: Optional[List[str]] = None
    referrers: Optional[List[str]] = None
    data: Optional[List[str]] = None
    recurring_payments: Optional[List[int]] = None
    total_approval: Optional[int] = None
    renew: bool = False
    token_ids: Optional[List[int]] = None

    def __repr__(self) -> str:
        return f"SelectRecipientsEvent(recipients={len(self.recipients)}, renew={self.renew})"


class SubmitDataEvent(BaseModel, BaseEvent):
    """Data collection finished; ``metadata`` goes to the pricing collaborator."""
    metadata: Dict[str, Any] = Field(default_factory=dict)

    def __repr__(self) -> str:
        return f"SubmitDataEvent(metadata_keys={list(self.metadata.keys())})"


# ==================== Pricing Events ====================

class PricingReadyEvent(BaseModel, BaseEvent):
    """Pricing collaborator returned a breakdown."""
    pricing: PricingResult

    def __repr__(self) -> str:
        return f"PricingReadyEvent(total={self.pricing.total})"


class PricingFailedEvent(BaseModel, BaseEvent):
    """Pricing collaborator failed."""
    error_message: str

    def __repr__(self) -> str:
        return f"PricingFailedEvent(error={self.error_message})"


class SelectPaymentEvent(BaseModel, BaseEvent):
    """User chose how to pay."""
    payment: PaymentMethod

    def __repr__(self) -> str:
        return f"SelectPaymentEvent(method={self.payment.method})"


# ==================== Purchase Events ====================

class ConfirmEvent(BaseModel, BaseEvent):
    """User confirmed the purchase (or retried after an error)."""

    def __repr__(self) -> str:
        return "ConfirmEvent()"


class MintSubmittedEvent(BaseModel, BaseEvent):
    """A purchase transaction was accepted by the node."""
    network: int
    transaction_hash: str

    def __repr__(self) -> str:
        return f"MintSubmittedEvent(network={self.network}, tx={self.transaction_hash})"


class MintConfirmedEvent(BaseModel, BaseEvent):
    """The purchase attempt finished with an outcome."""
    outcome: PurchaseOutcome

    def __repr__(self) -> str:
        return f"MintConfirmedEvent(status={self.outcome.status}, token_ids={self.outcome.token_ids})"


class MintFailedEvent(BaseModel, BaseEvent):
    """The purchase attempt failed."""
    reason: ErrorReason
    error_message: str = ""
    network: Optional[int] = None
    transaction_hash: Optional[str] = None

    def __repr__(self) -> str:
        return f"MintFailedEvent(reason={self.reason.value}, error={self.error_message})"


class ResetEvent(BaseModel, BaseEvent):
    """Start over from data collection."""

    def __repr__(self) -> str:
        return "ResetEvent()"


# ==================== Dependencies Container ====================

class PricingSource(Protocol):
    """External pricing collaborator."""

    async def get_pricing(
        self,
        lock: LockInfo,
        recipients: List[str],
        metadata: Dict[str, Any],
    ) -> PricingResult:
        ...


@dataclass(frozen=True)
class Dependencies:
    """Container for infrastructure dependencies (read-only)."""
    orchestrator: PurchaseOrchestrator
    pricing: Optional[PricingSource] = None
