"""
Base Schema Models for the Checkout Engine

This module defines the base classes every other schema model inherits from.
It keeps serialization deterministic and provides the shared status
enumerations used by purchase outcomes.

Core Classes:
    - CanonicalModel: Pydantic base model with canonical JSON serialization
    - PurchaseStatus: Outcome status of a purchase attempt
    - ErrorReason: Classified reason carried by a failed checkout

Dependencies:
    - pydantic: For data validation and serialization
"""

import json
from enum import Enum

from pydantic import BaseModel, ConfigDict


class CanonicalModel(BaseModel):
    """
    Pydantic base model with canonical JSON serialization.

    Ensures a consistent, deterministic JSON representation suitable for
    logging, hashing and comparing request payloads across retries.

    Features:
        - Automatic conversion of Pydantic objects, enums, and Decimals to standard types
        - Deterministic key sorting in JSON output
        - No extra whitespace

    Example:
        class MyModel(CanonicalModel):
            name: str
            value: int

        model = MyModel(name="test", value=123)
        canonical_json = model.to_canonical_json()
    """

    model_config = ConfigDict(populate_by_name=True)

    def to_canonical_json(self) -> str:
        """
        Convert model to canonical JSON string.

        ``model_dump(mode="json")`` converts nested models, enums and Decimals
        to plain types, then ``json.dumps`` sorts keys and strips whitespace.

        Returns:
            str: JSON string with sorted keys and no extra whitespace.
        """
        data = self.model_dump(mode="json")
        return json.dumps(
            data,
            separators=(",", ":"),
            sort_keys=True,
            ensure_ascii=False
        )


class PurchaseStatus(str, Enum):
    """
    Enumeration of purchase outcome statuses.

    Attributes:
        CONFIRMED: Transaction mined and the expected key event was found
        UNCONFIRMED: Transaction mined successfully but no key event was found;
            the key may still have been issued
        SUBMITTED: Transaction accepted into the pending pool; the outcome is
            observed elsewhere (cross-chain routes)
    """
    CONFIRMED = "confirmed"
    UNCONFIRMED = "unconfirmed"
    SUBMITTED = "submitted"


class ErrorReason(str, Enum):
    """
    Enumeration of classified checkout failure reasons.

    Attributes:
        USER_REJECTED: The signer declined to sign
        INSUFFICIENT_VALUE: Funds attached are below the resolved price
        APPROVAL_FAILED: The allowance transaction reverted or failed to mine
        TRANSACTION_FAILED: The purchase transaction reverted on-chain
        INVALID_REQUEST: The purchase request failed validation
        NETWORK_ERROR: A lookup or broadcast call to the network failed
        UNKNOWN_ERROR: Anything else
    """
    USER_REJECTED = "user_rejected"
    INSUFFICIENT_VALUE = "insufficient_value"
    APPROVAL_FAILED = "approval_failed"
    TRANSACTION_FAILED = "transaction_failed"
    INVALID_REQUEST = "invalid_request"
    NETWORK_ERROR = "network_error"
    UNKNOWN_ERROR = "unknown_error"
