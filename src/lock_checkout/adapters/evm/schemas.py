"""
EVM Adapter Schema Models

Pydantic models for building and pricing EVM transactions.

Transaction classes:
    - TransactionPlan: Target, call data, value, gas limit and fee parameters
      of one transaction (legacy gas price or EIP-1559 fee pair, never both).

Fee / gas classes:
    - FeeData: Current network fee parameters.
    - GasEstimated: Successful estimate with the padded gas limit.
    - GasEstimateUnavailable: Estimation failed; the wallet estimates unaided.
    - GasEstimate: Discriminated union of the two results.
"""

from typing import Any, Dict, Literal, Optional, Union

from pydantic import Field, model_validator
from typing_extensions import Annotated, Self

from ...schemas.bases import CanonicalModel


class TransactionPlan(CanonicalModel):
    """
    Everything needed to broadcast one contract call.

    Fee parameters are either legacy (``gas_price``) or EIP-1559
    (``max_fee_per_gas`` + ``max_priority_fee_per_gas``). Unset gas and fee
    fields are left to the wallet at broadcast time.

    Attributes:
        to: Target contract address.
        data: Encoded call data (0x hex).
        value: Native value attached, in wei.
        gas_limit: Gas limit override.
        gas_price: Legacy gas price override.
        max_fee_per_gas: EIP-1559 max fee override.
        max_priority_fee_per_gas: EIP-1559 priority fee override.

    Example::

        plan = TransactionPlan(to=lock_address, data="0x...", value=5 * 10**18)
        plan.to_tx_params()  # {"to": ..., "data": ..., "value": ...}
    """

    to: str = Field(..., description="Target contract address")
    data: str = Field(default="0x", description="Encoded call data")
    value: int = Field(default=0, ge=0, description="Native value in wei")
    gas_limit: Optional[int] = Field(None, ge=0)
    gas_price: Optional[int] = Field(None, ge=0)
    max_fee_per_gas: Optional[int] = Field(None, ge=0)
    max_priority_fee_per_gas: Optional[int] = Field(None, ge=0)

    @model_validator(mode="after")
    def _fees_are_exclusive(self) -> Self:
        eip1559 = self.max_fee_per_gas is not None or self.max_priority_fee_per_gas is not None
        if eip1559 and self.gas_price is not None:
            raise ValueError("gas_price cannot be combined with EIP-1559 fee fields")
        if eip1559 and (self.max_fee_per_gas is None or self.max_priority_fee_per_gas is None):
            raise ValueError("EIP-1559 fees need both max_fee_per_gas and max_priority_fee_per_gas")
        return self

    @property
    def has_fee_overrides(self) -> bool:
        return self.gas_price is not None or self.max_fee_per_gas is not None

    def without_overrides(self) -> "TransactionPlan":
        """Copy with gas limit and fee parameters cleared."""
        return self.model_copy(update={
            "gas_limit": None,
            "gas_price": None,
            "max_fee_per_gas": None,
            "max_priority_fee_per_gas": None,
        })

    def with_fees(self, fee_data: "FeeData") -> "TransactionPlan":
        """Copy carrying the fee parameters of ``fee_data``."""
        if fee_data.supports_eip1559:
            return self.model_copy(update={
                "gas_price": None,
                "max_fee_per_gas": fee_data.max_fee_per_gas,
                "max_priority_fee_per_gas": fee_data.max_priority_fee_per_gas,
            })
        return self.model_copy(update={
            "gas_price": fee_data.gas_price,
            "max_fee_per_gas": None,
            "max_priority_fee_per_gas": None,
        })

    def to_tx_params(self) -> Dict[str, Any]:
        """web3 transaction dict with only the fields that are set."""
        params: Dict[str, Any] = {"to": self.to, "data": self.data, "value": self.value}
        if self.gas_limit is not None:
            params["gas"] = self.gas_limit
        if self.gas_price is not None:
            params["gasPrice"] = self.gas_price
        if self.max_fee_per_gas is not None:
            params["maxFeePerGas"] = self.max_fee_per_gas
            params["maxPriorityFeePerGas"] = self.max_priority_fee_per_gas
        return params


class FeeData(CanonicalModel):
    """Current fee parameters reported by the network."""

    gas_price: Optional[int] = Field(None, ge=0)
    max_fee_per_gas: Optional[int] = Field(None, ge=0)
    max_priority_fee_per_gas: Optional[int] = Field(None, ge=0)

    @property
    def supports_eip1559(self) -> bool:
        return self.max_fee_per_gas is not None and self.max_priority_fee_per_gas is not None


class GasEstimated(CanonicalModel):
    """Estimation succeeded; ``gas_limit`` already includes the safety margin."""
    kind: Literal["estimated"] = "estimated"
    estimate: int = Field(..., ge=0)
    gas_limit: int = Field(..., ge=0)


class GasEstimateUnavailable(CanonicalModel):
    """Estimation failed; the wallet will estimate and price the transaction."""
    kind: Literal["unavailable"] = "unavailable"
    reason: str = ""


GasEstimate = Annotated[
    Union[GasEstimated, GasEstimateUnavailable],
    Field(discriminator="kind"),
]
