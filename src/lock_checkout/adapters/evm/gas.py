"""
Gas Estimation

Fetches current fee data and estimates the gas limit of a would-be purchase
or swap-and-call transaction.

Estimation runs with explicit fee parameters because the lock's reward
bookkeeping depends on the gas price, which changes the gas the call
consumes. On success the fee parameters are dropped again (the wallet picks
them at broadcast time) and the gas limit is padded to 130% of the
estimate. On any failure every override is dropped and the wallet
estimates unaided; this path is expected and never raises.
"""

from typing import Union

import structlog
from web3 import AsyncWeb3

from .constants import GAS_LIMIT_DENOMINATOR, GAS_LIMIT_NUMERATOR
from .schemas import FeeData, GasEstimated, GasEstimateUnavailable, TransactionPlan
from ...engine.exceptions import GasEstimationError

logger = structlog.get_logger(__name__)


async def fetch_fee_data(w3: AsyncWeb3) -> FeeData:
    """
    Read the network's current fee parameters.

    EIP-1559 networks (latest block carries ``baseFeePerGas``) report
    ``max_fee = 2 * base_fee + priority_fee`` alongside the priority fee;
    other networks report the legacy gas price only.

    Args:
        w3: AsyncWeb3 instance for the target network.

    Returns:
        FeeData: Fee parameters.
    """
    gas_price = await w3.eth.gas_price
    block = await w3.eth.get_block("latest")
    base_fee = block.get("baseFeePerGas") if block else None
    if base_fee is None:
        return FeeData(gas_price=int(gas_price))

    priority_fee = await w3.eth.max_priority_fee
    return FeeData(
        gas_price=int(gas_price),
        max_fee_per_gas=int(base_fee) * 2 + int(priority_fee),
        max_priority_fee_per_gas=int(priority_fee),
    )


def pad_gas_limit(estimate: int) -> int:
    """130% of ``estimate``, rounded down."""
    return estimate * GAS_LIMIT_NUMERATOR // GAS_LIMIT_DENOMINATOR


async def estimate_gas(
    w3: AsyncWeb3,
    plan: TransactionPlan,
    sender: str,
) -> Union[GasEstimated, GasEstimateUnavailable]:
    """
    Estimate the gas limit of ``plan`` when sent by ``sender``.

    Args:
        w3: AsyncWeb3 instance for the target network.
        plan: Transaction to estimate (gas and fee overrides are ignored).
        sender: Address the transaction will be sent from.

    Returns:
        GasEstimated with the padded limit, or GasEstimateUnavailable when
        fee data or the estimate could not be obtained.
    """
    try:
        fee_data = await fetch_fee_data(w3)
        priced = plan.without_overrides().with_fees(fee_data)
        params = priced.to_tx_params()
        params["from"] = sender
        estimate = int(await w3.eth.estimate_gas(params))
        if estimate <= 0:
            raise GasEstimationError(f"node returned gas estimate {estimate}")
    except Exception as e:
        logger.warning("gas_estimate_unavailable", to=plan.to, error=str(e))
        return GasEstimateUnavailable(reason=str(e))

    gas_limit = pad_gas_limit(estimate)
    logger.debug("gas_estimated", to=plan.to, estimate=estimate, gas_limit=gas_limit)
    return GasEstimated(estimate=estimate, gas_limit=gas_limit)


def apply_gas_estimate(
    plan: TransactionPlan,
    estimate: Union[GasEstimated, GasEstimateUnavailable],
) -> TransactionPlan:
    """
    Return ``plan`` ready for broadcast.

    Fee overrides are always cleared. The gas limit is set from a successful
    estimate and cleared otherwise.
    """
    cleared = plan.without_overrides()
    if isinstance(estimate, GasEstimated):
        return cleared.model_copy(update={"gas_limit": estimate.gas_limit})
    return cleared
