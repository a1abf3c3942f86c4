from .adapter import WalletSession
from .schemas import (
    TransactionPlan,
    FeeData,
    GasEstimated,
    GasEstimateUnavailable,
    GasEstimate,
)
from .constants import (
    ZERO_ADDRESS,
    MAX_UINT256,
    get_network_config,
    amount_to_value,
)
from .gas import estimate_gas, apply_gas_estimate, fetch_fee_data
from .amounts import resolve_amount, resolve_amounts
from .allowances import ensure_allowance, query_erc20_allowance

__all__ = [
    "WalletSession",
    "TransactionPlan",
    "FeeData",
    "GasEstimated",
    "GasEstimateUnavailable",
    "GasEstimate",
    "ZERO_ADDRESS",
    "MAX_UINT256",
    "get_network_config",
    "amount_to_value",
    "estimate_gas",
    "apply_gas_estimate",
    "fetch_fee_data",
    "resolve_amount",
    "resolve_amounts",
    "ensure_allowance",
    "query_erc20_allowance",
]
