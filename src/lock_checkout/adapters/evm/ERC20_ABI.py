"""
ERC20 Payment Token ABI Module

Simplified ABI definitions for the ERC20 calls a key purchase needs when the
lock is priced in a token: decimals lookup, allowance check, approval and
balance check.

Usage:
    from ERC20_ABI import (
        get_decimals_abi,
        get_allowance_abi,
        get_approve_abi,
        get_balance_abi,
    )

    contract = web3.eth.contract(address=token_address, abi=get_decimals_abi())
    decimals = await contract.functions.decimals().call()
"""

from typing import Dict, Any, List


def get_decimals_abi() -> List[Dict[str, Any]]:
    """
    Get ABI for ERC20 `decimals()`.

    Returns:
        List[Dict[str, Any]]: ABI for the `decimals` view.
    """
    return [
        {
            "name": "decimals",
            "type": "function",
            "stateMutability": "view",
            "inputs": [],
            "outputs": [{"name": "", "type": "uint8"}],
        }
    ]


def get_balance_abi() -> List[Dict[str, Any]]:
    """
    Get ABI for querying a token balance.

    Returns:
        List[Dict[str, Any]]: ABI for balanceOf function

    Example:
        abi = get_balance_abi()
        contract = web3.eth.contract(address=token_address, abi=abi)
        balance = await contract.functions.balanceOf(address).call()
    """
    return [
        {
            "name": "balanceOf",
            "type": "function",
            "stateMutability": "view",
            "inputs": [{"name": "account", "type": "address"}],
            "outputs": [{"name": "", "type": "uint256"}],
        }
    ]


def get_allowance_abi() -> List[Dict[str, Any]]:
    """
    Get ABI for ERC20 `allowance(owner, spender)`.

    Returns:
        List[Dict[str, Any]]: ABI for ERC20 `allowance` function.

    Example:
        abi = get_allowance_abi()
        contract = web3.eth.contract(address=token_address, abi=abi)
        allowance = await contract.functions.allowance(owner, spender).call()
    """
    return [
        {
            "name": "allowance",
            "type": "function",
            "stateMutability": "view",
            "inputs": [
                {"name": "owner", "type": "address"},
                {"name": "spender", "type": "address"},
            ],
            "outputs": [{"name": "", "type": "uint256"}],
        }
    ]


def get_approve_abi() -> List[Dict[str, Any]]:
    """
    Get ABI for ERC20 `approve(spender, amount)`.

    Returns:
        List[Dict[str, Any]]: ABI for ERC20 `approve` function.
    Example:
        abi = get_approve_abi()
        contract = web3.eth.contract(address=token_address, abi=abi)
        data = contract.encode_abi("approve", args=[spender, amount])
    """
    return [
        {
            "name": "approve",
            "type": "function",
            "stateMutability": "nonpayable",
            "inputs": [
                {"name": "spender", "type": "address"},
                {"name": "amount", "type": "uint256"},
            ],
            "outputs": [{"name": "", "type": "bool"}],
        }
    ]
