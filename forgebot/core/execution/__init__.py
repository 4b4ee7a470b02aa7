"""
Transaction Execution Module

Builds unsigned transactions and hands them to the external signer, then
waits for the receipt.
"""

from .gateway import ExecutorGateway, SigningServiceGateway
from .models import GasParams, Receipt, ReceiptStatus, TransactionRequest, WalletHandle
from .tx_builder import (
    ERC20_APPROVE_SELECTOR,
    NATIVE_TRANSFER_GAS_LIMIT,
    build_approve,
    build_native_transfer,
    build_swap,
)

__all__ = [
    # Models
    "GasParams",
    "Receipt",
    "ReceiptStatus",
    "TransactionRequest",
    "WalletHandle",
    # Builder
    "ERC20_APPROVE_SELECTOR",
    "NATIVE_TRANSFER_GAS_LIMIT",
    "build_approve",
    "build_native_transfer",
    "build_swap",
    # Gateway
    "ExecutorGateway",
    "SigningServiceGateway",
]
