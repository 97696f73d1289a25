"""Unified exception hierarchy for safe4337-ops.

All toolkit-specific exceptions inherit from Safe4337Error, enabling:
- Consistent error handling at the CLI boundary
- Structured error output with error codes
- Mapping raw JSON-RPC errors from bundlers and paymasters

All exceptions have:
- error_code: Machine-readable error code (e.g., "VALIDATION_ERROR")
- message: Human-readable error message
- details: Optional additional context dictionary
- to_dict(): Convert to a JSON-friendly mapping
"""
from __future__ import annotations

import re
from typing import Any, Optional

# EntryPoint revert codes, e.g. "AA20 account not deployed"
_AA_CODE = re.compile(r"\bAA\d{2}\b")

class Safe4337Error(Exception):
    """Base exception for all toolkit errors."""

    error_code: str = "SAFE4337_ERROR"

    def __init__(
        self,
        message: str,
        error_code: Optional[str] = None,
        details: Optional[dict[str, Any]] = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        if error_code:
            self.error_code = error_code
        self.details = details or {}

    def to_dict(self) -> dict[str, Any]:
        result = {
            "error": self.error_code,
            "message": self.message,
        }
        if self.details:
            result["details"] = self.details
        return result


# =============================================================================
# Configuration & Input Errors
# =============================================================================

class ConfigurationError(Safe4337Error):
    """Missing or invalid environment configuration."""

    error_code = "CONFIGURATION_ERROR"


class ValidationError(Safe4337Error):
    """Invalid input data or parameters."""

    error_code = "VALIDATION_ERROR"

    def __init__(
        self,
        message: str,
        field: Optional[str] = None,
        details: Optional[dict[str, Any]] = None,
    ) -> None:
        details = details or {}
        if field:
            details["field"] = field
        super().__init__(message, details=details)
        self.field = field


# =============================================================================
# Chain Errors
# =============================================================================

class ChainError(Safe4337Error):
    """Base class for blockchain-related errors."""

    error_code = "CHAIN_ERROR"

    def __init__(
        self,
        message: str,
        chain: Optional[str] = None,
        details: Optional[dict[str, Any]] = None,
    ) -> None:
        details = details or {}
        if chain:
            details["chain"] = chain
        super().__init__(message, details=details)


class RPCError(ChainError):
    """RPC call to the blockchain node failed."""

    error_code = "RPC_ERROR"

    def __init__(
        self,
        message: str,
        chain: Optional[str] = None,
        method: Optional[str] = None,
        details: Optional[dict[str, Any]] = None,
    ) -> None:
        details = details or {}
        if method:
            details["method"] = method
        super().__init__(message, chain=chain, details=details)


class ChainIDMismatchError(ChainError):
    """Raised when the node reports a different chain than configured."""

    error_code = "CHAIN_ID_MISMATCH"

    def __init__(self, chain: str, expected: int, received: int):
        self.expected = expected
        self.received = received
        super().__init__(
            f"Chain ID mismatch for {chain}: expected {expected}, got {received}",
            chain=chain,
            details={"expected": expected, "received": received},
        )


class InsufficientFundsError(ChainError):
    """Account balance is below what the operation needs."""

    error_code = "INSUFFICIENT_FUNDS"

    def __init__(self, address: str, balance_wei: int, required_wei: int):
        self.address = address
        self.balance_wei = balance_wei
        self.required_wei = required_wei
        super().__init__(
            f"Insufficient funds on {address}: have {balance_wei} wei, need {required_wei} wei",
            details={
                "address": address,
                "balance_wei": balance_wei,
                "required_wei": required_wei,
            },
        )


class TransactionFailedError(ChainError):
    """A mined transaction reverted."""

    error_code = "TRANSACTION_FAILED"

    def __init__(self, message: str, tx_hash: Optional[str] = None) -> None:
        self.tx_hash = tx_hash
        super().__init__(message, details={"tx_hash": tx_hash} if tx_hash else None)


class DeploymentError(ChainError):
    """Contract or Safe deployment did not produce the expected code."""

    error_code = "DEPLOYMENT_ERROR"


# =============================================================================
# Bundler & Paymaster Errors
# =============================================================================

class BundlerError(Safe4337Error):
    """JSON-RPC error returned by an ERC-4337 bundler."""

    error_code = "BUNDLER_ERROR"
    service = "Bundler"

    def __init__(
        self,
        message: str,
        method: Optional[str] = None,
        rpc_code: Optional[int] = None,
        data: Any = None,
    ) -> None:
        self.method = method
        self.rpc_code = rpc_code
        self.data = data
        details: dict[str, Any] = {}
        if method:
            details["method"] = method
        if rpc_code is not None:
            details["rpc_code"] = rpc_code
        if data is not None:
            details["data"] = data
        prefix = f"{self.service} RPC error ({method})" if method else f"{self.service} error"
        super().__init__(f"{prefix}: {message}", details=details)

    @property
    def is_aa_error(self) -> bool:
        """True when the message carries an EntryPoint ``AAxx`` code."""
        return _AA_CODE.search(self.message) is not None

    @property
    def aa_code(self) -> Optional[str]:
        match = _AA_CODE.search(self.message)
        return match.group(0) if match else None


class PaymasterError(BundlerError):
    """JSON-RPC error returned by a paymaster service."""

    error_code = "PAYMASTER_ERROR"
    service = "Paymaster"
