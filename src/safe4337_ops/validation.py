"""Input validation for addresses, keys, URLs and configuration mappings."""
from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Any, Generic, List, Mapping, Optional, TypeVar
from urllib.parse import urlparse

from .exceptions import ValidationError

T = TypeVar("T")

_ADDRESS_RE = re.compile(r"^0x[a-fA-F0-9]{40}$")
_PRIVATE_KEY_RE = re.compile(r"^0x[a-fA-F0-9]{64}$")
_HEX_QUANTITY_RE = re.compile(r"^0x[0-9a-fA-F]+$")
_HASH_RE = re.compile(r"^0x[a-fA-F0-9]{64}$")

PACK_REQUIRED_FIELDS = (
    "bundler_url",
    "chain_id",
    "entry_point_address",
    "safe_4337_module_address",
    "safe_module_setup_address",
)
PACK_ADDRESS_FIELDS = (
    "entry_point_address",
    "safe_4337_module_address",
    "safe_module_setup_address",
)


def is_valid_address(value: Any) -> bool:
    return isinstance(value, str) and bool(_ADDRESS_RE.match(value))


def is_valid_private_key(value: Any) -> bool:
    return isinstance(value, str) and bool(_PRIVATE_KEY_RE.match(value))


def is_valid_tx_hash(value: Any) -> bool:
    return isinstance(value, str) and bool(_HASH_RE.match(value))


def is_valid_url(value: Any) -> bool:
    if not isinstance(value, str) or not value:
        return False
    parsed = urlparse(value)
    return parsed.scheme in ("http", "https") and bool(parsed.netloc)


def validate_deployed_addresses(addresses: Mapping[str, Any]) -> bool:
    """Check the counter/safe/token address book."""
    if not isinstance(addresses, Mapping):
        raise ValidationError("Deployed addresses must be a mapping")

    for name in ("counter", "safe", "token"):
        value = addresses.get(name)
        if not is_valid_address(value):
            raise ValidationError(f"Invalid {name} address: {value}", field=name)
    return True


def validate_pack_config(config: Mapping[str, Any]) -> bool:
    """Validate a Safe 4337 bundler/paymaster configuration mapping."""
    if not isinstance(config, Mapping):
        raise ValidationError("Configuration must be a mapping")

    for name in PACK_REQUIRED_FIELDS:
        if name not in config:
            raise ValidationError(f"Missing required field: {name}", field=name)

    for name in PACK_ADDRESS_FIELDS:
        if not is_valid_address(config[name]):
            raise ValidationError(f"Invalid address in {name}: {config[name]}", field=name)

    if not is_valid_url(config["bundler_url"]):
        raise ValidationError("Invalid bundler URL", field="bundler_url")

    paymaster_url = config.get("paymaster_url")
    if paymaster_url and not is_valid_url(paymaster_url):
        raise ValidationError("Invalid paymaster URL", field="paymaster_url")

    chain_id = config["chain_id"]
    if isinstance(chain_id, bool) or not isinstance(chain_id, int) or chain_id <= 0:
        raise ValidationError(f"Invalid chain ID: {chain_id}", field="chain_id")

    return True


def validate_gas_params(
    max_fee_per_gas: Optional[str] = None,
    max_priority_fee_per_gas: Optional[str] = None,
) -> bool:
    """Fees are hex quantities and the priority fee never exceeds the max fee."""
    if max_fee_per_gas and not _HEX_QUANTITY_RE.match(max_fee_per_gas):
        raise ValidationError(
            f"Invalid maxFeePerGas format: {max_fee_per_gas}", field="maxFeePerGas"
        )
    if max_priority_fee_per_gas and not _HEX_QUANTITY_RE.match(max_priority_fee_per_gas):
        raise ValidationError(
            f"Invalid maxPriorityFeePerGas format: {max_priority_fee_per_gas}",
            field="maxPriorityFeePerGas",
        )
    if max_fee_per_gas and max_priority_fee_per_gas:
        if int(max_priority_fee_per_gas, 16) > int(max_fee_per_gas, 16):
            raise ValidationError("Priority fee cannot exceed max fee")
    return True


@dataclass
class ContractCallResult(Generic[T]):
    success: bool
    data: Optional[T] = None
    error: Optional[str] = None


_EXPECTED_TYPES = {
    "string": str,
    "number": (int, float),
    "int": int,
    "boolean": bool,
    "bytes": (bytes, bytearray),
}


def validate_contract_result(result: Any, expected_type: str) -> ContractCallResult:
    """Check the type of a value returned from a contract call."""
    if result is None:
        return ContractCallResult(success=False, error="Contract call returned None")

    expected = _EXPECTED_TYPES.get(expected_type)
    if expected is None:
        return ContractCallResult(success=False, error=f"Unknown expected type: {expected_type}")

    # bool is an int subclass
    if expected_type != "boolean" and isinstance(result, bool):
        return ContractCallResult(success=False, error=f"Expected {expected_type}, got bool")

    if not isinstance(result, expected):
        return ContractCallResult(
            success=False,
            error=f"Expected {expected_type}, got {type(result).__name__}",
        )
    return ContractCallResult(success=True, data=result)


@dataclass
class EnvironmentReport:
    errors: List[str] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)

    @property
    def is_valid(self) -> bool:
        return not self.errors


def validate_environment(settings) -> EnvironmentReport:
    """Check credentials and endpoints loaded from the environment."""
    report = EnvironmentReport()

    if not settings.private_key:
        report.errors.append("PRIVATE_KEY is required")
    elif not is_valid_private_key(settings.private_key):
        report.errors.append("PRIVATE_KEY must be a valid Ethereum private key")

    if not settings.gelato_api_key:
        report.warnings.append("GELATO_API_KEY not found - some features may not work")

    if not settings.rpc_url:
        report.warnings.append("RPC_URL not found - using default RPC")
    elif not is_valid_url(settings.rpc_url):
        report.errors.append("RPC_URL must be a valid URL")

    if settings.safe_address and not is_valid_address(settings.safe_address):
        report.errors.append("SAFE_ADDRESS must be a valid address")

    return report
