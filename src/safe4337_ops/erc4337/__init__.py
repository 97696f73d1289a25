"""ERC-4337 helpers: user operations, SafeOp signing, bundler and paymaster clients."""

from .entrypoint import ENTRYPOINT_V07, ENTRYPOINT_V07_BY_CHAIN, get_deposit, get_entrypoint_nonce, get_entrypoint_v07
from .user_operation import PackedUserOperation, UserOperation, user_operation_hash
from .signing import dummy_signature, safe_operation_hash, safe_operation_typed_data, sign_user_operation
from .gelato import GelatoUrls, gelato_bundler_url, gelato_paymaster_url, gelato_urls
from .bundler_client import BundlerClient, BundlerConfig, GasPrice, parse_gas_price
from .paymaster_client import (
    PaymasterClient,
    PaymasterConfig,
    PaymentMode,
    SponsoredUserOperation,
    erc20_context,
    sponsored_context,
)

__all__ = [
    "ENTRYPOINT_V07",
    "ENTRYPOINT_V07_BY_CHAIN",
    "get_entrypoint_v07",
    "get_entrypoint_nonce",
    "get_deposit",
    "UserOperation",
    "PackedUserOperation",
    "user_operation_hash",
    "safe_operation_hash",
    "safe_operation_typed_data",
    "sign_user_operation",
    "dummy_signature",
    "GelatoUrls",
    "gelato_bundler_url",
    "gelato_paymaster_url",
    "gelato_urls",
    "BundlerClient",
    "BundlerConfig",
    "GasPrice",
    "parse_gas_price",
    "PaymasterClient",
    "PaymasterConfig",
    "PaymentMode",
    "SponsoredUserOperation",
    "erc20_context",
    "sponsored_context",
]
