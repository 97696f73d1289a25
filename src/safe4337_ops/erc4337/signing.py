"""Safe4337Module (v0.3.0) SafeOp signing.

The module validates user operations against an EIP-712 ``SafeOp`` struct
signed by the Safe owners. The signature field sent to the bundler is

    uint48 validAfter ++ uint48 validUntil ++ r ++ s ++ v
"""

from __future__ import annotations

from typing import Any, Dict

from eth_abi import encode
from eth_account.signers.local import LocalAccount
from web3 import Web3

from ..config import CONTRACT_ADDRESSES
from .user_operation import UserOperation

DOMAIN_TYPEHASH = Web3.keccak(text="EIP712Domain(uint256 chainId,address verifyingContract)")

SAFE_OP_TYPE = (
    "SafeOp(address safe,uint256 nonce,bytes initCode,bytes callData,"
    "uint128 verificationGasLimit,uint128 callGasLimit,uint256 preVerificationGas,"
    "uint128 maxPriorityFeePerGas,uint128 maxFeePerGas,bytes paymasterAndData,"
    "uint48 validAfter,uint48 validUntil,address entryPoint)"
)
SAFE_OP_TYPEHASH = Web3.keccak(text=SAFE_OP_TYPE)

MAX_UINT48 = 2**48 - 1

# 12 zero bytes for the validity window, then a well-formed 65 byte ECDSA signature
DUMMY_ECDSA_SIGNATURE = (
    "ff" * 32
    + "7a" + "aa" * 31
    + "1c"
)


def dummy_signature() -> str:
    """Placeholder signature for gas estimation."""
    return "0x" + "00" * 12 + DUMMY_ECDSA_SIGNATURE


def _check_window(valid_after: int, valid_until: int) -> None:
    if not 0 <= valid_after <= MAX_UINT48 or not 0 <= valid_until <= MAX_UINT48:
        raise ValueError("validAfter / validUntil must fit in uint48")
    if valid_until and valid_after > valid_until:
        raise ValueError("validAfter must not be later than validUntil")


def safe_operation_hash(
    user_op: UserOperation,
    chain_id: int,
    module: str = CONTRACT_ADDRESSES.safe_4337_module,
    entrypoint: str = CONTRACT_ADDRESSES.entry_point,
    valid_after: int = 0,
    valid_until: int = 0,
) -> bytes:
    """EIP-712 digest of the SafeOp struct checked by Safe4337Module."""
    _check_window(valid_after, valid_until)
    domain_separator = Web3.keccak(
        encode(
            ["bytes32", "uint256", "address"],
            [DOMAIN_TYPEHASH, chain_id, Web3.to_checksum_address(module)],
        )
    )
    packed = user_op.pack()
    struct_hash = Web3.keccak(
        encode(
            [
                "bytes32",
                "address",
                "uint256",
                "bytes32",
                "bytes32",
                "uint128",
                "uint128",
                "uint256",
                "uint128",
                "uint128",
                "bytes32",
                "uint48",
                "uint48",
                "address",
            ],
            [
                SAFE_OP_TYPEHASH,
                packed.sender,
                user_op.nonce,
                Web3.keccak(packed.init_code),
                Web3.keccak(packed.call_data),
                user_op.verification_gas_limit,
                user_op.call_gas_limit,
                user_op.pre_verification_gas,
                user_op.max_priority_fee_per_gas,
                user_op.max_fee_per_gas,
                Web3.keccak(packed.paymaster_and_data),
                valid_after,
                valid_until,
                Web3.to_checksum_address(entrypoint),
            ],
        )
    )
    return Web3.keccak(b"\x19\x01" + domain_separator + struct_hash)


def safe_operation_typed_data(
    user_op: UserOperation,
    chain_id: int,
    module: str = CONTRACT_ADDRESSES.safe_4337_module,
    entrypoint: str = CONTRACT_ADDRESSES.entry_point,
    valid_after: int = 0,
    valid_until: int = 0,
) -> Dict[str, Any]:
    """The same SafeOp as an ``eth_signTypedData_v4`` payload (for external signers)."""
    return {
        "types": {
            "EIP712Domain": [
                {"name": "chainId", "type": "uint256"},
                {"name": "verifyingContract", "type": "address"},
            ],
            "SafeOp": [
                {"name": "safe", "type": "address"},
                {"name": "nonce", "type": "uint256"},
                {"name": "initCode", "type": "bytes"},
                {"name": "callData", "type": "bytes"},
                {"name": "verificationGasLimit", "type": "uint128"},
                {"name": "callGasLimit", "type": "uint128"},
                {"name": "preVerificationGas", "type": "uint256"},
                {"name": "maxPriorityFeePerGas", "type": "uint128"},
                {"name": "maxFeePerGas", "type": "uint128"},
                {"name": "paymasterAndData", "type": "bytes"},
                {"name": "validAfter", "type": "uint48"},
                {"name": "validUntil", "type": "uint48"},
                {"name": "entryPoint", "type": "address"},
            ],
        },
        "primaryType": "SafeOp",
        "domain": {
            "chainId": chain_id,
            "verifyingContract": Web3.to_checksum_address(module),
        },
        "message": {
            "safe": Web3.to_checksum_address(user_op.sender),
            "nonce": user_op.nonce,
            "initCode": user_op.init_code,
            "callData": user_op.call_data,
            "verificationGasLimit": user_op.verification_gas_limit,
            "callGasLimit": user_op.call_gas_limit,
            "preVerificationGas": user_op.pre_verification_gas,
            "maxPriorityFeePerGas": user_op.max_priority_fee_per_gas,
            "maxFeePerGas": user_op.max_fee_per_gas,
            "paymasterAndData": user_op.paymaster_and_data,
            "validAfter": valid_after,
            "validUntil": valid_until,
            "entryPoint": Web3.to_checksum_address(entrypoint),
        },
    }


def sign_user_operation(
    user_op: UserOperation,
    account: LocalAccount,
    chain_id: int,
    module: str = CONTRACT_ADDRESSES.safe_4337_module,
    entrypoint: str = CONTRACT_ADDRESSES.entry_point,
    valid_after: int = 0,
    valid_until: int = 0,
) -> str:
    """Sign the SafeOp for a 1/1 Safe and return the bundler ``signature`` field."""
    digest = safe_operation_hash(
        user_op,
        chain_id,
        module=module,
        entrypoint=entrypoint,
        valid_after=valid_after,
        valid_until=valid_until,
    )
    signed = account.unsafe_sign_hash(digest)
    window = valid_after.to_bytes(6, "big") + valid_until.to_bytes(6, "big")
    return "0x" + (window + bytes(signed.signature)).hex()
