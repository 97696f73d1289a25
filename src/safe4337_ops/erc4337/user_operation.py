"""UserOperation primitives for ERC-4337 v0.7."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Mapping, Optional

from eth_abi import encode
from web3 import Web3


def zero_hex() -> str:
    return "0x"


def _to_hex_int(value: int) -> str:
    return hex(max(0, int(value)))


def _from_hex_int(value: Any) -> int:
    if value is None:
        return 0
    if isinstance(value, int):
        return value
    return int(value, 16) if str(value).startswith("0x") else int(value)


def _hex_bytes(value: Optional[str]) -> bytes:
    if not value:
        return b""
    return bytes.fromhex(value.removeprefix("0x"))


@dataclass
class PackedUserOperation:
    """On-chain (EntryPoint v0.7) layout of a user operation."""
    sender: str
    nonce: int
    init_code: bytes
    call_data: bytes
    account_gas_limits: bytes
    pre_verification_gas: int
    gas_fees: bytes
    paymaster_and_data: bytes
    signature: bytes


@dataclass
class UserOperation:
    sender: str
    nonce: int
    call_data: str
    call_gas_limit: int = 0
    verification_gas_limit: int = 0
    pre_verification_gas: int = 0
    max_fee_per_gas: int = 0
    max_priority_fee_per_gas: int = 0
    factory: Optional[str] = None
    factory_data: str = "0x"
    paymaster: Optional[str] = None
    paymaster_verification_gas_limit: int = 0
    paymaster_post_op_gas_limit: int = 0
    paymaster_data: str = "0x"
    signature: str = "0x"

    @property
    def init_code(self) -> str:
        if not self.factory:
            return zero_hex()
        return self.factory + self.factory_data.removeprefix("0x")

    @property
    def paymaster_and_data(self) -> str:
        """paymaster ++ uint128 verificationGas ++ uint128 postOpGas ++ paymasterData"""
        if not self.paymaster:
            return zero_hex()
        return (
            self.paymaster
            + self.paymaster_verification_gas_limit.to_bytes(16, "big").hex()
            + self.paymaster_post_op_gas_limit.to_bytes(16, "big").hex()
            + self.paymaster_data.removeprefix("0x")
        )

    def pack(self) -> PackedUserOperation:
        account_gas_limits = (
            self.verification_gas_limit.to_bytes(16, "big")
            + self.call_gas_limit.to_bytes(16, "big")
        )
        gas_fees = (
            self.max_priority_fee_per_gas.to_bytes(16, "big")
            + self.max_fee_per_gas.to_bytes(16, "big")
        )
        return PackedUserOperation(
            sender=Web3.to_checksum_address(self.sender),
            nonce=self.nonce,
            init_code=_hex_bytes(self.init_code),
            call_data=_hex_bytes(self.call_data),
            account_gas_limits=account_gas_limits,
            pre_verification_gas=self.pre_verification_gas,
            gas_fees=gas_fees,
            paymaster_and_data=_hex_bytes(self.paymaster_and_data),
            signature=_hex_bytes(self.signature),
        )

    def to_rpc(self) -> dict[str, Any]:
        """Unpacked JSON-RPC form; factory and paymaster fields only when set."""
        payload: dict[str, Any] = {
            "sender": self.sender,
            "nonce": _to_hex_int(self.nonce),
            "callData": self.call_data,
            "callGasLimit": _to_hex_int(self.call_gas_limit),
            "verificationGasLimit": _to_hex_int(self.verification_gas_limit),
            "preVerificationGas": _to_hex_int(self.pre_verification_gas),
            "maxFeePerGas": _to_hex_int(self.max_fee_per_gas),
            "maxPriorityFeePerGas": _to_hex_int(self.max_priority_fee_per_gas),
            "signature": self.signature,
        }
        if self.factory:
            payload["factory"] = self.factory
            payload["factoryData"] = self.factory_data
        if self.paymaster:
            payload["paymaster"] = self.paymaster
            payload["paymasterVerificationGasLimit"] = _to_hex_int(self.paymaster_verification_gas_limit)
            payload["paymasterPostOpGasLimit"] = _to_hex_int(self.paymaster_post_op_gas_limit)
            payload["paymasterData"] = self.paymaster_data
        return payload

    @classmethod
    def from_rpc(cls, data: Mapping[str, Any]) -> "UserOperation":
        return cls(
            sender=data["sender"],
            nonce=_from_hex_int(data.get("nonce")),
            call_data=data.get("callData", "0x"),
            call_gas_limit=_from_hex_int(data.get("callGasLimit")),
            verification_gas_limit=_from_hex_int(data.get("verificationGasLimit")),
            pre_verification_gas=_from_hex_int(data.get("preVerificationGas")),
            max_fee_per_gas=_from_hex_int(data.get("maxFeePerGas")),
            max_priority_fee_per_gas=_from_hex_int(data.get("maxPriorityFeePerGas")),
            factory=data.get("factory") or None,
            factory_data=data.get("factoryData") or "0x",
            paymaster=data.get("paymaster") or None,
            paymaster_verification_gas_limit=_from_hex_int(data.get("paymasterVerificationGasLimit")),
            paymaster_post_op_gas_limit=_from_hex_int(data.get("paymasterPostOpGasLimit")),
            paymaster_data=data.get("paymasterData") or "0x",
            signature=data.get("signature", "0x"),
        )

    def apply_gas_estimate(self, estimate: Mapping[str, Any]) -> "UserOperation":
        """Merge a gas payload from eth_estimateUserOperationGas or a paymaster."""
        int_fields = {
            "callGasLimit": "call_gas_limit",
            "verificationGasLimit": "verification_gas_limit",
            "preVerificationGas": "pre_verification_gas",
            "maxFeePerGas": "max_fee_per_gas",
            "maxPriorityFeePerGas": "max_priority_fee_per_gas",
            "paymasterVerificationGasLimit": "paymaster_verification_gas_limit",
            "paymasterPostOpGasLimit": "paymaster_post_op_gas_limit",
        }
        for key, attr in int_fields.items():
            if estimate.get(key) is not None:
                setattr(self, attr, _from_hex_int(estimate[key]))
        if estimate.get("paymaster"):
            self.paymaster = estimate["paymaster"]
        if estimate.get("paymasterData") is not None:
            self.paymaster_data = estimate["paymasterData"]
        return self


def user_operation_hash(user_op: UserOperation, entrypoint: str, chain_id: int) -> str:
    """userOpHash as computed by EntryPoint v0.7 ``getUserOpHash``."""
    packed = user_op.pack()
    inner = encode(
        ["address", "uint256", "bytes32", "bytes32", "bytes32", "uint256", "bytes32", "bytes32"],
        [
            packed.sender,
            packed.nonce,
            Web3.keccak(packed.init_code),
            Web3.keccak(packed.call_data),
            packed.account_gas_limits,
            packed.pre_verification_gas,
            packed.gas_fees,
            Web3.keccak(packed.paymaster_and_data),
        ],
    )
    outer = encode(
        ["bytes32", "address", "uint256"],
        [Web3.keccak(inner), Web3.to_checksum_address(entrypoint), chain_id],
    )
    return Web3.to_hex(Web3.keccak(outer))
