"""Tests for the ERC-4337 v0.7 UserOperation model and hash."""
from __future__ import annotations

from eth_abi import encode
from web3 import Web3

from helpers import SAFE
from safe4337_ops.config import CONTRACT_ADDRESSES
from safe4337_ops.erc4337 import (
    ENTRYPOINT_V07,
    UserOperation,
    get_deposit,
    get_entrypoint_nonce,
    get_entrypoint_v07,
    user_operation_hash,
)

PAYMASTER = "0x1111111111111111111111111111111111111111"


def _sample_user_op(**overrides) -> UserOperation:
    fields = dict(
        sender=SAFE,
        nonce=1,
        call_data="0xdeadbeef",
        call_gas_limit=200_000,
        verification_gas_limit=250_000,
        pre_verification_gas=60_000,
        max_fee_per_gas=2_000_000_000,
        max_priority_fee_per_gas=1_000_000_000,
    )
    fields.update(overrides)
    return UserOperation(**fields)


class TestRpcFormat:
    def test_quantities_are_hex(self):
        payload = _sample_user_op().to_rpc()
        assert payload["nonce"] == "0x1"
        assert payload["callGasLimit"] == hex(200_000)
        assert payload["maxFeePerGas"] == hex(2_000_000_000)
        assert payload["signature"] == "0x"

    def test_omits_empty_factory_and_paymaster(self):
        payload = _sample_user_op().to_rpc()
        assert "factory" not in payload
        assert "factoryData" not in payload
        assert "paymaster" not in payload
        assert "paymasterData" not in payload

    def test_includes_paymaster_fields_when_set(self):
        payload = _sample_user_op(
            paymaster=PAYMASTER,
            paymaster_verification_gas_limit=100_000,
            paymaster_post_op_gas_limit=50_000,
            paymaster_data="0xabcd",
        ).to_rpc()
        assert payload["paymaster"] == PAYMASTER
        assert payload["paymasterVerificationGasLimit"] == hex(100_000)
        assert payload["paymasterPostOpGasLimit"] == hex(50_000)
        assert payload["paymasterData"] == "0xabcd"

    def test_from_rpc(self):
        op = _sample_user_op(factory=CONTRACT_ADDRESSES.safe_proxy_factory, factory_data="0x1234")
        assert UserOperation.from_rpc(op.to_rpc()) == op

    def test_from_rpc_accepts_decimal_strings(self):
        op = UserOperation.from_rpc({"sender": SAFE, "nonce": "5", "callGasLimit": 7})
        assert op.nonce == 5
        assert op.call_gas_limit == 7
        assert op.paymaster is None


class TestPacking:
    def test_init_code(self):
        assert _sample_user_op().init_code == "0x"
        op = _sample_user_op(factory=CONTRACT_ADDRESSES.safe_proxy_factory, factory_data="0x1234")
        assert op.init_code == CONTRACT_ADDRESSES.safe_proxy_factory + "1234"

    def test_paymaster_and_data_layout(self):
        op = _sample_user_op(
            paymaster=PAYMASTER,
            paymaster_verification_gas_limit=1,
            paymaster_post_op_gas_limit=2,
            paymaster_data="0xff",
        )
        raw = bytes.fromhex(op.paymaster_and_data[2:])
        assert raw[:20] == bytes.fromhex(PAYMASTER[2:])
        assert int.from_bytes(raw[20:36], "big") == 1
        assert int.from_bytes(raw[36:52], "big") == 2
        assert raw[52:] == b"\xff"

    def test_packed_gas_fields(self):
        packed = _sample_user_op().pack()
        assert int.from_bytes(packed.account_gas_limits[:16], "big") == 250_000
        assert int.from_bytes(packed.account_gas_limits[16:], "big") == 200_000
        assert int.from_bytes(packed.gas_fees[:16], "big") == 1_000_000_000
        assert int.from_bytes(packed.gas_fees[16:], "big") == 2_000_000_000
        assert packed.init_code == b""
        assert packed.call_data == bytes.fromhex("deadbeef")


class TestGasEstimate:
    def test_apply_bundler_estimate(self):
        op = _sample_user_op()
        returned = op.apply_gas_estimate(
            {"callGasLimit": "0x10", "verificationGasLimit": "0x20", "preVerificationGas": "0x30"}
        )
        assert returned is op
        assert (op.call_gas_limit, op.verification_gas_limit, op.pre_verification_gas) == (16, 32, 48)
        assert op.max_fee_per_gas == 2_000_000_000

    def test_apply_paymaster_estimate(self):
        op = _sample_user_op().apply_gas_estimate(
            {"paymaster": PAYMASTER, "paymasterData": "0x01", "paymasterPostOpGasLimit": "0x5"}
        )
        assert op.paymaster == PAYMASTER
        assert op.paymaster_data == "0x01"
        assert op.paymaster_post_op_gas_limit == 5


class TestUserOperationHash:
    def test_matches_entrypoint_v07_encoding(self):
        op = _sample_user_op()
        packed = op.pack()
        inner = encode(
            ["address", "uint256", "bytes32", "bytes32", "bytes32", "uint256", "bytes32", "bytes32"],
            [
                SAFE,
                1,
                Web3.keccak(b""),
                Web3.keccak(bytes.fromhex("deadbeef")),
                packed.account_gas_limits,
                60_000,
                packed.gas_fees,
                Web3.keccak(b""),
            ],
        )
        expected = Web3.keccak(
            encode(
                ["bytes32", "address", "uint256"],
                [Web3.keccak(inner), CONTRACT_ADDRESSES.entry_point, 11155111],
            )
        )
        assert user_operation_hash(op, CONTRACT_ADDRESSES.entry_point, 11155111) == Web3.to_hex(expected)

    def test_words_written_out_by_hand(self):
        def word(value: int) -> bytes:
            return value.to_bytes(32, "big")

        empty_hash = bytes.fromhex("c5d2460186f7233c927e7db2dcc703c0e500b653ca82273b7bfad8045d85a470")
        # verificationGasLimit (250000) | callGasLimit (200000), 16 bytes each
        account_gas_limits = bytes.fromhex("00" * 13 + "03d090" + "00" * 13 + "030d40")
        # maxPriorityFeePerGas (1 gwei) | maxFeePerGas (2 gwei)
        gas_fees = bytes.fromhex("00" * 12 + "3b9aca00" + "00" * 12 + "77359400")
        inner = b"".join(
            [
                bytes(12) + bytes.fromhex(SAFE[2:]),
                word(1),
                empty_hash,
                bytes(Web3.keccak(hexstr="0xdeadbeef")),
                account_gas_limits,
                word(60_000),
                gas_fees,
                empty_hash,
            ]
        )
        outer = bytes(Web3.keccak(inner)) + bytes(12) + bytes.fromhex(CONTRACT_ADDRESSES.entry_point[2:]) + word(11155111)

        assert len(inner) == 8 * 32
        assert user_operation_hash(_sample_user_op(), CONTRACT_ADDRESSES.entry_point, 11155111) == Web3.to_hex(
            Web3.keccak(outer)
        )

    def test_signature_is_not_hashed(self):
        a = user_operation_hash(_sample_user_op(), CONTRACT_ADDRESSES.entry_point, 11155111)
        b = user_operation_hash(_sample_user_op(signature="0x" + "11" * 65), CONTRACT_ADDRESSES.entry_point, 11155111)
        assert a == b
        assert a != user_operation_hash(_sample_user_op(), CONTRACT_ADDRESSES.entry_point, 1)

    def test_signature_not_hashed(self):
        a = _sample_user_op(signature="0x01")
        b = _sample_user_op(signature="0x02")
        ep = CONTRACT_ADDRESSES.entry_point
        assert user_operation_hash(a, ep, 11155111) == user_operation_hash(b, ep, 11155111)

    def test_chain_id_changes_hash(self):
        op = _sample_user_op()
        ep = CONTRACT_ADDRESSES.entry_point
        assert user_operation_hash(op, ep, 11155111) != user_operation_hash(op, ep, 1)


class TestEntryPointReads:
    def test_nonce_uses_key_lane(self, w3):
        w3.eth.contract.return_value.functions.getNonce.return_value.call.return_value = 7
        assert get_entrypoint_nonce(w3, SAFE.lower(), key=2) == 7
        w3.eth.contract.return_value.functions.getNonce.assert_called_with(SAFE, 2)
        assert w3.eth.contract.call_args.kwargs["address"] == ENTRYPOINT_V07

    def test_deposit(self, w3):
        w3.eth.contract.return_value.functions.balanceOf.return_value.call.return_value = 10**15
        assert get_deposit(w3, SAFE) == 10**15

    def test_entrypoint_by_chain(self):
        assert get_entrypoint_v07("sepolia") == CONTRACT_ADDRESSES.entry_point
        assert get_entrypoint_v07("unknown") == ENTRYPOINT_V07
