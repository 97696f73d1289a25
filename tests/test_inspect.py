"""Tests for the read-only reports."""
from __future__ import annotations

from unittest.mock import patch

import pytest
from eth_abi import encode
from web3 import Web3

from helpers import COUNTER, OWNER, SAFE
from safe4337_ops.chain import ChainClient
from safe4337_ops.config import CONTRACT_ADDRESSES, DEPLOYMENT_FILES, SAFE_CONFIG
from safe4337_ops.deployments import read_address
from safe4337_ops.exceptions import ChainError, ConfigurationError
from safe4337_ops.operations import (
    check_pack_config,
    funds_report,
    network_check,
    project_status,
    safe_address_from_tx,
    safe_address_report,
)
from safe4337_ops.operations.inspect import PROXY_CREATION_TOPIC

PREDICTED = "0x1234567890AbcdEF1234567890aBcdef12345678"


class TestNetworkCheck:
    def test_matching_chain(self, chain):
        report = network_check(chain)
        assert report.matches
        assert report.chain_id == 11155111
        assert report.block_number == 7_000_000
        assert report.name == "Sepolia"

    def test_mismatch_is_reported(self, chain, w3):
        w3.eth.chain_id = 1
        report = network_check(chain)
        assert not report.matches
        assert (report.chain_id, report.expected_chain_id) == (1, 11155111)


class TestFundsReport:
    def test_sufficient(self, chain):
        report = funds_report(chain, OWNER.lower())
        assert report.address == OWNER
        assert report.sufficient
        assert report.balance_eth == 1
        assert report.faucets

    def test_below_threshold(self, chain, w3):
        w3.eth.get_balance.return_value = SAFE_CONFIG.funding_amount_wei - 1
        assert not funds_report(chain, OWNER).sufficient


class TestSafeAddressReport:
    def test_deployed_address_is_saved(self, chain, settings):
        with patch("safe4337_ops.operations.inspect.prepare_safe", return_value=(b"", PREDICTED)) as prepare:
            report = safe_address_report(chain, OWNER, 7)

        prepare.assert_called_once_with(chain, OWNER, 7, CONTRACT_ADDRESSES)
        assert report.predicted_address == PREDICTED
        assert report.deployed
        assert read_address(settings.deployments_dir, DEPLOYMENT_FILES.safe) == PREDICTED
        assert report.saved_to.endswith(DEPLOYMENT_FILES.safe)

    def test_undeployed_address_is_not_saved(self, chain, w3, settings):
        w3.eth.get_code.return_value = b""
        with patch("safe4337_ops.operations.inspect.prepare_safe", return_value=(b"", PREDICTED)):
            report = safe_address_report(chain, OWNER, 7)
        assert not report.deployed
        assert report.saved_to is None
        assert read_address(settings.deployments_dir, DEPLOYMENT_FILES.safe) == SAFE

    def test_no_save(self, chain, settings):
        with patch("safe4337_ops.operations.inspect.prepare_safe", return_value=(b"", PREDICTED)):
            report = safe_address_report(chain, OWNER, 7, save=False)
        assert report.deployed
        assert report.saved_to is None


class TestSafeAddressFromTx:
    def _receipt(self, *logs):
        return {"logs": list(logs)}

    def test_indexed_proxy_topic(self, chain, w3):
        proxy_topic = bytes(12) + bytes.fromhex(SAFE[2:])
        w3.eth.get_transaction_receipt.return_value = self._receipt(
            {"topics": [bytes(32)], "data": b""},
            {"topics": [Web3.keccak(text="ProxyCreation(address,address)"), proxy_topic], "data": b""},
        )
        assert safe_address_from_tx(chain, "0x01") == SAFE

    def test_proxy_in_data(self, chain, w3):
        data = encode(["address", "address"], [SAFE, CONTRACT_ADDRESSES.safe_singleton])
        w3.eth.get_transaction_receipt.return_value = self._receipt(
            {"topics": [Web3.keccak(text="ProxyCreation(address,address)")], "data": data}
        )
        assert safe_address_from_tx(chain, "0x01") == SAFE

    def test_no_event(self, chain, w3):
        w3.eth.get_transaction_receipt.return_value = self._receipt({"topics": [bytes(32)], "data": b""})
        assert safe_address_from_tx(chain, "0x01") is None

    def test_topic_constant(self):
        assert PROXY_CREATION_TOPIC == "0x" + Web3.keccak(text="ProxyCreation(address,address)").hex().removeprefix("0x")


class TestProjectStatus:
    def test_full_status(self, chain, w3):
        w3.eth.contract.return_value.functions.count.return_value.call.return_value = 9
        w3.eth.contract.return_value.functions.balanceOf.return_value.call.return_value = 123
        with patch("safe4337_ops.operations.inspect.SafeInspector") as inspector:
            status = project_status(chain)

        assert status.chain == "Sepolia"
        assert status.addresses.counter == COUNTER
        assert status.counter_value == 9
        assert status.entrypoint_deposit == 123
        assert status.modules["EntryPoint"] == CONTRACT_ADDRESSES.entry_point
        assert status.explorer_links["Safe"] == f"https://sepolia.etherscan.io/address/{SAFE}"
        inspector.return_value.status.assert_called_once_with(SAFE)
        assert status.safe is inspector.return_value.status.return_value
        assert status.errors == []

    def test_without_safe(self, chain):
        with patch("safe4337_ops.operations.inspect.SafeInspector") as inspector:
            status = project_status(chain, include_safe=False)
        inspector.assert_not_called()
        assert status.safe is None

    def test_safe_read_error_is_collected(self, chain):
        with patch("safe4337_ops.operations.inspect.SafeInspector") as inspector:
            inspector.return_value.status.side_effect = ChainError("owners unreadable")
            status = project_status(chain)
        assert status.errors == ["owners unreadable"]
        assert status.addresses is not None

    def test_missing_address_book(self, settings, w3, tmp_path):
        empty = tmp_path / "empty"
        empty.mkdir()
        (empty / DEPLOYMENT_FILES.counter).write_text(COUNTER)
        w3.eth.contract.return_value.functions.count.return_value.call.return_value = 3
        chain = ChainClient(settings.model_copy(update={"deployments_dir": empty}), w3=w3)

        status = project_status(chain)
        assert status.addresses is None
        assert status.counter_value == 3
        assert len(status.errors) == 1
        assert "not found" in status.errors[0]


class TestCheckPackConfig:
    def test_bundler_only(self, settings):
        config = check_pack_config(settings)
        assert config["chain_id"] == 11155111
        assert config["entry_point_address"] == CONTRACT_ADDRESSES.entry_point
        assert config["bundler_url"].endswith("apiKey=test-api-key")
        assert "paymaster_url" not in config

    def test_sponsored(self, settings):
        config = check_pack_config(settings, sponsored=True)
        assert config["bundler_url"].endswith("&sponsored=true")
        assert "/paymasters/11155111/" in config["paymaster_url"]

    def test_requires_api_key(self, settings):
        with pytest.raises(ConfigurationError, match="GELATO_API_KEY"):
            check_pack_config(settings.model_copy(update={"gelato_api_key": ""}))
