"""Tests for the async bundler JSON-RPC client."""
from __future__ import annotations

import httpx
import pytest

from helpers import SAFE, RpcRecorder, mock_client
from safe4337_ops.config import CONTRACT_ADDRESSES
from safe4337_ops.erc4337 import BundlerClient, BundlerConfig, UserOperation, parse_gas_price
from safe4337_ops.erc4337.gelato import gelato_bundler_url, gelato_paymaster_url, gelato_urls
from safe4337_ops.exceptions import BundlerError

URL = "https://api.gelato.digital/bundlers/11155111/rpc?apiKey=k"
EP = CONTRACT_ADDRESSES.entry_point


def _client(handler, **config) -> BundlerClient:
    transport = handler if isinstance(handler, httpx.MockTransport) else httpx.MockTransport(handler)
    return BundlerClient(
        BundlerConfig(url=URL, retry_delay_seconds=0, **config),
        client=httpx.AsyncClient(transport=transport),
    )


def _user_op() -> UserOperation:
    return UserOperation(sender=SAFE, nonce=0, call_data="0x")


# ============ Gelato URLs ============


class TestGelatoUrls:
    def test_bundler_url(self):
        assert gelato_bundler_url(11155111, "k") == URL

    def test_sponsored_bundler_url(self):
        assert gelato_bundler_url(11155111, "k", sponsored=True) == URL + "&sponsored=true"

    def test_paymaster_url(self):
        assert gelato_paymaster_url(11155111, "k") == "https://api.gelato.digital/paymasters/11155111/rpc?apiKey=k"

    def test_api_key_is_encoded(self):
        assert "apiKey=a%2Bb" in gelato_bundler_url(1, "a+b")

    def test_url_pair(self):
        urls = gelato_urls(11155111, "k", sponsored=True)
        assert "sponsored=true" in urls.bundler_url
        assert "/paymasters/" in urls.paymaster_url


# ============ Methods ============


class TestBundlerMethods:
    @pytest.mark.asyncio
    async def test_chain_id(self):
        recorder = RpcRecorder({"eth_chainId": "0xaa36a7"})
        async with _client(recorder) as client:
            assert await client.chain_id() == 11155111
        assert recorder.calls[0]["jsonrpc"] == "2.0"
        assert recorder.calls[0]["params"] == []

    @pytest.mark.asyncio
    async def test_supported_entry_points(self):
        recorder = RpcRecorder({"eth_supportedEntryPoints": [EP]})
        async with _client(recorder) as client:
            assert await client.supported_entry_points() == [EP]

    @pytest.mark.asyncio
    async def test_send_user_operation_params(self):
        recorder = RpcRecorder({"eth_sendUserOperation": "0x" + "ab" * 32})
        async with _client(recorder) as client:
            result = await client.send_user_operation(_user_op(), EP)
        assert result == "0x" + "ab" * 32
        op_payload, entrypoint = recorder.params("eth_sendUserOperation")
        assert op_payload["sender"] == SAFE
        assert entrypoint == EP

    @pytest.mark.asyncio
    async def test_estimate_user_operation_gas(self):
        estimate = {"callGasLimit": "0x1", "verificationGasLimit": "0x2", "preVerificationGas": "0x3"}
        recorder = RpcRecorder({"eth_estimateUserOperationGas": estimate})
        async with _client(recorder) as client:
            assert await client.estimate_user_operation_gas(_user_op(), EP) == estimate

    @pytest.mark.asyncio
    async def test_lookup_methods_may_return_none(self):
        recorder = RpcRecorder({"eth_getUserOperationByHash": None, "eth_getUserOperationReceipt": None})
        async with _client(recorder) as client:
            assert await client.get_user_operation_by_hash("0x01") is None
            assert await client.get_user_operation_receipt("0x01") is None

    @pytest.mark.asyncio
    async def test_invalid_payload(self):
        recorder = RpcRecorder({"eth_sendUserOperation": {"unexpected": True}})
        async with _client(recorder) as client:
            with pytest.raises(BundlerError, match="invalid user op hash"):
                await client.send_user_operation(_user_op(), EP)

    @pytest.mark.asyncio
    async def test_fees(self):
        recorder = RpcRecorder(
            {
                "eth_maxPriorityFeePerGas": "0x3b9aca00",
                "gelato_getUserOperationGasPrice": {"maxFeePerGas": "0x2", "maxPriorityFeePerGas": "0x1"},
            }
        )
        async with _client(recorder) as client:
            assert await client.max_priority_fee_per_gas() == 1_000_000_000
            price = await client.user_operation_gas_price()
        assert (price.max_fee_per_gas, price.max_priority_fee_per_gas) == (2, 1)

    @pytest.mark.asyncio
    async def test_custom_gas_price_method(self):
        recorder = RpcRecorder({"pimlico_getUserOperationGasPrice": {"fast": {"maxFeePerGas": "0x5", "maxPriorityFeePerGas": "0x4"}}})
        async with _client(recorder, gas_price_method="pimlico_getUserOperationGasPrice") as client:
            price = await client.user_operation_gas_price()
        assert price.max_fee_per_gas == 5


class TestParseGasPrice:
    def test_prefers_standard_tier(self):
        price = parse_gas_price(
            {
                "slow": {"maxFeePerGas": "0x1", "maxPriorityFeePerGas": "0x1"},
                "standard": {"maxFeePerGas": "0x3", "maxPriorityFeePerGas": "0x2"},
                "fast": {"maxFeePerGas": "0x9", "maxPriorityFeePerGas": "0x9"},
            }
        )
        assert (price.max_fee_per_gas, price.max_priority_fee_per_gas) == (3, 2)

    @pytest.mark.parametrize("payload", [None, "0x1", {"standard": {"maxFeePerGas": "0x1"}}])
    def test_invalid(self, payload):
        with pytest.raises(BundlerError):
            parse_gas_price(payload)


# ============ Errors and retries ============


class TestErrors:
    @pytest.mark.asyncio
    async def test_rpc_error_carries_code_and_aa_code(self):
        recorder = RpcRecorder(
            {"eth_sendUserOperation": {"error": {"code": -32500, "message": "AA23 reverted (or OOG)"}}}
        )
        async with _client(recorder) as client:
            with pytest.raises(BundlerError) as exc_info:
                await client.send_user_operation(_user_op(), EP)
        error = exc_info.value
        assert error.rpc_code == -32500
        assert error.method == "eth_sendUserOperation"
        assert error.aa_code == "AA23"

    @pytest.mark.asyncio
    async def test_http_error(self):
        async with _client(lambda request: httpx.Response(401, text="invalid api key")) as client:
            with pytest.raises(BundlerError, match="HTTP 401"):
                await client.chain_id()

    @pytest.mark.asyncio
    async def test_invalid_json(self):
        async with _client(lambda request: httpx.Response(200, text="<html>")) as client:
            with pytest.raises(BundlerError, match="not valid JSON"):
                await client.chain_id()

    @pytest.mark.asyncio
    async def test_retries_transport_errors(self):
        attempts = []

        def handler(request):
            attempts.append(request)
            if len(attempts) < 3:
                raise httpx.ConnectError("connection refused")
            return httpx.Response(200, json={"jsonrpc": "2.0", "id": 1, "result": "0x1"})

        async with _client(handler) as client:
            assert await client.chain_id() == 1
        assert len(attempts) == 3

    @pytest.mark.asyncio
    async def test_gives_up_after_max_retries(self):
        attempts = []

        def handler(request):
            attempts.append(request)
            raise httpx.ConnectError("connection refused")

        async with _client(handler, max_retries=2) as client:
            with pytest.raises(BundlerError, match="transport failure"):
                await client.chain_id()
        assert len(attempts) == 3

    @pytest.mark.asyncio
    async def test_retries_rate_limit(self):
        responses = [
            httpx.Response(429, text="slow down"),
            httpx.Response(200, json={"jsonrpc": "2.0", "id": 1, "result": [EP]}),
        ]
        async with _client(lambda request: responses.pop(0)) as client:
            assert await client.supported_entry_points() == [EP]


# ============ wait_for_receipt ============


class TestWaitForReceipt:
    @pytest.mark.asyncio
    async def test_polls_until_receipt(self):
        receipts = [None, None, {"success": True, "receipt": {"transactionHash": "0xfeed"}}]
        recorder = RpcRecorder({"eth_getUserOperationReceipt": lambda params: receipts.pop(0)})
        async with _client(recorder) as client:
            receipt = await client.wait_for_receipt("0x01", timeout_seconds=10, poll_seconds=0.01)
        assert receipt["success"] is True
        assert recorder.methods().count("eth_getUserOperationReceipt") == 3

    @pytest.mark.asyncio
    async def test_timeout(self):
        recorder = RpcRecorder({"eth_getUserOperationReceipt": None})
        async with _client(recorder) as client:
            with pytest.raises(TimeoutError, match="0x01"):
                await client.wait_for_receipt("0x01", timeout_seconds=0.03, poll_seconds=0.01)


def test_client_accepts_injected_http_client():
    client = BundlerClient(BundlerConfig(url=URL), client=mock_client(RpcRecorder({})))
    assert client.url == URL
