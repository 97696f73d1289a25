"""Shared constants and JSON-RPC doubles for the test suite."""
from __future__ import annotations

import json
from typing import Any, Callable, Dict

import httpx

from safe4337_ops.erc4337 import BundlerClient, BundlerConfig, PaymasterClient, PaymasterConfig

# Foundry / Anvil account #0
OWNER_KEY = "0xac0974bec39a17e36ba4a6b4d238ff944bacb478cbed5efcae784d7bf4f2ff80"
OWNER = "0xf39Fd6e51aad88F6F4ce6aB8827279cffFb92266"
OWNER_2 = "0x70997970C51812dc3A010C7d01b50e0d17dc79C8"

COUNTER = "0x5FbDB2315678afecb367f032d93F642f64180aa3"
SAFE = "0xe7f1725E7734CE288F8367e1Bb143E90bb3F0512"
TOKEN = "0x9fE46736679d2D9a65F0992F2272dE9f3c7fa6e0"

SEPOLIA_CHAIN_ID = 11155111


class RpcRecorder:
    """JSON-RPC handler for ``httpx.MockTransport`` that records every call.

    ``responses`` maps a method to its result, to a callable taking the
    params, or to ``{"error": {...}}``.
    """

    def __init__(self, responses: Dict[str, Any]):
        self.responses = responses
        self.calls: list[dict[str, Any]] = []
        self.urls: list[str] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        payload = json.loads(request.content)
        self.calls.append(payload)
        self.urls.append(str(request.url))
        if payload["method"] not in self.responses:
            return httpx.Response(
                200,
                json={
                    "jsonrpc": "2.0",
                    "id": payload["id"],
                    "error": {"code": -32601, "message": "method not found"},
                },
            )
        reply = self.responses[payload["method"]]
        if callable(reply):
            reply = reply(payload["params"])
        if isinstance(reply, dict) and "error" in reply:
            return httpx.Response(200, json={"jsonrpc": "2.0", "id": payload["id"], **reply})
        return httpx.Response(200, json={"jsonrpc": "2.0", "id": payload["id"], "result": reply})

    def methods(self) -> list[str]:
        return [call["method"] for call in self.calls]

    def params(self, method: str) -> list[Any]:
        return next(call["params"] for call in self.calls if call["method"] == method)


def mock_client(recorder: RpcRecorder) -> httpx.AsyncClient:
    return httpx.AsyncClient(transport=httpx.MockTransport(recorder))


def bundler_factory_for(recorder: RpcRecorder) -> Callable[[str], BundlerClient]:
    def factory(url: str) -> BundlerClient:
        return BundlerClient(BundlerConfig(url=url, retry_delay_seconds=0), client=mock_client(recorder))

    return factory


def paymaster_factory_for(recorder: RpcRecorder) -> Callable[[str], PaymasterClient]:
    def factory(url: str) -> PaymasterClient:
        return PaymasterClient(PaymasterConfig(url=url, retry_delay_seconds=0), client=mock_client(recorder))

    return factory
