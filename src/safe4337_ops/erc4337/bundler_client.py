"""ERC-4337 bundler JSON-RPC client."""

from __future__ import annotations

import asyncio
import time
from dataclasses import dataclass
from typing import Any, Optional, Type

import httpx

from ..exceptions import BundlerError
from ..logging_utils import get_logger, mask_url
from .user_operation import UserOperation

logger = get_logger(__name__)

GELATO_GAS_PRICE_METHOD = "gelato_getUserOperationGasPrice"


@dataclass
class BundlerConfig:
    url: str
    timeout_seconds: float = 30.0
    max_retries: int = 3
    retry_delay_seconds: float = 1.0
    gas_price_method: str = GELATO_GAS_PRICE_METHOD


@dataclass
class GasPrice:
    max_fee_per_gas: int
    max_priority_fee_per_gas: int


def _hex_to_int(value: Any) -> int:
    if isinstance(value, int):
        return value
    return int(value, 16)


def parse_gas_price(result: Any) -> GasPrice:
    """Accept both a flat fee pair and a slow/standard/fast tier mapping."""
    if not isinstance(result, dict):
        raise BundlerError("Invalid gas price payload", data=result)
    tier = result
    if "maxFeePerGas" not in tier:
        tier = result.get("standard") or result.get("fast") or {}
    if "maxFeePerGas" not in tier or "maxPriorityFeePerGas" not in tier:
        raise BundlerError("Invalid gas price payload", data=result)
    return GasPrice(
        max_fee_per_gas=_hex_to_int(tier["maxFeePerGas"]),
        max_priority_fee_per_gas=_hex_to_int(tier["maxPriorityFeePerGas"]),
    )


class JsonRpcHttpClient:
    """Async JSON-RPC over HTTP with linear retry on transport failures and 429."""

    error_cls: Type[BundlerError] = BundlerError

    def __init__(
        self,
        url: str,
        timeout_seconds: float = 30.0,
        max_retries: int = 3,
        retry_delay_seconds: float = 1.0,
        client: Optional[httpx.AsyncClient] = None,
    ):
        self._url = url
        self._max_retries = max_retries
        self._retry_delay = retry_delay_seconds
        self._client = client or httpx.AsyncClient(timeout=timeout_seconds)
        self._request_id = 0

    @property
    def url(self) -> str:
        return self._url

    async def _rpc(self, method: str, params: list[Any]) -> Any:
        self._request_id += 1
        payload = {"jsonrpc": "2.0", "id": self._request_id, "method": method, "params": params}

        attempt = 0
        while True:
            started = time.monotonic()
            try:
                response = await self._client.post(self._url, json=payload)
            except httpx.TransportError as e:
                if attempt >= self._max_retries:
                    raise self.error_cls(f"transport failure: {e}", method=method) from e
                attempt += 1
                logger.warning(
                    f"{method} to {mask_url(self._url)} failed ({e}), retry {attempt}/{self._max_retries}"
                )
                await asyncio.sleep(self._retry_delay * attempt)
                continue

            if response.status_code == 429 and attempt < self._max_retries:
                attempt += 1
                logger.warning(f"{method} rate limited, retry {attempt}/{self._max_retries}")
                await asyncio.sleep(self._retry_delay * attempt)
                continue
            break

        latency_ms = (time.monotonic() - started) * 1000
        if response.status_code >= 400:
            raise self.error_cls(
                f"HTTP {response.status_code}: {response.text[:200]}",
                method=method,
            )
        try:
            data = response.json()
        except ValueError as e:
            raise self.error_cls("response is not valid JSON", method=method) from e

        error = data.get("error") if isinstance(data, dict) else None
        if error:
            if isinstance(error, dict):
                raise self.error_cls(
                    error.get("message", str(error)),
                    method=method,
                    rpc_code=error.get("code"),
                    data=error.get("data"),
                )
            raise self.error_cls(str(error), method=method)

        logger.debug(f"{method} succeeded in {latency_ms:.0f}ms")
        return data.get("result")

    async def close(self) -> None:
        await self._client.aclose()

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.close()


class BundlerClient(JsonRpcHttpClient):
    def __init__(self, config: BundlerConfig, client: Optional[httpx.AsyncClient] = None):
        super().__init__(
            config.url,
            timeout_seconds=config.timeout_seconds,
            max_retries=config.max_retries,
            retry_delay_seconds=config.retry_delay_seconds,
            client=client,
        )
        self._config = config

    async def chain_id(self) -> int:
        return _hex_to_int(await self._rpc("eth_chainId", []))

    async def supported_entry_points(self) -> list[str]:
        result = await self._rpc("eth_supportedEntryPoints", [])
        if not isinstance(result, list):
            raise BundlerError("Bundler returned invalid entry point list", method="eth_supportedEntryPoints")
        return result

    async def estimate_user_operation_gas(self, user_op: UserOperation, entrypoint: str) -> dict[str, str]:
        result = await self._rpc("eth_estimateUserOperationGas", [user_op.to_rpc(), entrypoint])
        if not isinstance(result, dict):
            raise BundlerError("Bundler returned invalid gas estimate payload", method="eth_estimateUserOperationGas")
        return result

    async def send_user_operation(self, user_op: UserOperation, entrypoint: str) -> str:
        result = await self._rpc("eth_sendUserOperation", [user_op.to_rpc(), entrypoint])
        if not isinstance(result, str):
            raise BundlerError("Bundler returned invalid user op hash", method="eth_sendUserOperation")
        return result

    async def get_user_operation_by_hash(self, user_op_hash: str) -> dict[str, Any] | None:
        result = await self._rpc("eth_getUserOperationByHash", [user_op_hash])
        if result is not None and not isinstance(result, dict):
            raise BundlerError("Bundler returned invalid user operation payload", method="eth_getUserOperationByHash")
        return result

    async def get_user_operation_receipt(self, user_op_hash: str) -> dict[str, Any] | None:
        result = await self._rpc("eth_getUserOperationReceipt", [user_op_hash])
        if result is None:
            return None
        if not isinstance(result, dict):
            raise BundlerError("Bundler returned invalid receipt payload", method="eth_getUserOperationReceipt")
        return result

    async def max_priority_fee_per_gas(self) -> int:
        return _hex_to_int(await self._rpc("eth_maxPriorityFeePerGas", []))

    async def user_operation_gas_price(self) -> GasPrice:
        return parse_gas_price(await self._rpc(self._config.gas_price_method, []))

    async def wait_for_receipt(
        self,
        user_op_hash: str,
        timeout_seconds: int = 180,
        poll_seconds: float = 2.0,
    ) -> dict[str, Any]:
        waited = 0.0
        while waited < timeout_seconds:
            receipt = await self.get_user_operation_receipt(user_op_hash)
            if receipt:
                return receipt
            await asyncio.sleep(poll_seconds)
            waited += poll_seconds
        raise TimeoutError(f"UserOperation not included within {timeout_seconds}s: {user_op_hash}")
