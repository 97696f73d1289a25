"""ERC-4337 paymaster client (Gelato-compatible ``pm_sponsorUserOperation``)."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Optional

import httpx
from web3 import Web3

from ..exceptions import PaymasterError
from ..logging_utils import get_logger
from .bundler_client import JsonRpcHttpClient
from .user_operation import UserOperation

logger = get_logger(__name__)


class PaymentMode(str, Enum):
    """How a user operation pays for gas."""
    SPONSORED = "sponsored"
    NATIVE = "native"
    ERC20 = "erc20"


@dataclass
class PaymasterConfig:
    url: str
    timeout_seconds: float = 30.0
    max_retries: int = 3
    retry_delay_seconds: float = 1.0


@dataclass
class SponsoredUserOperation:
    paymaster: str
    paymaster_data: str = "0x"
    paymaster_verification_gas_limit: int = 0
    paymaster_post_op_gas_limit: int = 0
    gas: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_rpc(cls, result: Any) -> "SponsoredUserOperation":
        if not isinstance(result, dict):
            raise PaymasterError("Paymaster returned invalid sponsorship payload", method="pm_sponsorUserOperation")

        if result.get("paymaster"):
            paymaster = result["paymaster"]
            paymaster_data = result.get("paymasterData") or "0x"
            pvgl = result.get("paymasterVerificationGasLimit") or "0x0"
            ppogl = result.get("paymasterPostOpGasLimit") or "0x0"
        elif isinstance(result.get("paymasterAndData"), str) and len(result["paymasterAndData"]) >= 2 + 40 + 64:
            # packed v0.7 layout: address ++ uint128 ++ uint128 ++ data
            raw = result["paymasterAndData"].removeprefix("0x")
            paymaster = Web3.to_checksum_address("0x" + raw[:40])
            pvgl = "0x" + raw[40:72]
            ppogl = "0x" + raw[72:104]
            paymaster_data = "0x" + raw[104:]
        else:
            raise PaymasterError("Paymaster returned invalid sponsorship payload", method="pm_sponsorUserOperation")

        gas = {
            key: result[key]
            for key in ("callGasLimit", "verificationGasLimit", "preVerificationGas", "maxFeePerGas", "maxPriorityFeePerGas")
            if result.get(key) is not None
        }
        return cls(
            paymaster=paymaster,
            paymaster_data=paymaster_data,
            paymaster_verification_gas_limit=int(pvgl, 16) if isinstance(pvgl, str) else int(pvgl),
            paymaster_post_op_gas_limit=int(ppogl, 16) if isinstance(ppogl, str) else int(ppogl),
            gas=gas,
        )

    def apply_to(self, user_op: UserOperation) -> UserOperation:
        user_op.paymaster = self.paymaster
        user_op.paymaster_data = self.paymaster_data
        user_op.paymaster_verification_gas_limit = self.paymaster_verification_gas_limit
        user_op.paymaster_post_op_gas_limit = self.paymaster_post_op_gas_limit
        if self.gas:
            user_op.apply_gas_estimate(self.gas)
        return user_op


def erc20_context(token: str) -> dict[str, str]:
    return {"type": "erc20", "token": Web3.to_checksum_address(token)}


def sponsored_context(sponsorship_policy_id: str | None = None) -> dict[str, str]:
    return {"sponsorshipPolicyId": sponsorship_policy_id} if sponsorship_policy_id else {}


class PaymasterClient(JsonRpcHttpClient):
    """Paymaster client for sponsored and ERC-20 gas payment."""

    error_cls = PaymasterError

    def __init__(self, config: PaymasterConfig, client: Optional[httpx.AsyncClient] = None):
        super().__init__(
            config.url,
            timeout_seconds=config.timeout_seconds,
            max_retries=config.max_retries,
            retry_delay_seconds=config.retry_delay_seconds,
            client=client,
        )
        self._config = config

    async def sponsor_user_operation(
        self,
        user_op: UserOperation,
        entrypoint: str,
        context: dict[str, Any] | None = None,
    ) -> SponsoredUserOperation:
        result = await self._rpc(
            "pm_sponsorUserOperation",
            [user_op.to_rpc(), entrypoint, context or {}],
        )
        sponsored = SponsoredUserOperation.from_rpc(result)
        logger.info(
            "Paymaster sponsorship prepared",
            context={"paymaster": sponsored.paymaster, "mode": (context or {}).get("type", "sponsored")},
        )
        return sponsored
