"""Sequential run of every bundler endpoint check, user operation and status step."""
from __future__ import annotations

import asyncio
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, List, Optional

from ..chain import ChainClient
from ..config import Safe4337Settings
from ..erc4337 import BundlerClient, BundlerConfig, PaymentMode, gelato_bundler_url
from ..exceptions import ConfigurationError
from ..logging_utils import get_logger
from .inspect import project_status
from .userops import UserOperationService

logger = get_logger(__name__)

STATUS_OK = "ok"
STATUS_FAILED = "failed"
STATUS_SKIPPED = "skipped"


@dataclass
class StepResult:
    group: str
    name: str
    status: str
    result: Any = None
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.status == STATUS_OK


class _Skip(Exception):
    pass


class Runner:
    """Runs the steps in order; a failing step is recorded and never aborts the run."""

    def __init__(
        self,
        settings: Safe4337Settings,
        chain: ChainClient,
        userops: Optional[UserOperationService] = None,
        bundler_factory: Optional[Callable[[str], BundlerClient]] = None,
        delay_seconds: float = 1.0,
        user_op_hash: Optional[str] = None,
    ):
        self.settings = settings
        self.chain = chain
        self.userops = userops
        self.bundler_factory = bundler_factory or (lambda url: BundlerClient(BundlerConfig(url=url)))
        self.delay_seconds = delay_seconds
        self.user_op_hash = user_op_hash
        self.results: List[StepResult] = []

    async def _step(self, group: str, name: str, fn: Callable[[], Awaitable[Any]]) -> StepResult:
        logger.info(f"Running: {name}")
        try:
            result = StepResult(group, name, STATUS_OK, result=await fn())
            logger.success(f"{name} completed successfully")
        except _Skip as e:
            result = StepResult(group, name, STATUS_SKIPPED, error=str(e))
            logger.warning(f"{name} skipped: {e}")
        except Exception as e:
            result = StepResult(group, name, STATUS_FAILED, error=str(e))
            logger.failure(f"{name} failed: {e}")
        self.results.append(result)
        if self.delay_seconds:
            await asyncio.sleep(self.delay_seconds)
        return result

    def _need_hash(self) -> str:
        if not self.user_op_hash:
            raise _Skip("no user operation hash available")
        return self.user_op_hash

    async def _endpoint_steps(self, bundler: BundlerClient) -> None:
        chain_id = self.settings.network.chain_id
        entry_point = self.settings.contracts.entry_point

        async def check_chain_id():
            reported = await bundler.chain_id()
            if reported != chain_id:
                raise ValueError(f"bundler reports chain {reported}, expected {chain_id}")
            return reported

        async def check_entrypoints():
            supported = await bundler.supported_entry_points()
            if entry_point.lower() not in [ep.lower() for ep in supported]:
                raise ValueError(f"EntryPoint {entry_point} not supported: {supported}")
            return supported

        async def op_by_hash():
            return await bundler.get_user_operation_by_hash(self._need_hash())

        async def op_receipt():
            return await bundler.get_user_operation_receipt(self._need_hash())

        group = "bundler"
        await self._step(group, "Chain ID Check", check_chain_id)
        await self._step(group, "Supported Entry Points", check_entrypoints)
        await self._step(group, "Get User Operation By Hash", op_by_hash)
        await self._step(group, "Get User Operation Receipt", op_receipt)
        await self._step(group, "Max Priority Fee Per Gas", bundler.max_priority_fee_per_gas)
        await self._step(group, "Get User Operation Gas Price", bundler.user_operation_gas_price)

    async def _userop_steps(self) -> None:
        group = "userops"
        for mode, name in (
            (PaymentMode.SPONSORED, "Sponsored UserOperation"),
            (PaymentMode.NATIVE, "Native UserOperation"),
        ):
            async def send(mode=mode):
                if self.userops is None:
                    self.userops = UserOperationService(self.settings, self.chain)
                result = await self.userops.send(mode)
                self.user_op_hash = result.user_op_hash
                return result

            await self._step(group, name, send)

    async def _status_steps(self) -> None:
        async def status():
            return project_status(self.chain)

        await self._step("status", "Final Status Check", status)

    async def run(self) -> List[StepResult]:
        logger.info("STEP 1: Running bundler endpoints")
        try:
            api_key = self.settings.require_gelato_api_key()
        except ConfigurationError as e:
            logger.failure(e.message)
            self.results.append(StepResult("bundler", "Bundler Setup", STATUS_FAILED, error=e.message))
        else:
            bundler = self.bundler_factory(gelato_bundler_url(self.settings.network.chain_id, api_key))
            try:
                await self._endpoint_steps(bundler)
            finally:
                await bundler.close()

        logger.info("STEP 2: Running send user operation endpoints")
        await self._userop_steps()

        logger.info("STEP 3: Running status check")
        await self._status_steps()

        failed = [r.name for r in self.results if r.status == STATUS_FAILED]
        logger.info(
            f"All steps executed: {len(self.results) - len(failed)} passed or skipped, {len(failed)} failed",
            context={"failed": failed} if failed else None,
        )
        return self.results


async def run_all(
    settings: Safe4337Settings,
    chain: ChainClient,
    **kwargs: Any,
) -> List[StepResult]:
    return await Runner(settings, chain, **kwargs).run()
