"""
Send user operations from the deployed Safe 1/1 through the Gelato bundler.

Three payment modes are supported:
- sponsored: zero fees, Gelato 1Balance pays (``sponsored=true`` bundler URL)
- native: the Safe pays gas in ETH from its own balance
- erc20: Gelato paymaster takes the TestToken as gas payment

Every operation calls ``Counter.increment()`` through
``Safe4337Module.executeUserOp`` and is signed as an EIP-712 SafeOp.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Optional

from eth_account import Account
from eth_account.signers.local import LocalAccount
from web3 import Web3

from ..chain import ChainClient
from ..config import GAS_CONFIG, Safe4337Settings
from ..deployments import DeployedAddresses, load_deployed_addresses
from ..erc4337 import (
    BundlerClient,
    BundlerConfig,
    GasPrice,
    PaymasterClient,
    PaymasterConfig,
    PaymentMode,
    UserOperation,
    dummy_signature,
    erc20_context,
    gelato_bundler_url,
    gelato_paymaster_url,
    get_entrypoint_nonce,
    sign_user_operation,
    user_operation_hash,
)
from ..exceptions import BundlerError, DeploymentError
from ..logging_utils import get_logger, operation_context
from ..safe_account import encode_execute_user_op

logger = get_logger(__name__)

INCREMENT_SELECTOR = Web3.keccak(text="increment()")[:4]


@dataclass
class UserOperationResult:
    mode: PaymentMode
    sender: str
    user_op_hash: str
    local_hash: str
    success: Optional[bool] = None
    tx_hash: Optional[str] = None
    explorer_url: Optional[str] = None
    counter_before: Optional[int] = None
    counter_after: Optional[int] = None
    actual_gas_cost: Optional[int] = None


class UserOperationService:
    """Builds, signs and submits Safe user operations."""

    def __init__(
        self,
        settings: Safe4337Settings,
        chain: Optional[ChainClient] = None,
        account: Optional[LocalAccount] = None,
        bundler_factory: Optional[Callable[[str], BundlerClient]] = None,
        paymaster_factory: Optional[Callable[[str], PaymasterClient]] = None,
    ):
        self.settings = settings
        self.chain = chain or ChainClient(settings)
        self.account = account or Account.from_key(settings.require_private_key())
        self.contracts = settings.contracts
        self.chain_id = settings.network.chain_id
        self._bundler_factory = bundler_factory or (lambda url: BundlerClient(BundlerConfig(url=url)))
        self._paymaster_factory = paymaster_factory or (lambda url: PaymasterClient(PaymasterConfig(url=url)))

    def bundler_url(self, mode: PaymentMode) -> str:
        return gelato_bundler_url(
            self.chain_id,
            self.settings.require_gelato_api_key(),
            sponsored=mode == PaymentMode.SPONSORED,
        )

    def paymaster_url(self) -> str:
        return gelato_paymaster_url(self.chain_id, self.settings.require_gelato_api_key())

    def deployed_addresses(self) -> DeployedAddresses:
        return load_deployed_addresses(
            self.settings.deployments_dir,
            safe_override=self.settings.safe_address or None,
        )

    def build_increment_operation(self, safe: str, counter: str) -> UserOperation:
        """Unsigned ``Counter.increment()`` operation with default gas limits."""
        return UserOperation(
            sender=Web3.to_checksum_address(safe),
            nonce=get_entrypoint_nonce(self.chain.w3, safe, 0, self.contracts.entry_point),
            call_data=encode_execute_user_op(counter, 0, INCREMENT_SELECTOR),
            call_gas_limit=GAS_CONFIG.call_gas_limit,
            verification_gas_limit=GAS_CONFIG.verification_gas_limit,
            pre_verification_gas=GAS_CONFIG.pre_verification_gas,
            signature=dummy_signature(),
        )

    def _node_fees(self) -> GasPrice:
        latest = self.chain.w3.eth.get_block("latest")
        priority = self.chain.w3.eth.max_priority_fee
        return GasPrice(
            max_fee_per_gas=latest["baseFeePerGas"] * 2 + priority,
            max_priority_fee_per_gas=priority,
        )

    async def _apply_fees(self, user_op: UserOperation, mode: PaymentMode, bundler: BundlerClient) -> None:
        if mode == PaymentMode.SPONSORED:
            user_op.max_fee_per_gas = GAS_CONFIG.sponsored_max_fee_per_gas
            user_op.max_priority_fee_per_gas = GAS_CONFIG.sponsored_max_priority_fee_per_gas
            user_op.pre_verification_gas = GAS_CONFIG.sponsored_pre_verification_gas
            return
        try:
            fees = await bundler.user_operation_gas_price()
        except BundlerError as e:
            logger.warning(f"Bundler gas price unavailable ({e.message}), using node fee data")
            fees = self._node_fees()
        user_op.max_fee_per_gas = fees.max_fee_per_gas
        user_op.max_priority_fee_per_gas = fees.max_priority_fee_per_gas

    async def _estimate(self, user_op: UserOperation, bundler: BundlerClient) -> None:
        try:
            estimate = await bundler.estimate_user_operation_gas(user_op, self.contracts.entry_point)
        except BundlerError as e:
            logger.warning(
                f"Gas simulation failed, using default limits: {e.message}",
                context={"aa_code": e.aa_code} if e.aa_code else None,
            )
            return
        user_op.apply_gas_estimate(estimate)

    async def send(
        self,
        mode: PaymentMode | str,
        wait: bool = True,
        receipt_timeout: int = 180,
    ) -> UserOperationResult:
        mode = PaymentMode(mode)
        log = logger.child(mode=mode.value)
        addresses = self.deployed_addresses()

        if not self.chain.is_contract(addresses.safe):
            raise DeploymentError(
                f"Safe {addresses.safe} has no code; deploy it before sending user operations (AA20)"
            )

        counter_before = self.chain.get_counter_value(addresses.counter)
        log.contract(f"Counter {addresses.counter} value before: {counter_before}")

        bundler = self._bundler_factory(self.bundler_url(mode))
        paymaster = self._paymaster_factory(self.paymaster_url()) if mode == PaymentMode.ERC20 else None
        try:
            with operation_context(f"userop_{mode.value}", log, sender=addresses.safe) as ctx:
                user_op = self.build_increment_operation(addresses.safe, addresses.counter)
                await self._apply_fees(user_op, mode, bundler)

                if paymaster is not None:
                    sponsored = await paymaster.sponsor_user_operation(
                        user_op, self.contracts.entry_point, erc20_context(addresses.token)
                    )
                    sponsored.apply_to(user_op)
                else:
                    await self._estimate(user_op, bundler)

                user_op.signature = sign_user_operation(
                    user_op,
                    self.account,
                    self.chain_id,
                    module=self.contracts.safe_4337_module,
                    entrypoint=self.contracts.entry_point,
                )
                local_hash = user_operation_hash(user_op, self.contracts.entry_point, self.chain_id)

                log.progress("Sending UserOperation to Gelato bundler")
                user_op_hash = await bundler.send_user_operation(user_op, self.contracts.entry_point)
                log.success(f"UserOperation sent: {user_op_hash}")
                ctx["user_op_hash"] = user_op_hash

                result = UserOperationResult(
                    mode=mode,
                    sender=addresses.safe,
                    user_op_hash=user_op_hash,
                    local_hash=local_hash,
                    counter_before=counter_before,
                )
                if local_hash.lower() != user_op_hash.lower():
                    log.warning("Bundler hash differs from locally computed hash", context={"local": local_hash})

                if wait:
                    receipt = await bundler.wait_for_receipt(user_op_hash, timeout_seconds=receipt_timeout)
                    result.success = bool(receipt.get("success"))
                    result.tx_hash = (receipt.get("receipt") or {}).get("transactionHash")
                    gas_cost = receipt.get("actualGasCost")
                    if gas_cost is not None:
                        result.actual_gas_cost = int(gas_cost, 16) if isinstance(gas_cost, str) else int(gas_cost)
                    if result.tx_hash:
                        result.explorer_url = self.chain.explorer_tx_url(result.tx_hash)
                    result.counter_after = self.chain.get_counter_value(addresses.counter)
                    log.transaction(
                        f"UserOperation included (success={result.success})",
                        context={"tx_hash": result.tx_hash},
                    )
                return result
        finally:
            await bundler.close()
            if paymaster is not None:
                await paymaster.close()
