"""
JSON-RPC chain access for safe4337-ops.

Wraps a synchronous web3.py connection with:
- chain ID verification against the configured network
- balance / code / ERC-20 reads
- locally signed EIP-1559 transactions with receipt checks
- contract deployment from compiled Foundry or Hardhat artifacts
"""
from __future__ import annotations

import json
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence

from eth_abi import encode
from eth_account.signers.local import LocalAccount
from web3 import Web3

from .abis import COUNTER_ABI, ERC20_ABI
from .config import GAS_CONFIG, NetworkConfig, Safe4337Settings, get_settings, validate_chain_id
from .exceptions import ConfigurationError, RPCError, TransactionFailedError
from .logging_utils import get_logger, mask_url

logger = get_logger(__name__)

DEFAULT_RECEIPT_TIMEOUT = 180


@dataclass
class TransactionResult:
    """Result of a blockchain transaction."""
    success: bool
    tx_hash: Optional[str] = None
    block_number: Optional[int] = None
    gas_used: Optional[int] = None
    contract_address: Optional[str] = None
    explorer_url: Optional[str] = None
    error: Optional[str] = None


@dataclass
class NetworkStatus:
    chain_id: int
    block_number: int
    name: str


@dataclass
class CompiledArtifact:
    """ABI and creation bytecode of a compiled contract."""
    name: str
    abi: List[Dict[str, Any]]
    bytecode: str


def load_foundry_artifact(path: str | Path) -> CompiledArtifact:
    """
    Read a compiled contract artifact.

    Accepts Foundry output (``out/<Name>.sol/<Name>.json`` where ``bytecode``
    is an object with an ``object`` field) and Hardhat output (``bytecode``
    is a hex string).
    """
    path = Path(path)
    if not path.exists():
        raise ConfigurationError(f"Contract artifact not found: {path}")

    data = json.loads(path.read_text(encoding="utf-8"))
    bytecode = data.get("bytecode")
    if isinstance(bytecode, dict):
        bytecode = bytecode.get("object")
    if not bytecode or not isinstance(bytecode, str):
        raise ConfigurationError(f"Artifact has no bytecode: {path}")
    if not bytecode.startswith("0x"):
        bytecode = "0x" + bytecode

    name = data.get("contractName") or path.stem
    return CompiledArtifact(name=name, abi=data.get("abi", []), bytecode=bytecode)


def encode_constructor_args(abi: Sequence[Dict[str, Any]], args: Sequence[Any]) -> bytes:
    constructor = next((item for item in abi if item.get("type") == "constructor"), None)
    types = [i["type"] for i in constructor.get("inputs", [])] if constructor else []
    if len(types) != len(args):
        raise ValueError(f"Constructor expects {len(types)} arguments, got {len(args)}")
    if not types:
        return b""
    return encode(types, list(args))


class ChainClient:
    """
    Synchronous JSON-RPC client for the configured network.

    Handles:
    - Connection and chain ID checks
    - Account / contract reads
    - Transaction signing, submission and confirmation
    """

    def __init__(
        self,
        settings: Optional[Safe4337Settings] = None,
        w3: Optional[Web3] = None,
        receipt_timeout: int = DEFAULT_RECEIPT_TIMEOUT,
    ):
        self.settings = settings or get_settings()
        self.network: NetworkConfig = self.settings.network
        self.rpc_url = self.settings.effective_rpc_url
        self.w3 = w3 or Web3(Web3.HTTPProvider(self.rpc_url))
        self.receipt_timeout = receipt_timeout
        self.log = logger.child(chain=self.network.name)

    # ==================== Network ====================

    def connect(self) -> NetworkStatus:
        """Verify the node serves the configured chain."""
        self.log.network(f"Connecting to {self.network.display_name} via {mask_url(self.rpc_url)}")
        try:
            chain_id = self.w3.eth.chain_id
            block_number = self.w3.eth.block_number
        except Exception as e:
            raise RPCError(
                f"Failed to reach RPC endpoint {mask_url(self.rpc_url)}: {e}",
                chain=self.network.name,
                method="eth_chainId",
            ) from e
        validate_chain_id(self.network.name, chain_id)
        return NetworkStatus(chain_id=chain_id, block_number=block_number, name=self.network.display_name)

    def chain_id(self) -> int:
        return self.w3.eth.chain_id

    def block_number(self) -> int:
        return self.w3.eth.block_number

    def explorer_tx_url(self, tx_hash: str) -> str:
        return self.network.tx_url(tx_hash)

    def explorer_address_url(self, address: str) -> str:
        return self.network.address_url(address)

    # ==================== Reads ====================

    def get_balance(self, address: str) -> int:
        return self.w3.eth.get_balance(Web3.to_checksum_address(address))

    def get_code(self, address: str) -> bytes:
        return bytes(self.w3.eth.get_code(Web3.to_checksum_address(address)))

    def is_contract(self, address: str) -> bool:
        return len(self.get_code(address)) > 0

    def contract(self, address: str, abi: Sequence[Dict[str, Any]]):
        return self.w3.eth.contract(address=Web3.to_checksum_address(address), abi=abi)

    def get_counter_value(self, counter: str) -> Optional[int]:
        """Current ``count()`` of a Counter, or None when unreadable."""
        try:
            return int(self.contract(counter, COUNTER_ABI).functions.count().call())
        except Exception as e:
            self.log.warning(f"Could not read counter value: {e}", context={"counter": counter})
            return None

    def erc20_balance(self, token: str, holder: str) -> int:
        erc20 = self.contract(token, ERC20_ABI)
        return int(erc20.functions.balanceOf(Web3.to_checksum_address(holder)).call())

    # ==================== Writes ====================

    def _fee_params(self) -> Dict[str, int]:
        latest = self.w3.eth.get_block("latest")
        base_fee = latest.get("baseFeePerGas")
        if base_fee is None:
            return {"gasPrice": self.w3.eth.gas_price}
        priority = self.w3.eth.max_priority_fee
        return {
            "maxFeePerGas": base_fee * 2 + priority,
            "maxPriorityFeePerGas": priority,
        }

    def send_transaction(self, account: LocalAccount, tx: Dict[str, Any]) -> TransactionResult:
        """
        Sign a transaction locally, submit it and wait for the receipt.

        Raises:
            TransactionFailedError: If the transaction reverted
        """
        tx = dict(tx)
        tx.setdefault("from", account.address)
        tx.setdefault("value", 0)
        tx.setdefault("chainId", self.network.chain_id)
        if "nonce" not in tx:
            tx["nonce"] = self.w3.eth.get_transaction_count(account.address, "pending")
        if "gasPrice" not in tx and "maxFeePerGas" not in tx:
            tx.update(self._fee_params())
        if "gas" not in tx:
            estimate = self.w3.eth.estimate_gas(tx)
            tx["gas"] = estimate * (100 + GAS_CONFIG.gas_limit_buffer_percent) // 100

        signed = account.sign_transaction(tx)
        tx_hash = Web3.to_hex(self.w3.eth.send_raw_transaction(signed.raw_transaction))
        self.log.transaction(f"Transaction sent: {tx_hash}", context={"to": tx.get("to")})

        receipt = self.w3.eth.wait_for_transaction_receipt(tx_hash, timeout=self.receipt_timeout)
        if receipt["status"] != 1:
            raise TransactionFailedError(f"Transaction reverted: {tx_hash}", tx_hash=tx_hash)

        contract_address = receipt.get("contractAddress")
        self.log.success(f"Transaction confirmed in block {receipt['blockNumber']}")
        return TransactionResult(
            success=True,
            tx_hash=tx_hash,
            block_number=receipt["blockNumber"],
            gas_used=receipt["gasUsed"],
            contract_address=contract_address,
            explorer_url=self.explorer_tx_url(tx_hash),
        )

    def deploy_contract(
        self,
        account: LocalAccount,
        abi: Sequence[Dict[str, Any]],
        bytecode: str,
        args: Sequence[Any] = (),
    ) -> TransactionResult:
        data = bytes.fromhex(bytecode.removeprefix("0x")) + encode_constructor_args(abi, args)
        result = self.send_transaction(account, {"data": "0x" + data.hex()})
        if not result.contract_address:
            raise TransactionFailedError("Deployment receipt has no contract address", tx_hash=result.tx_hash)
        return result

    def erc20_transfer(
        self,
        account: LocalAccount,
        token: str,
        to: str,
        amount: int,
    ) -> TransactionResult:
        selector = Web3.keccak(text="transfer(address,uint256)")[:4]
        data = selector + encode(["address", "uint256"], [Web3.to_checksum_address(to), amount])
        return self.send_transaction(
            account,
            {"to": Web3.to_checksum_address(token), "data": "0x" + data.hex()},
        )
