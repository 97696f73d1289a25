"""Read-only reports: network, funds, Safe address, project status, bundler configuration."""
from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any, Dict, List, Optional

from web3 import Web3

from ..chain import ChainClient
from ..config import CHAIN_ID_MAP, DEPLOYMENT_FILES, FAUCETS, SAFE_CONFIG
from ..deployments import DeployedAddresses, load_deployed_addresses, read_address, save_address
from ..erc4337.entrypoint import get_deposit
from ..erc4337.gelato import gelato_bundler_url, gelato_paymaster_url
from ..exceptions import ChainIDMismatchError, ConfigurationError, Safe4337Error
from ..logging_utils import get_logger
from ..safe_account import SafeInspector, SafeStatus
from ..validation import validate_pack_config
from .deploy import prepare_safe

logger = get_logger(__name__)

PROXY_CREATION_TOPIC = Web3.to_hex(Web3.keccak(text="ProxyCreation(address,address)"))


@dataclass
class NetworkReport:
    chain_id: int
    expected_chain_id: int
    block_number: int
    name: str

    @property
    def matches(self) -> bool:
        return self.chain_id == self.expected_chain_id


@dataclass
class FundsReport:
    address: str
    balance_wei: int
    threshold_wei: int
    faucets: List[str] = field(default_factory=lambda: list(FAUCETS))

    @property
    def balance_eth(self) -> Decimal:
        return Web3.from_wei(self.balance_wei, "ether")

    @property
    def sufficient(self) -> bool:
        return self.balance_wei >= self.threshold_wei


@dataclass
class SafeAddressReport:
    owner: str
    salt_nonce: int
    predicted_address: str
    deployed: bool
    saved_to: Optional[str] = None


@dataclass
class ProjectStatus:
    chain: str
    chain_id: int
    addresses: Optional[DeployedAddresses]
    counter_value: Optional[int]
    modules: Dict[str, str]
    explorer_links: Dict[str, str]
    safe: Optional[SafeStatus] = None
    entrypoint_deposit: Optional[int] = None
    errors: List[str] = field(default_factory=list)


def network_check(chain: ChainClient) -> NetworkReport:
    """Chain ID of the node; a mismatch is logged, not raised."""
    expected = CHAIN_ID_MAP[chain.network.name]
    try:
        status = chain.connect()
        return NetworkReport(
            chain_id=status.chain_id,
            expected_chain_id=expected,
            block_number=status.block_number,
            name=status.name,
        )
    except ChainIDMismatchError as e:
        logger.warning(e.message)
        return NetworkReport(
            chain_id=e.received,
            expected_chain_id=expected,
            block_number=chain.block_number(),
            name=chain.network.display_name,
        )


def funds_report(
    chain: ChainClient,
    address: str,
    threshold_wei: int = SAFE_CONFIG.funding_amount_wei,
) -> FundsReport:
    return FundsReport(
        address=Web3.to_checksum_address(address),
        balance_wei=chain.get_balance(address),
        threshold_wei=threshold_wei,
    )


def safe_address_report(
    chain: ChainClient,
    owner: str,
    salt_nonce: int,
    save: bool = True,
) -> SafeAddressReport:
    """Predict the owner's Safe address and check whether it is deployed."""
    _initializer, predicted = prepare_safe(
        chain, Web3.to_checksum_address(owner), salt_nonce, chain.settings.contracts
    )
    deployed = chain.is_contract(predicted)
    report = SafeAddressReport(
        owner=owner,
        salt_nonce=salt_nonce,
        predicted_address=predicted,
        deployed=deployed,
    )
    if deployed and save:
        report.saved_to = str(save_address(chain.settings.deployments_dir, DEPLOYMENT_FILES.safe, predicted))
    return report


def safe_address_from_tx(chain: ChainClient, tx_hash: str) -> Optional[str]:
    """Safe address from the ProxyCreation event of a deployment transaction."""
    receipt = chain.w3.eth.get_transaction_receipt(tx_hash)
    for log in receipt["logs"]:
        topics = [Web3.to_hex(t) for t in log["topics"]]
        if not topics or topics[0].lower() != PROXY_CREATION_TOPIC:
            continue
        if len(topics) > 1:
            # v1.4.1: proxy is indexed
            return Web3.to_checksum_address("0x" + topics[1][-40:])
        data = Web3.to_hex(log["data"])
        return Web3.to_checksum_address("0x" + data[2:66][-40:])
    return None


def project_status(chain: ChainClient, include_safe: bool = True) -> ProjectStatus:
    """Deployed addresses, counter value, module addresses and explorer links."""
    settings = chain.settings
    contracts = settings.contracts
    status = ProjectStatus(
        chain=chain.network.display_name,
        chain_id=chain.network.chain_id,
        addresses=None,
        counter_value=None,
        modules={
            "Safe4337Module": contracts.safe_4337_module,
            "SafeModuleSetup": contracts.safe_module_setup,
            "EntryPoint": contracts.entry_point,
        },
        explorer_links={},
    )

    try:
        addresses = load_deployed_addresses(
            settings.deployments_dir, safe_override=settings.safe_address or None
        )
    except ConfigurationError as e:
        status.errors.append(e.message)
        # partial view from whatever files exist
        counter = read_address(settings.deployments_dir, DEPLOYMENT_FILES.counter)
        if counter:
            status.counter_value = chain.get_counter_value(counter)
        return status

    status.addresses = addresses
    status.counter_value = chain.get_counter_value(addresses.counter)
    status.explorer_links = {
        "Counter": chain.explorer_address_url(addresses.counter),
        "Safe": chain.explorer_address_url(addresses.safe),
        "Token": chain.explorer_address_url(addresses.token),
    }
    try:
        status.entrypoint_deposit = get_deposit(chain.w3, addresses.safe, contracts.entry_point)
    except Exception as e:
        status.errors.append(f"Could not read EntryPoint deposit: {e}")
    if include_safe:
        try:
            status.safe = SafeInspector(chain, contracts).status(addresses.safe)
        except Safe4337Error as e:
            status.errors.append(e.message)
    return status


def check_pack_config(settings, sponsored: bool = False) -> Dict[str, Any]:
    """Build and validate the Safe 4337 bundler configuration."""
    api_key = settings.require_gelato_api_key()
    chain_id = settings.network.chain_id
    contracts = settings.contracts
    config: Dict[str, Any] = {
        "bundler_url": gelato_bundler_url(chain_id, api_key, sponsored=sponsored),
        "chain_id": chain_id,
        "entry_point_address": contracts.entry_point,
        "safe_4337_module_address": contracts.safe_4337_module,
        "safe_module_setup_address": contracts.safe_module_setup,
    }
    if sponsored:
        config["paymaster_url"] = gelato_paymaster_url(chain_id, api_key)
    validate_pack_config(config)
    return config
