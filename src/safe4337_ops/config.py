"""
Configuration management for safe4337-ops.

Provides centralized configuration for:
- Environment credentials (owner key, RPC endpoint, Gelato API key)
- Network parameters and chain ID validation
- Canonical Safe / ERC-4337 contract addresses
- Gelato bundler and paymaster endpoints
- Gas defaults for user operations
"""
from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path
from typing import Dict, Optional

from pydantic import field_validator
from pydantic_settings import BaseSettings

from .exceptions import ChainIDMismatchError, ConfigurationError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class NetworkConfig:
    """Configuration for a blockchain network."""
    chain_id: int
    name: str
    display_name: str
    default_rpc_url: str
    explorer_url: str
    native_token: str = "ETH"
    is_testnet: bool = True

    def tx_url(self, tx_hash: str) -> str:
        return f"{self.explorer_url}/tx/{tx_hash}"

    def address_url(self, address: str) -> str:
        return f"{self.explorer_url}/address/{address}"


NETWORKS: Dict[str, NetworkConfig] = {
    "sepolia": NetworkConfig(
        chain_id=11155111,
        name="sepolia",
        display_name="Sepolia",
        default_rpc_url="https://rpc.sepolia.org",
        explorer_url="https://sepolia.etherscan.io",
    ),
}

CHAIN_ID_MAP: Dict[str, int] = {name: net.chain_id for name, net in NETWORKS.items()}


@dataclass(frozen=True)
class ContractAddresses:
    """Contract addresses used on the test network."""
    # ERC-4337 v0.7
    entry_point: str = "0x0000000071727De22E5E9d8BAf0edAc6f37da032"

    # Safe v1.4.1
    safe_proxy_factory: str = "0x4e1DCf7AD4e460CfD30791CCC4F9c8a4f820ec67"
    safe_singleton: str = "0x41675C099F32341bf84BFc5382aF534df5C7461a"

    # Safe 4337 modules v0.3.0 (EntryPoint v0.7)
    safe_4337_module: str = "0x75cf11467937ce3F2f357CE24ffc3DBF8fD5c226"
    safe_module_setup: str = "0x2dd68b007B46fBe91B9A7c3EDa5A7a1063cB5b47"

    # TestToken deployed for ERC-20 gas payment
    token: str = "0x0566F0CD850220DF2806E3100cc6029144af7041"


CONTRACT_ADDRESSES = ContractAddresses()


@dataclass(frozen=True)
class GelatoConfig:
    """Gelato bundler / paymaster API layout."""
    base_url: str = "https://api.gelato.digital"

    def bundler_path(self, chain_id: int) -> str:
        return f"/bundlers/{chain_id}/rpc"

    def paymaster_path(self, chain_id: int) -> str:
        return f"/paymasters/{chain_id}/rpc"


GELATO = GelatoConfig()


@dataclass(frozen=True)
class GasConfig:
    """Default gas parameters for user operations (wei / gas units)."""
    call_gas_limit: int = 100_000
    verification_gas_limit: int = 100_000
    pre_verification_gas: int = 42_182
    sponsored_pre_verification_gas: int = 21_000
    max_fee_per_gas: int = 1_500_000_000  # 1.5 gwei
    max_priority_fee_per_gas: int = 1_500_000_000

    # Sponsored operations carry zero fees, Gelato 1Balance pays
    sponsored_max_fee_per_gas: int = 0
    sponsored_max_priority_fee_per_gas: int = 0

    # Buffer applied to node gas estimates for plain transactions
    gas_limit_buffer_percent: int = 20


GAS_CONFIG = GasConfig()


@dataclass(frozen=True)
class SafeConfig:
    """Safe 1/1 defaults."""
    threshold: int = 1
    deploy_min_balance_wei: int = 20_000_000_000_000_000  # 0.02 ETH
    funding_amount_wei: int = 10_000_000_000_000_000  # 0.01 ETH
    deploy_gas_limit: int = 1_000_000

    @staticmethod
    def default_salt_nonce() -> int:
        """Unique salt nonce for Safe creation (milliseconds since epoch)."""
        return int(time.time() * 1000)


SAFE_CONFIG = SafeConfig()


FAUCETS: tuple[str, ...] = (
    "https://sepoliafaucet.com/",
    "https://faucet.sepolia.dev/",
    "https://sepolia-faucet.pk910.de/",
    "https://faucet.sepolia.starknet.io/",
)


@dataclass
class DeploymentFiles:
    """File names of the local address book."""
    counter: str = "deployed-counter.txt"
    safe: str = "deployed-safe-with-4337.txt"
    token: str = "deployed-token.txt"
    safe_record: str = "deployed-safe-with-4337.json"


DEPLOYMENT_FILES = DeploymentFiles()


class Safe4337Settings(BaseSettings):
    """Environment driven settings."""

    private_key: str = ""
    rpc_url: str = ""
    gelato_api_key: str = ""
    safe_address: str = ""
    chain: str = "sepolia"
    deployments_dir: Path = Path("docs")
    log_level: str = "INFO"
    log_json: bool = False

    class Config:
        env_file = ".env"
        extra = "ignore"

    @field_validator("chain")
    @classmethod
    def validate_chain(cls, v: str) -> str:
        chain = v.strip().lower()
        if chain not in NETWORKS:
            raise ValueError(f"Unsupported chain '{v}'. Supported: {sorted(NETWORKS)}")
        return chain

    @field_validator("private_key", "rpc_url", "gelato_api_key", "safe_address")
    @classmethod
    def strip_value(cls, v: str) -> str:
        return v.strip()

    @property
    def network(self) -> NetworkConfig:
        return NETWORKS[self.chain]

    @property
    def contracts(self) -> ContractAddresses:
        return CONTRACT_ADDRESSES

    @property
    def effective_rpc_url(self) -> str:
        return self.rpc_url or self.network.default_rpc_url

    def require_private_key(self) -> str:
        if not self.private_key:
            raise ConfigurationError("PRIVATE_KEY not found in environment variables")
        return self.private_key

    def require_gelato_api_key(self) -> str:
        if not self.gelato_api_key:
            raise ConfigurationError("GELATO_API_KEY not found in environment variables")
        return self.gelato_api_key


@lru_cache
def get_settings(env_file: Optional[str] = None) -> Safe4337Settings:
    """Load settings once per process."""
    if env_file:
        return Safe4337Settings(_env_file=env_file)
    return Safe4337Settings()


def reset_settings() -> None:
    """Drop the cached settings (used by tests and the CLI ``--env-file`` flag)."""
    get_settings.cache_clear()


def get_network(chain: str) -> NetworkConfig:
    try:
        return NETWORKS[chain]
    except KeyError:
        raise ConfigurationError(f"Unknown chain: {chain}") from None


def validate_chain_id(chain: str, received_chain_id: int) -> bool:
    """
    Validate that the node serves the expected chain.

    Raises:
        ChainIDMismatchError: If the chain ID doesn't match
    """
    expected = CHAIN_ID_MAP.get(chain)
    if expected is None:
        logger.warning(f"Unknown chain {chain}, cannot validate chain ID")
        return True
    if expected != received_chain_id:
        raise ChainIDMismatchError(chain, expected, received_chain_id)
    return True
