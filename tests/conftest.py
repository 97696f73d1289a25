"""
Pytest configuration for safe4337-ops tests.

Chain access is faked with a MagicMock ``Web3`` behind a real ``ChainClient``;
bundler and paymaster traffic goes through ``httpx.MockTransport``.
"""
from __future__ import annotations

from pathlib import Path
from unittest.mock import MagicMock

import pytest
from eth_account import Account

from helpers import COUNTER, OWNER_KEY, SAFE, SEPOLIA_CHAIN_ID, TOKEN
from safe4337_ops.chain import ChainClient
from safe4337_ops.config import DEPLOYMENT_FILES, Safe4337Settings, reset_settings


ENV_VARS = (
    "PRIVATE_KEY",
    "RPC_URL",
    "GELATO_API_KEY",
    "SAFE_ADDRESS",
    "CHAIN",
    "DEPLOYMENTS_DIR",
    "LOG_LEVEL",
    "LOG_JSON",
)


@pytest.fixture(autouse=True)
def _clean_environment(monkeypatch):
    for name in ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    reset_settings()
    yield
    reset_settings()


@pytest.fixture
def deployments_dir(tmp_path: Path) -> Path:
    directory = tmp_path / "docs"
    directory.mkdir()
    (directory / DEPLOYMENT_FILES.counter).write_text(COUNTER)
    (directory / DEPLOYMENT_FILES.safe).write_text(SAFE)
    (directory / DEPLOYMENT_FILES.token).write_text(TOKEN)
    return directory


@pytest.fixture
def settings(deployments_dir: Path) -> Safe4337Settings:
    return Safe4337Settings(
        _env_file=None,
        private_key=OWNER_KEY,
        rpc_url="https://rpc.example.org",
        gelato_api_key="test-api-key",
        deployments_dir=deployments_dir,
    )


@pytest.fixture
def account():
    return Account.from_key(OWNER_KEY)


@pytest.fixture
def w3() -> MagicMock:
    mock = MagicMock()
    mock.eth.chain_id = SEPOLIA_CHAIN_ID
    mock.eth.block_number = 7_000_000
    mock.eth.get_code.return_value = b"\x60\x80"
    mock.eth.get_balance.return_value = 10**18
    return mock


@pytest.fixture
def chain(settings: Safe4337Settings, w3: MagicMock) -> ChainClient:
    return ChainClient(settings, w3=w3)
