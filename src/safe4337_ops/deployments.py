"""Local address book of deployed contracts and deployment records."""
from __future__ import annotations

import hashlib
import json
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Optional

from .config import DEPLOYMENT_FILES
from .exceptions import ConfigurationError, ValidationError
from .validation import is_valid_address, validate_deployed_addresses


@dataclass(frozen=True)
class DeployedAddresses:
    counter: str
    safe: str
    token: str


@dataclass(frozen=True)
class DeploymentRecord:
    path: str
    sha256: str


def _read_address(path: Path) -> str:
    try:
        return path.read_text(encoding="utf-8").strip()
    except FileNotFoundError:
        raise ConfigurationError(f"Address file not found: {path}") from None


def read_address(directory: str | Path, file_name: str) -> Optional[str]:
    """Read one address file, None when it does not exist."""
    path = Path(directory) / file_name
    if not path.exists():
        return None
    value = path.read_text(encoding="utf-8").strip()
    return value or None


def load_deployed_addresses(
    directory: str | Path,
    safe_override: Optional[str] = None,
) -> DeployedAddresses:
    """
    Load the counter / Safe / token addresses.

    Raises:
        ConfigurationError: If a file is missing or holds an invalid address
    """
    directory = Path(directory)
    addresses = {
        "counter": _read_address(directory / DEPLOYMENT_FILES.counter),
        "safe": safe_override or _read_address(directory / DEPLOYMENT_FILES.safe),
        "token": _read_address(directory / DEPLOYMENT_FILES.token),
    }
    try:
        validate_deployed_addresses(addresses)
    except ValidationError as e:
        raise ConfigurationError(f"Failed to read deployed addresses: {e.message}") from e
    return DeployedAddresses(**addresses)


def save_address(directory: str | Path, file_name: str, address: str) -> Path:
    if not is_valid_address(address):
        raise ValidationError(f"Refusing to save invalid address: {address}", field=file_name)
    path = Path(directory)
    path.mkdir(parents=True, exist_ok=True)
    target = path / file_name
    target.write_text(address, encoding="utf-8")
    return target


def write_deployment_record(
    *,
    directory: str | Path,
    safe_address: str,
    owner: str,
    chain: str,
    chain_id: int,
    tx_hash: Optional[str],
    block_number: Optional[int],
    salt_nonce: int,
    modules: Dict[str, str],
    extra: Optional[Dict[str, Any]] = None,
) -> DeploymentRecord:
    """
    Write the Safe deployment record (JSON with sha256 digest) and the
    plain-text address file next to it.
    """
    now = datetime.now(timezone.utc)
    payload: Dict[str, Any] = {
        "version": 1,
        "created_at": now.isoformat(),
        "safe_address": safe_address,
        "owner": owner,
        "threshold": 1,
        "chain": chain,
        "chain_id": chain_id,
        "tx_hash": tx_hash,
        "block_number": block_number,
        "salt_nonce": str(salt_nonce),
        "modules": modules,
    }
    if extra:
        payload.update(extra)

    canonical = json.dumps(payload, sort_keys=True, separators=(",", ":"))
    digest = hashlib.sha256(canonical.encode("utf-8")).hexdigest()
    payload["sha256"] = digest

    directory = Path(directory)
    directory.mkdir(parents=True, exist_ok=True)
    file_path = directory / DEPLOYMENT_FILES.safe_record
    file_path.write_text(json.dumps(payload, indent=2, sort_keys=True), encoding="utf-8")
    save_address(directory, DEPLOYMENT_FILES.safe, safe_address)
    return DeploymentRecord(path=str(file_path), sha256=digest)


def verify_deployment_record(path: str | Path) -> bool:
    """Recompute the digest of a record written by ``write_deployment_record``."""
    payload = json.loads(Path(path).read_text(encoding="utf-8"))
    digest = payload.pop("sha256", None)
    canonical = json.dumps(payload, sort_keys=True, separators=(",", ":"))
    return digest == hashlib.sha256(canonical.encode("utf-8")).hexdigest()
