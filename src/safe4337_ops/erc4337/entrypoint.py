"""EntryPoint v0.7 reads."""

from __future__ import annotations

from web3 import Web3

from ..abis import ENTRYPOINT_ABI
from ..config import CONTRACT_ADDRESSES

ENTRYPOINT_V07 = CONTRACT_ADDRESSES.entry_point

ENTRYPOINT_V07_BY_CHAIN: dict[str, str] = {
    "sepolia": ENTRYPOINT_V07,
}


def get_entrypoint_v07(chain: str) -> str:
    return ENTRYPOINT_V07_BY_CHAIN.get(chain, ENTRYPOINT_V07)


def _entrypoint(w3: Web3, entrypoint: str):
    return w3.eth.contract(address=Web3.to_checksum_address(entrypoint), abi=ENTRYPOINT_ABI)


def get_entrypoint_nonce(w3: Web3, sender: str, key: int = 0, entrypoint: str = ENTRYPOINT_V07) -> int:
    """EntryPoint.getNonce(sender, key); the key selects a 2D nonce lane."""
    return int(
        _entrypoint(w3, entrypoint).functions.getNonce(Web3.to_checksum_address(sender), key).call()
    )


def get_deposit(w3: Web3, account: str, entrypoint: str = ENTRYPOINT_V07) -> int:
    """Gas deposit (wei) an account holds at the EntryPoint."""
    return int(_entrypoint(w3, entrypoint).functions.balanceOf(Web3.to_checksum_address(account)).call())
