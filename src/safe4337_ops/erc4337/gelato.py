"""Gelato bundler / paymaster endpoint URLs."""

from __future__ import annotations

from dataclasses import dataclass
from urllib.parse import urlencode

from ..config import GELATO, GelatoConfig


@dataclass(frozen=True)
class GelatoUrls:
    bundler_url: str
    paymaster_url: str


def gelato_bundler_url(
    chain_id: int,
    api_key: str,
    sponsored: bool = False,
    config: GelatoConfig = GELATO,
) -> str:
    params = {"apiKey": api_key}
    if sponsored:
        params["sponsored"] = "true"
    return f"{config.base_url}{config.bundler_path(chain_id)}?{urlencode(params)}"


def gelato_paymaster_url(chain_id: int, api_key: str, config: GelatoConfig = GELATO) -> str:
    return f"{config.base_url}{config.paymaster_path(chain_id)}?{urlencode({'apiKey': api_key})}"


def gelato_urls(chain_id: int, api_key: str, sponsored: bool = False) -> GelatoUrls:
    return GelatoUrls(
        bundler_url=gelato_bundler_url(chain_id, api_key, sponsored=sponsored),
        paymaster_url=gelato_paymaster_url(chain_id, api_key),
    )
