"""Shared helpers for CLI commands."""
from __future__ import annotations

import asyncio
import functools
from decimal import Decimal, InvalidOperation

import click
from eth_account import Account
from rich.console import Console
from web3 import Web3

from ..chain import ChainClient
from ..erc4337 import BundlerClient, BundlerConfig, gelato_bundler_url
from ..exceptions import BundlerError, Safe4337Error
from ..validation import is_valid_address, is_valid_tx_hash, is_valid_url

console = Console()


def get_settings_obj(ctx: click.Context):
    return ctx.obj["settings"]


def get_chain(ctx: click.Context) -> ChainClient:
    if ctx.obj.get("chain") is None:
        ctx.obj["chain"] = ChainClient(get_settings_obj(ctx))
    return ctx.obj["chain"]


def get_account(ctx: click.Context):
    if ctx.obj.get("account") is None:
        ctx.obj["account"] = Account.from_key(get_settings_obj(ctx).require_private_key())
    return ctx.obj["account"]


def get_bundler(ctx: click.Context, sponsored: bool = False) -> BundlerClient:
    settings = get_settings_obj(ctx)
    url = gelato_bundler_url(settings.network.chain_id, settings.require_gelato_api_key(), sponsored=sponsored)
    factory = ctx.obj.get("bundler_factory")
    if factory is not None:
        return factory(url)
    return BundlerClient(BundlerConfig(url=url))


def address_option(ctx, param, value):
    """Click callback: checksum an optional address argument."""
    if value is None:
        return None
    if not is_valid_address(value):
        raise click.BadParameter(f"{value!r} is not a 0x-prefixed 20-byte address")
    return Web3.to_checksum_address(value)


def url_option(ctx, param, value):
    if value is not None and not is_valid_url(value):
        raise click.BadParameter(f"{value!r} is not an http(s) URL")
    return value


def hash_argument(ctx, param, value):
    if value is not None and not is_valid_tx_hash(value):
        raise click.BadParameter(f"{value!r} is not a 0x-prefixed 32-byte hash")
    return value


def token_amount(ctx, param, value):
    """Click callback: parse a positive decimal token amount."""
    try:
        amount = Decimal(value)
    except InvalidOperation:
        raise click.BadParameter(f"{value!r} is not a number") from None
    if not amount.is_finite() or amount <= 0:
        raise click.BadParameter("amount must be greater than zero")
    return amount


def run_async(coro):
    return asyncio.run(coro)


def print_module_info(settings) -> None:
    contracts = settings.contracts
    console.print("Safe 4337 Module Configuration:")
    console.print(f"  - Safe4337Module: {contracts.safe_4337_module}")
    console.print(f"  - SafeModuleSetup: {contracts.safe_module_setup}")
    console.print(f"  - EntryPoint: {contracts.entry_point}")


def handle_errors(operation: str):
    """Print toolkit errors with debugging information and exit with status 1."""

    def decorator(func):
        @functools.wraps(func)
        def wrapper(*args, **kwargs):
            ctx = click.get_current_context()
            try:
                return func(*args, **kwargs)
            except (Safe4337Error, TimeoutError) as e:
                message = getattr(e, "message", str(e))
                console.print(f"[red]Error during {operation}: {message}[/red]")
                if isinstance(e, BundlerError) and e.aa_code:
                    console.print(f"  EntryPoint code: [yellow]{e.aa_code}[/yellow]")
                if ctx.obj.get("verbose") and isinstance(e, Safe4337Error) and e.details:
                    console.print(f"  Details: {e.details}")
                console.print("\nDebugging information:")
                print_module_info(ctx.obj["settings"])
                ctx.exit(1)

        return wrapper

    return decorator
