"""Bundler endpoint commands."""
from __future__ import annotations

import json

import click
from web3 import Web3

from ..common import console, get_bundler, handle_errors, hash_argument, run_async


@click.group()
def bundler():
    """Query Gelato bundler endpoints."""
    pass


async def _call(ctx, method: str, *args):
    client = get_bundler(ctx)
    try:
        return await getattr(client, method)(*args)
    finally:
        await client.close()


@bundler.command("chain-id")
@click.pass_context
@handle_errors("eth_chainId")
def chain_id(ctx):
    """eth_chainId"""
    result = run_async(_call(ctx, "chain_id"))
    expected = ctx.obj["settings"].network.chain_id
    console.print(f"Bundler chain ID: [cyan]{result}[/cyan]")
    if result != expected:
        console.print(f"[yellow]Expected {expected}[/yellow]")


@bundler.command()
@click.pass_context
@handle_errors("eth_supportedEntryPoints")
def entrypoints(ctx):
    """eth_supportedEntryPoints"""
    result = run_async(_call(ctx, "supported_entry_points"))
    configured = ctx.obj["settings"].contracts.entry_point.lower()
    for entry_point in result:
        marker = " [green](configured)[/green]" if entry_point.lower() == configured else ""
        console.print(f"  {entry_point}{marker}")


@bundler.command()
@click.pass_context
@handle_errors("fee query")
def fees(ctx):
    """eth_maxPriorityFeePerGas and the user operation gas price."""
    async def both():
        client = get_bundler(ctx)
        try:
            return await client.max_priority_fee_per_gas(), await client.user_operation_gas_price()
        finally:
            await client.close()

    priority, gas_price = run_async(both())
    console.print(f"Max priority fee: {Web3.from_wei(priority, 'gwei')} gwei")
    console.print(f"UserOperation maxFeePerGas: {Web3.from_wei(gas_price.max_fee_per_gas, 'gwei')} gwei")
    console.print(
        f"UserOperation maxPriorityFeePerGas: {Web3.from_wei(gas_price.max_priority_fee_per_gas, 'gwei')} gwei"
    )


@bundler.command()
@click.argument("user_op_hash", callback=hash_argument)
@click.pass_context
@handle_errors("eth_getUserOperationByHash")
def op(ctx, user_op_hash: str):
    """eth_getUserOperationByHash"""
    result = run_async(_call(ctx, "get_user_operation_by_hash", user_op_hash))
    if result is None:
        console.print("[yellow]UserOperation not found[/yellow]")
        return
    console.print_json(json.dumps(result))


@bundler.command()
@click.argument("user_op_hash", callback=hash_argument)
@click.pass_context
@handle_errors("eth_getUserOperationReceipt")
def receipt(ctx, user_op_hash: str):
    """eth_getUserOperationReceipt"""
    result = run_async(_call(ctx, "get_user_operation_receipt", user_op_hash))
    if result is None:
        console.print("[yellow]Receipt not available yet[/yellow]")
        return
    console.print(f"Success: {result.get('success')}")
    tx_hash = (result.get("receipt") or {}).get("transactionHash")
    if tx_hash:
        console.print(f"Transaction: {ctx.obj['settings'].network.tx_url(tx_hash)}")
