"""Network commands."""
from __future__ import annotations

import click

from ...logging_utils import mask_url
from ...operations import network_check
from ..common import console, get_chain, handle_errors


@click.group()
def network():
    """Network connectivity."""
    pass


@network.command()
@click.pass_context
@handle_errors("network check")
def check(ctx):
    """Print the chain ID served by the RPC endpoint."""
    chain = get_chain(ctx)
    report = network_check(chain)

    console.print(f"RPC: [cyan]{mask_url(chain.rpc_url)}[/cyan]")
    console.print(f"Connected to chain ID: [cyan]{report.chain_id}[/cyan]")
    console.print(f"Latest block: {report.block_number}")
    if report.matches:
        console.print(f"[green]✓ {report.name} ({report.expected_chain_id})[/green]")
    else:
        console.print(
            f"[yellow]Expected chain {report.expected_chain_id}, node serves {report.chain_id}[/yellow]"
        )
