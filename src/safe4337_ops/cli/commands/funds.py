"""Faucet / balance command."""
from __future__ import annotations

import click

from ...operations import funds_report
from ..common import address_option, console, get_account, get_chain, handle_errors


@click.command()
@click.option("--address", callback=address_option, help="Address to check (defaults to the owner key's address)")
@click.pass_context
@handle_errors("balance check")
def funds(ctx, address: str | None):
    """Show the test network balance and faucet links."""
    chain = get_chain(ctx)
    address = address or get_account(ctx).address
    report = funds_report(chain, address)

    console.print(f"\n[bold blue]Get {chain.network.display_name} Testnet Funds[/bold blue]\n")
    console.print(f"Address: [cyan]{report.address}[/cyan]")
    console.print(f"Balance: {report.balance_wei} wei ({report.balance_eth} ETH)")

    console.print("\nFaucets:")
    for i, faucet in enumerate(report.faucets, start=1):
        console.print(f"  {i}. {faucet}")

    if report.sufficient:
        console.print("\n[green]Sufficient funds for Safe deployment[/green]")
    else:
        console.print("\n[yellow]Insufficient funds for Safe deployment[/yellow]")
