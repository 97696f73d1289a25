"""
safe4337 CLI main entry point.

Usage:
    safe4337 [OPTIONS] COMMAND [ARGS]...
"""
from __future__ import annotations

import click
from rich.table import Table
from web3 import Web3

from ..config import get_settings, reset_settings
from ..logging_utils import setup_logging
from ..operations import project_status
from .commands import bundler, config_cmd, contracts, funds, network, run_all, safe, userop
from .common import address_option, console, get_chain, handle_errors, url_option


@click.group()
@click.version_option(package_name="safe4337-ops", message="%(prog)s %(version)s")
@click.option("--rpc-url", callback=url_option, help="JSON-RPC endpoint (overrides RPC_URL)")
@click.option("--env-file", type=click.Path(dir_okay=False), help="Load settings from this .env file")
@click.option("--safe-address", callback=address_option, help="Safe to operate on (overrides the address book)")
@click.option("-v", "--verbose", is_flag=True, help="Enable verbose output")
@click.pass_context
def cli(ctx, rpc_url: str | None, env_file: str | None, safe_address: str | None, verbose: bool):
    """Safe + ERC-4337 operations against the Gelato bundler."""
    ctx.ensure_object(dict)

    if "settings" not in ctx.obj:
        reset_settings()
        settings = get_settings(env_file)
        overrides = {}
        if rpc_url:
            overrides["rpc_url"] = rpc_url
        if safe_address:
            overrides["safe_address"] = safe_address
        if overrides:
            settings = settings.model_copy(update=overrides)
        ctx.obj["settings"] = settings

    settings = ctx.obj["settings"]
    setup_logging("DEBUG" if verbose else settings.log_level, json_format=settings.log_json)
    ctx.obj["verbose"] = verbose


@cli.command()
@click.option("--skip-safe", is_flag=True, help="Do not read Safe owners/modules")
@click.pass_context
@handle_errors("status check")
def status(ctx, skip_safe: bool):
    """Show deployed contracts, counter value and module configuration."""
    chain = get_chain(ctx)
    report = project_status(chain, include_safe=not skip_safe)

    console.print(f"\n[bold blue]ERC-4337 Safe 1/1 Status[/bold blue]")
    console.print(f"Chain: [cyan]{report.chain}[/cyan] ({report.chain_id})\n")

    table = Table(title="Deployed Contracts")
    table.add_column("Contract", style="cyan")
    table.add_column("Address")
    table.add_column("Explorer")
    if report.addresses:
        for name, address in (
            ("Counter", report.addresses.counter),
            ("Safe 1/1 with 4337", report.addresses.safe),
            ("Token", report.addresses.token),
        ):
            table.add_row(name, address, report.explorer_links.get(name.split()[0], ""))
    for name, address in report.modules.items():
        table.add_row(name, address, "")
    console.print(table)

    if report.counter_value is None:
        console.print("Current Counter Value: [yellow]Unable to read[/yellow]")
    else:
        console.print(f"Current Counter Value: [green]{report.counter_value}[/green]")

    if report.entrypoint_deposit is not None:
        console.print(f"Safe EntryPoint deposit: {Web3.from_wei(report.entrypoint_deposit, 'ether')} ETH")

    if report.safe is not None:
        safe_status = report.safe
        ready = "[green]yes[/green]" if safe_status.ready_for_user_operations else "[red]no[/red]"
        console.print(f"Safe deployed: {safe_status.deployed}")
        console.print(f"4337 module enabled: {safe_status.module_enabled}")
        console.print(f"Ready for UserOperations: {ready}")

    for error in report.errors:
        console.print(f"[yellow]Warning: {error}[/yellow]")
    console.print()


cli.add_command(network.network)
cli.add_command(funds.funds)
cli.add_command(safe.safe)
cli.add_command(contracts.contracts)
cli.add_command(userop.userop)
cli.add_command(bundler.bundler)
cli.add_command(run_all.run_all_cmd)
cli.add_command(config_cmd.config)


def main():
    """Main entry point."""
    cli(obj={})


if __name__ == "__main__":
    main()
