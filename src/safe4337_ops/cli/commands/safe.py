"""Safe account commands."""
from __future__ import annotations

import click
from rich.table import Table

from ...config import SAFE_CONFIG
from ...operations import deploy_safe, safe_address_from_tx, safe_address_report
from ...safe_account import SafeInspector
from ..common import address_option, console, get_account, get_chain, handle_errors, hash_argument


@click.group()
def safe():
    """Safe 1/1 with the ERC-4337 module."""
    pass


@safe.command()
@click.option("--salt-nonce", type=int, required=True, help="Salt nonce used at creation")
@click.option("--owner", callback=address_option, help="Owner address (defaults to the owner key's address)")
@click.option("--no-save", is_flag=True, help="Do not write the address book when deployed")
@click.pass_context
@handle_errors("Safe address prediction")
def address(ctx, salt_nonce: int, owner: str | None, no_save: bool):
    """Predict the CREATE2 address of the owner's Safe."""
    chain = get_chain(ctx)
    owner = owner or get_account(ctx).address
    report = safe_address_report(chain, owner, salt_nonce, save=not no_save)

    console.print(f"Owner: [cyan]{report.owner}[/cyan]")
    console.print(f"Salt nonce: {report.salt_nonce}")
    console.print(f"Predicted Safe: [cyan]{report.predicted_address}[/cyan]")
    if report.deployed:
        console.print("[green]✓ Safe contract found at address[/green]")
        if report.saved_to:
            console.print(f"Saved to {report.saved_to}")
    else:
        console.print("[yellow]No contract at predicted address yet[/yellow]")


@safe.command("from-tx")
@click.argument("tx_hash", callback=hash_argument)
@click.pass_context
@handle_errors("Safe lookup")
def from_tx(ctx, tx_hash: str):
    """Find the Safe created by a deployment transaction."""
    chain = get_chain(ctx)
    found = safe_address_from_tx(chain, tx_hash)
    if not found:
        console.print("[red]ProxyCreation event not found in logs[/red]")
        ctx.exit(1)
    console.print(f"Safe deployed at: [cyan]{found}[/cyan]")
    console.print(f"Explorer: {chain.explorer_address_url(found)}")


@safe.command()
@click.option("--salt-nonce", type=int, help="CREATE2 salt nonce (defaults to current time in ms)")
@click.option("--no-fund", is_flag=True, help=f"Skip funding the Safe with {SAFE_CONFIG.funding_amount_wei} wei")
@click.pass_context
@handle_errors("Safe deployment")
def deploy(ctx, salt_nonce: int | None, no_fund: bool):
    """Deploy a Safe 1/1 with the Safe4337Module enabled."""
    chain = get_chain(ctx)
    account = get_account(ctx)
    settings = ctx.obj["settings"]

    console.print("\n[bold blue]Deploy Safe with ERC-4337[/bold blue]\n")
    console.print(f"Deploying with account: [cyan]{account.address}[/cyan]")

    result = deploy_safe(chain, account, settings.deployments_dir, salt_nonce=salt_nonce, fund=not no_fund)

    if result.already_deployed:
        console.print(f"[yellow]Safe already deployed at {result.safe_address}[/yellow]")
        return

    console.print(f"[green]✓ Safe deployed at {result.safe_address}[/green]")
    console.print(f"Salt nonce: {result.salt_nonce}")
    console.print(f"Transaction: {result.transaction.explorer_url}")
    if result.funding:
        console.print(f"Funding: {result.funding.explorer_url}")
    console.print(f"Record: {result.record_path} (sha256 {result.record_sha256})")


@safe.command()
@click.option("--address", "safe_address", callback=address_option, help="Safe address (defaults to the address book)")
@click.pass_context
@handle_errors("Safe status check")
def status(ctx, safe_address: str | None):
    """Owners, threshold and module state of the Safe."""
    from ...deployments import load_deployed_addresses

    chain = get_chain(ctx)
    settings = ctx.obj["settings"]
    if not safe_address:
        safe_address = settings.safe_address or load_deployed_addresses(settings.deployments_dir).safe

    result = SafeInspector(chain, settings.contracts).status(safe_address)
    if not result.deployed:
        console.print(f"[red]No contract deployed at {safe_address}[/red]")
        ctx.exit(1)

    table = Table(title=f"Safe {result.address}")
    table.add_column("Field", style="cyan")
    table.add_column("Value")
    table.add_row("Version", str(result.version))
    table.add_row("Owners", ", ".join(result.owners))
    table.add_row("Threshold", str(result.threshold))
    table.add_row("Nonce", str(result.nonce))
    table.add_row("Modules", ", ".join(result.modules) or "-")
    table.add_row("Fallback handler", result.fallback_handler or "-")
    table.add_row("4337 module enabled", str(result.module_enabled))
    console.print(table)

    if result.ready_for_user_operations:
        console.print("[green]✓ Safe4337Module is enabled; the Safe can send UserOperations[/green]")
    elif not result.module_enabled:
        console.print("[red]Safe4337Module is NOT enabled; UserOperations fail with AA20/AA23[/red]")
    else:
        console.print("[yellow]Safe4337Module is enabled but is not the fallback handler[/yellow]")


@safe.command()
@click.pass_context
@handle_errors("module check")
def modules(ctx):
    """Check the Safe4337Module and SafeModuleSetup deployments."""
    chain = get_chain(ctx)
    check = SafeInspector(chain, ctx.obj["settings"].contracts).check_modules()

    mark = lambda ok: "[green]✓[/green]" if ok else "[red]✗[/red]"  # noqa: E731
    console.print(f"{mark(check.module_deployed)} Safe4337Module at {check.safe_4337_module}")
    console.print(f"    Supported EntryPoint: {check.supported_entrypoint or 'unknown'}")
    console.print(f"{mark(check.entrypoint_matches)} EntryPoint matches configuration")
    console.print(f"{mark(check.setup_deployed)} SafeModuleSetup at {check.safe_module_setup}")
    if not check.ok:
        ctx.exit(1)
