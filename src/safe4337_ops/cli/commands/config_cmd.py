"""Configuration commands."""
from __future__ import annotations

import click

from ...logging_utils import mask_url
from ...operations import check_pack_config
from ...validation import validate_environment
from ..common import console, handle_errors, print_module_info


@click.group()
def config():
    """Environment and bundler configuration."""
    pass


@config.command()
@click.option("--sponsored", is_flag=True, help="Validate the sponsored bundler + paymaster configuration")
@click.pass_context
@handle_errors("configuration check")
def check(ctx, sponsored: bool):
    """Validate environment variables and the Safe 4337 bundler configuration."""
    settings = ctx.obj["settings"]
    report = validate_environment(settings)

    for warning in report.warnings:
        console.print(f"[yellow]Warning: {warning}[/yellow]")
    for error in report.errors:
        console.print(f"[red]Error: {error}[/red]")

    console.print(f"Chain: [cyan]{settings.network.display_name}[/cyan] ({settings.network.chain_id})")
    console.print(f"RPC: {mask_url(settings.effective_rpc_url)}")
    print_module_info(settings)

    if settings.gelato_api_key:
        pack = check_pack_config(settings, sponsored=sponsored)
        console.print(f"Bundler URL: {mask_url(pack['bundler_url'])}")
        if "paymaster_url" in pack:
            console.print(f"Paymaster URL: {mask_url(pack['paymaster_url'])}")
        console.print("[green]✓ Safe 4337 configuration is valid[/green]")

    if not report.is_valid:
        ctx.exit(1)
