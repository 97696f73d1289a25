"""Contract deployment and token funding commands."""
from __future__ import annotations

from decimal import Decimal

import click
from web3 import Web3

from ...config import DEPLOYMENT_FILES
from ...deployments import load_deployed_addresses, read_address
from ...operations import deploy_artifact, fund_safe_with_token
from ..common import address_option, console, get_account, get_chain, handle_errors, token_amount


@click.group()
def contracts():
    """Counter and TestToken contracts."""
    pass


def _deploy(ctx, kind: str, artifact: str | None) -> None:
    chain = get_chain(ctx)
    account = get_account(ctx)
    result = deploy_artifact(chain, account, kind, ctx.obj["settings"].deployments_dir, artifact)
    console.print(f"[green]✓ Contract deployed at: {result.contract_address}[/green]")
    console.print(f"Transaction: {result.explorer_url}")


@contracts.command("deploy-counter")
@click.option("--artifact", type=click.Path(exists=True, dir_okay=False), help="Compiled Counter JSON")
@click.pass_context
@handle_errors("Counter deployment")
def deploy_counter(ctx, artifact: str | None):
    """Deploy the Counter contract and save its address."""
    _deploy(ctx, "counter", artifact)


@contracts.command("deploy-token")
@click.option("--artifact", type=click.Path(exists=True, dir_okay=False), help="Compiled TestToken JSON")
@click.pass_context
@handle_errors("TestToken deployment")
def deploy_token(ctx, artifact: str | None):
    """Deploy the TestToken contract and save its address."""
    _deploy(ctx, "token", artifact)


@contracts.command("fund-safe")
@click.option("--amount", default="10", show_default=True, callback=token_amount, help="Tokens to transfer (18 decimals)")
@click.option(
    "--token",
    "token_address",
    callback=address_option,
    help="Token address (defaults to deployed-token.txt, then the configured TestToken)",
)
@click.pass_context
@handle_errors("token transfer")
def fund_safe(ctx, amount: Decimal, token_address: str | None):
    """Transfer TestToken from the owner to the Safe."""
    chain = get_chain(ctx)
    account = get_account(ctx)
    settings = ctx.obj["settings"]
    safe_address = settings.safe_address or load_deployed_addresses(settings.deployments_dir).safe
    token = (
        token_address
        or read_address(settings.deployments_dir, DEPLOYMENT_FILES.token)
        or settings.contracts.token
    )

    result = fund_safe_with_token(chain, account, token, safe_address, Web3.to_wei(amount, "ether"))
    console.print(f"Token: [cyan]{result.token}[/cyan]")
    console.print(f"Safe balance before: {result.safe_balance_before}")
    console.print(f"Safe balance after: {result.safe_balance_after}")
    console.print(f"Transaction: {result.transaction.explorer_url}")
