"""User operation commands."""
from __future__ import annotations

import click

from ...erc4337 import PaymentMode
from ...operations import UserOperationService
from ..common import console, get_account, get_chain, handle_errors, run_async


@click.group()
def userop():
    """Send UserOperations from the Safe 1/1."""
    pass


def _send(ctx, mode: PaymentMode, wait: bool) -> None:
    service = UserOperationService(
        ctx.obj["settings"],
        chain=get_chain(ctx),
        account=get_account(ctx),
        bundler_factory=ctx.obj.get("bundler_factory"),
        paymaster_factory=ctx.obj.get("paymaster_factory"),
    )
    result = run_async(service.send(mode, wait=wait))

    failed = result.success is False
    if failed:
        console.print(f"[red]✗ {mode.value.capitalize()} UserOperation reverted on-chain[/red]")
    else:
        console.print(f"[green]✓ {mode.value.capitalize()} UserOperation sent[/green]")
    console.print(f"  Sender (Safe 1/1): {result.sender}")
    console.print(f"  UserOperation Hash: [cyan]{result.user_op_hash}[/cyan]")
    if result.tx_hash:
        console.print(f"  Transaction: {result.explorer_url}")
        console.print(f"  Success: {result.success}")
    if result.counter_before is not None:
        console.print(f"  Counter before: {result.counter_before}")
    if result.counter_after is not None:
        console.print(f"  Counter after: {result.counter_after}")
    if failed:
        ctx.exit(1)


def _mode_command(mode: PaymentMode, help_text: str):
    @userop.command(mode.value, help=help_text)
    @click.option("--no-wait", is_flag=True, help="Return after submission without waiting for inclusion")
    @click.pass_context
    @handle_errors(f"{mode.value} UserOperation")
    def command(ctx, no_wait: bool):
        _send(ctx, mode, wait=not no_wait)

    return command


sponsored = _mode_command(PaymentMode.SPONSORED, "Gas sponsored by Gelato 1Balance.")
native = _mode_command(PaymentMode.NATIVE, "Safe pays gas in ETH.")
erc20 = _mode_command(PaymentMode.ERC20, "Safe pays gas in TestToken through the Gelato paymaster.")
