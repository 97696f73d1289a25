"""Run every endpoint, user operation and status step in order."""
from __future__ import annotations

import click
from rich.table import Table

from ...operations import run_all
from ...operations.runner import STATUS_FAILED, STATUS_OK
from ..common import console, get_account, get_chain, handle_errors, hash_argument, run_async


@click.command("run-all")
@click.option("--user-op-hash", callback=hash_argument, help="Hash used by the lookup steps before one is produced")
@click.option("--delay", default=1.0, show_default=True, type=float, help="Pause between steps (seconds)")
@click.pass_context
@handle_errors("run-all")
def run_all_cmd(ctx, user_op_hash: str | None, delay: float):
    """Sequentially run bundler checks, user operations and the status check."""
    from ...operations import UserOperationService

    settings = ctx.obj["settings"]
    chain = get_chain(ctx)
    userops = None
    if settings.private_key:
        userops = UserOperationService(
            settings,
            chain=chain,
            account=get_account(ctx),
            bundler_factory=ctx.obj.get("bundler_factory"),
            paymaster_factory=ctx.obj.get("paymaster_factory"),
        )

    kwargs = {"delay_seconds": delay, "user_op_hash": user_op_hash, "userops": userops}
    if ctx.obj.get("bundler_factory"):
        kwargs["bundler_factory"] = ctx.obj["bundler_factory"]
    results = run_async(run_all(settings, chain, **kwargs))

    table = Table(title="Run summary")
    table.add_column("Group", style="cyan")
    table.add_column("Step")
    table.add_column("Status")
    table.add_column("Error")
    colors = {STATUS_OK: "green", STATUS_FAILED: "red"}
    for step in results:
        color = colors.get(step.status, "yellow")
        table.add_row(step.group, step.name, f"[{color}]{step.status}[/{color}]", step.error or "")
    console.print(table)

    if any(step.status == STATUS_FAILED for step in results):
        ctx.exit(1)
