"""Main CLI entry point."""

import logging

import click

from propledger.store.factories import create_json_store

# Import and register all commands at module level
from propledger.cli.commands import agreements, categories, ledger, pm

LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR")


@click.group()
@click.option(
    "--state-path",
    type=click.Path(dir_okay=False),
    help="Path to the JSON state snapshot (overrides PROPLEDGER_STATE_PATH environment variable)",
    envvar="PROPLEDGER_STATE_PATH",
)
@click.option(
    "--log-level",
    type=click.Choice(LOG_LEVELS, case_sensitive=False),
    default="WARNING",
    show_default=True,
    envvar="PROPLEDGER_LOG_LEVEL",
    help="Logging level",
)
@click.pass_context
def cli(ctx, state_path: str | None, log_level: str):
    """Propledger - property and project ledgers.

    Runs ledger reports, project-management fee accounting and ownership
    transfers against a JSON snapshot of the accounting application's state.
    """
    ctx.ensure_object(dict)
    logging.basicConfig(
        level=getattr(logging, log_level.upper()),
        format="%(levelname)s %(name)s: %(message)s",
    )

    # Load the snapshot only when actually running a command
    # (not when showing help)
    if ctx.invoked_subcommand is not None and "store" not in ctx.obj:
        ctx.obj["store"] = create_json_store(state_path=state_path)


# Register all commands
ledger.register_commands(cli)
pm.register_commands(cli)
agreements.register_commands(cli)
categories.register_commands(cli)


def main():
    """Main entry point for CLI."""
    cli()


if __name__ == "__main__":
    main()
