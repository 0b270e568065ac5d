"""Main CLI entry point."""

import logging

import click
from szamla.database.factories import create_sqlite_database

# Import and register all commands at module level
from szamla.cli.commands import (
    customer,
    settings,
    invoice,
)


def configure_logging(verbose: bool) -> None:
    """Send log records to stderr: DEBUG with --verbose, warnings otherwise."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    for noisy in ("httpx", "httpcore"):
        logging.getLogger(noisy).setLevel(logging.WARNING)


@click.group()
@click.option(
    "--db-path",
    type=click.Path(),
    help="Path to database file (overrides SZAMLA_DB_PATH environment variable)",
    envvar="SZAMLA_DB_PATH",
)
@click.option("--verbose", "-v", is_flag=True, help="Show debug logging on stderr")
@click.pass_context
def cli(ctx, db_path: str | None, verbose: bool):
    """Szamla - Hungarian invoicing.

    Draft, number and issue invoices, then export them as NAV Online Számla
    XML or send them through Számlázz.hu or Billingo.
    """
    ctx.ensure_object(dict)
    configure_logging(verbose)

    # Initialize database connection only when actually running a command
    # (not when showing help)
    if ctx.invoked_subcommand is not None:
        db = create_sqlite_database(database_path=db_path)
        db.connect()
        db.initialize_schema()
        ctx.obj["db"] = db
        ctx.call_on_close(db.disconnect)


# Register all commands
customer.register_commands(cli)
settings.register_commands(cli)
invoice.register_commands(cli)


def main():
    """Main entry point for CLI."""
    cli()


if __name__ == "__main__":
    main()
