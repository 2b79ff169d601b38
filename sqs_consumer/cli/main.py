#!/usr/bin/env python3
"""
sqs-consumer CLI - Main entry point.

Commands:
  sqs-consumer consume  - Poll a queue and dispatch messages to a handler
  sqs-consumer queue    - Inspect and feed queues (stats, send)

`consume` is a long-running process and logs JSON lines (see
sqs_consumer.logging_setup); the short interactive commands log through rich.
"""

import logging
import sys

import click
from rich.console import Console
from rich.logging import RichHandler

from sqs_consumer import __version__
from sqs_consumer.errors import ConsumerError

console = Console(stderr=True)

# Commands that configure their own logging
_SELF_LOGGING_COMMANDS = {"consume"}


class ConsumerGroup(click.Group):
    """Reports domain errors as a one-line message with exit code 1 instead of a traceback."""

    def invoke(self, ctx):
        try:
            return super().invoke(ctx)
        except ConsumerError as e:
            if ctx.obj and ctx.obj.get("verbose"):
                raise
            raise click.ClickException(str(e)) from e


def _console_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=console, show_path=verbose)],
    )


@click.group(cls=ConsumerGroup)
@click.version_option(version=__version__, prog_name="sqs-consumer")
@click.option('-v', '--verbose', is_flag=True, help='Debug logging and full tracebacks')
@click.pass_context
def cli(ctx, verbose):
    """sqs-consumer - Concurrent SQS polling worker."""
    ctx.ensure_object(dict)
    ctx.obj['verbose'] = verbose
    if ctx.invoked_subcommand not in _SELF_LOGGING_COMMANDS:
        _console_logging(verbose)


from sqs_consumer.cli.consume import consume
from sqs_consumer.cli.queue import queue

cli.add_command(consume)
cli.add_command(queue)


def main():
    """Console script entry point. Exit codes: 0 ok, 1 error, 2 usage, 130 interrupted."""
    try:
        exit_code = cli.main(obj={}, standalone_mode=False)
    except (KeyboardInterrupt, click.exceptions.Abort):
        console.print("\n[yellow]Interrupted[/yellow]")
        sys.exit(130)
    except click.ClickException as e:
        e.show()
        sys.exit(e.exit_code)
    except Exception as e:
        if '--verbose' in sys.argv or '-v' in sys.argv:
            raise
        console.print(f"[red]Unexpected error:[/red] {e} (rerun with -v for a traceback)")
        sys.exit(1)
    sys.exit(exit_code if isinstance(exit_code, int) else 0)


if __name__ == '__main__':
    main()
