"""Command-line interface for relaycat.

Usage:
    relaycat [--timeout SECONDS] [-q] [-v] <host> <port>

Argument errors exit with status 1 after printing the message and usage
help to stderr. Stdout carries only the bytes received from the peer.
"""

import logging
from typing import Any

import click

from relaycat import __version__
from relaycat.config import DEFAULT_TIMEOUT, RelayConfig, parse_port
from relaycat.session import EXIT_FAILURE, SessionController

logger = logging.getLogger(__name__)


class PortType(click.ParamType):
    """TCP port given as text, accepted in [1, 65535]."""

    name = "port"

    def convert(self, value: Any, param: click.Parameter | None, ctx: click.Context | None) -> int:
        try:
            return parse_port(value)
        except ValueError as e:
            self.fail(str(e), param, ctx)


PORT = PortType()


class RelayCommand(click.Command):
    """Click command that reports usage errors with help and exit status 1."""

    def parse_args(self, ctx: click.Context, args: list[str]) -> list[str]:
        try:
            return super().parse_args(ctx, args)
        except click.exceptions.UsageError as e:
            # Show the error message first
            click.echo(f"Error: {e.format_message()}", err=True)
            click.echo("", err=True)
            click.echo(ctx.get_help(), err=True)
            ctx.exit(EXIT_FAILURE)
            return []  # never reached


def _setup_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(message)s",
    )


@click.command(cls=RelayCommand, context_settings={"help_option_names": ["-h", "--help"]})
@click.argument("host", type=str)
@click.argument("port", type=PORT)
@click.option(
    "--timeout",
    type=click.IntRange(min=0),
    default=DEFAULT_TIMEOUT,
    show_default=True,
    help="Connect timeout in seconds (0 uses the default)",
)
@click.option("--quiet", "-q", is_flag=True, help="Do not print the connection status line")
@click.option("--verbose", "-v", is_flag=True, help="Enable debug logging on stderr")
@click.version_option(__version__, prog_name="relaycat")
@click.pass_context
def main(ctx: click.Context, host: str, port: int, timeout: int, quiet: bool, verbose: bool) -> None:
    """Connect to HOST:PORT and relay stdin/stdout over TCP.

    Bytes read from stdin are sent to the peer unchanged; bytes received
    from the peer are written to stdout unchanged. The session ends when
    the peer closes the connection or stdin reaches end-of-input (Ctrl+D).

    \b
    Examples:
        # Talk to a local echo service
        relaycat localhost 7

        # Send a request from a file, fail fast if unreachable
        relaycat --timeout 3 example.com 80 < request.txt
    """
    _setup_logging(verbose)

    try:
        config = RelayConfig(host=host, port=port, timeout=timeout)
    except ValueError as e:
        click.echo(f"Error: {e}", err=True)
        ctx.exit(EXIT_FAILURE)

    logger.debug(f"Config: host={config.host} port={config.port} timeout={config.timeout}")
    exit_code = SessionController(config, quiet=quiet).run()
    ctx.exit(exit_code)  # Use ctx.exit() for Click compatibility


if __name__ == "__main__":
    main()
