import signal
from typing import Optional

import click

from inkls.cli.utils import configure_logging, output_error
from inkls.config.server_config import load_server_config
from inkls.lsp.server import InkLSPServer


@click.command(name="lsp")
@click.option("--port", type=int, help="Port number for LSP server (defaults to 3000)")
@click.option("--host", default="localhost", help="Host to bind to when using TCP mode (defaults to localhost)")
@click.option("--tcp", is_flag=True, help="Use TCP instead of stdio for LSP communication")
@click.option(
    "--config",
    "config_path",
    type=click.Path(dir_okay=False),
    help="Server configuration file (defaults to $INKLS_CONFIG or ~/.inkls/config.yml)",
)
@click.option("--debug", is_flag=True, help="Show detailed debug information")
def lsp(port: Optional[int], host: str, tcp: bool, config_path: Optional[str], debug: bool):
    """Start the Ink language server.

    The server compiles the Ink stories of the open workspace folders with
    inklecate and reports errors, warnings and TODOs as diagnostics.

    By default, the server uses stdio for communication (suitable for IDE integration).
    Use --tcp flag for testing or when stdio communication is not suitable.

    Examples:
        inkls lsp                      # Start LSP server using stdio
        inkls lsp --tcp                # Start LSP server using TCP on localhost:3000
        inkls lsp --tcp --port 4000    # Start LSP server using TCP on localhost:4000
        inkls lsp --config inkls.yml   # Use a specific configuration file
        inkls lsp --debug              # Start with detailed debug logging
    """
    configure_logging(debug)

    try:
        config = load_server_config(config_path)

        final_port = port or 3000

        def signal_handler(signum, frame):
            raise KeyboardInterrupt()

        signal.signal(signal.SIGINT, signal_handler)
        signal.signal(signal.SIGTERM, signal_handler)

        server = InkLSPServer(config=config, port=final_port)

        if tcp:
            click.echo(f"Starting Ink LSP server on {host}:{final_port}", err=True)
            server.start(host=host, use_tcp=True)
        else:
            server.start(host=host, use_tcp=False)

    except KeyboardInterrupt:
        click.echo("\nLSP server stopped", err=True)
    except (FileNotFoundError, ValueError) as e:
        output_error(e, debug=debug)
