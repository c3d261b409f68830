import click

from inkls.cli.lsp import lsp


@click.group(invoke_without_command=True)
@click.version_option(package_name="ink-language-server")
@click.pass_context
def cli(ctx: click.Context) -> None:
    """Ink language server"""
    if ctx.invoked_subcommand is None:
        click.echo(ctx.get_help())


cli.add_command(lsp)

if __name__ == "__main__":
    cli()
