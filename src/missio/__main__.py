import click

from missio.cli.interpolate import interpolate
from missio.cli.secrets import secrets
from missio.cli.secure import secure
from missio.cli.token import token
from missio.cli.vars import vars_command
from missio.version import PACKAGE_VERSION


@click.group(invoke_without_command=True)
@click.version_option(PACKAGE_VERSION, prog_name="missio")
@click.pass_context
def cli(ctx: click.Context) -> None:
    """Missio CLI"""
    if ctx.invoked_subcommand is None:
        click.echo(ctx.get_help())


cli.add_command(vars_command)
cli.add_command(interpolate)
cli.add_command(secrets)
cli.add_command(secure)
cli.add_command(token)


if __name__ == "__main__":
    cli()
