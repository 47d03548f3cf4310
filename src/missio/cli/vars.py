import click

from missio.cli.services import load_cli_collection, load_cli_folder, open_services
from missio.cli.utils import configure_logging_from_config, output_error, output_result, run_async_cli
from missio.config.models import UserConfigModel
from missio.config.user_config import load_user_config

MASK = "********"


@click.command(name="vars")
@click.argument("collection", type=click.Path(exists=True, dir_okay=False))
@click.option("--env", help="Environment to activate for this run")
@click.option(
    "--folder-file",
    type=click.Path(exists=True, dir_okay=False),
    help="Folder file whose request defaults form the folder layer",
)
@click.option("--show-secrets", is_flag=True, help="Print secret values instead of masking them")
@click.option("--json-output", is_flag=True, help="Output in JSON format")
@click.option("--debug", is_flag=True, help="Show detailed debug information")
def vars_command(
    collection: str,
    env: str | None,
    folder_file: str | None,
    show_secrets: bool,
    json_output: bool,
    debug: bool,
) -> None:
    """Show the resolved variables of a collection.

    \b
    Each variable is listed with the layer that provided it: global,
    collection, folder, environment, dotenv or secret.

    \b
    Examples:
        missio vars api.yml --env dev
        missio vars api.yml --folder-file users/folder.yml --json-output
    """
    try:
        user_config = load_user_config()
        configure_logging_from_config(user_config, debug=debug)
        rows = run_async_cli(_vars_async(user_config, collection, env, folder_file, show_secrets))

        if json_output:
            output_result(rows, json_output=True)
        elif not rows:
            click.echo("No variables defined")
        else:
            width = max(len(name) for name in rows)
            for name, entry in rows.items():
                click.echo(f"{name.ljust(width)}  {entry['value']}  ({entry['source']})")
    except click.ClickException:
        raise
    except KeyboardInterrupt:
        if not json_output:
            click.echo("\nOperation cancelled by user", err=True)
        raise click.Abort() from None
    except Exception as e:
        output_error(e, json_output, debug)


async def _vars_async(
    user_config: UserConfigModel,
    collection_path: str,
    env: str | None,
    folder_file: str | None,
    show_secrets: bool,
) -> dict[str, dict[str, str]]:
    async with open_services(user_config) as services:
        collection = load_cli_collection(collection_path, env, services.resolver)
        resolved = await services.resolver.resolve_variables_with_source(
            collection, load_cli_folder(folder_file)
        )

    return {
        name: {
            "value": variable.value
            if show_secrets or variable.source != "secret"
            else MASK,
            "source": variable.source,
        }
        for name, variable in sorted(resolved.items())
    }
