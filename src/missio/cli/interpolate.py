import click

from missio.cli.services import load_cli_collection, load_cli_folder, open_services
from missio.cli.utils import configure_logging_from_config, output_error, output_result, run_async_cli
from missio.config.models import UserConfigModel
from missio.config.user_config import load_user_config
from missio.sdk.variables.unresolved import detect_unresolved


@click.command(name="interpolate")
@click.argument("collection", type=click.Path(exists=True, dir_okay=False))
@click.argument("template")
@click.option("--env", help="Environment to activate for this run")
@click.option(
    "--folder-file",
    type=click.Path(exists=True, dir_okay=False),
    help="Folder file whose request defaults form the folder layer",
)
@click.option("--json-output", is_flag=True, help="Output in JSON format")
@click.option("--debug", is_flag=True, help="Show detailed debug information")
def interpolate(
    collection: str,
    template: str,
    env: str | None,
    folder_file: str | None,
    json_output: bool,
    debug: bool,
) -> None:
    """Expand a template with the collection's variables and secret references.

    \b
    Examples:
        missio interpolate api.yml "{{baseUrl}}/users/{{userId}}" --env dev
        missio interpolate api.yml "Bearer {{token}}" --json-output
    """
    try:
        user_config = load_user_config()
        configure_logging_from_config(user_config, debug=debug)
        text, unresolved = run_async_cli(
            _interpolate_async(user_config, collection, template, env, folder_file)
        )

        if json_output:
            output_result({"text": text, "unresolved": unresolved}, json_output=True)
            return

        for name in unresolved:
            click.echo(f"Warning: unresolved variable '{name}'", err=True)
        click.echo(text)
    except click.ClickException:
        raise
    except KeyboardInterrupt:
        if not json_output:
            click.echo("\nOperation cancelled by user", err=True)
        raise click.Abort() from None
    except Exception as e:
        output_error(e, json_output, debug)


async def _interpolate_async(
    user_config: UserConfigModel,
    collection_path: str,
    template: str,
    env: str | None,
    folder_file: str | None,
) -> tuple[str, list[str]]:
    async with open_services(user_config) as services:
        collection = load_cli_collection(collection_path, env, services.resolver)
        variables = await services.resolver.resolve_variables(
            collection, load_cli_folder(folder_file)
        )
        unresolved = detect_unresolved([template], variables)
        text = await services.resolver.interpolate_with_secrets(template, variables, collection)
    return text, unresolved
