import click

from missio.cli.services import load_cli_collection, open_services
from missio.cli.utils import configure_logging_from_config, output_error, output_result, run_async_cli
from missio.config.models import UserConfigModel
from missio.config.user_config import load_user_config


@click.group(name="secrets")
def secrets() -> None:
    """Inspect secret providers."""


@secrets.command(name="list")
@click.argument("collection", type=click.Path(exists=True, dir_okay=False))
@click.argument("provider")
@click.option("--env", help="Environment whose variables expand the vault URL")
@click.option("--json-output", is_flag=True, help="Output in JSON format")
@click.option("--debug", is_flag=True, help="Show detailed debug information")
def list_secrets(
    collection: str, provider: str, env: str | None, json_output: bool, debug: bool
) -> None:
    """List the secret names available through a secret provider.

    \b
    Examples:
        missio secrets list api.yml vault --env dev
    """
    try:
        user_config = load_user_config()
        configure_logging_from_config(user_config, debug=debug)
        names = run_async_cli(_list_async(user_config, collection, provider, env))
        output_result(names, json_output=json_output)
    except click.ClickException:
        raise
    except KeyboardInterrupt:
        if not json_output:
            click.echo("\nOperation cancelled by user", err=True)
        raise click.Abort() from None
    except Exception as e:
        output_error(e, json_output, debug)


async def _list_async(
    user_config: UserConfigModel, collection_path: str, provider_name: str, env: str | None
) -> list[str]:
    async with open_services(user_config) as services:
        collection = load_cli_collection(collection_path, env, services.resolver)
        provider = next(
            (p for p in collection.secret_providers if p.name == provider_name), None
        )
        if provider is None:
            raise click.BadParameter(
                f"Secret provider '{provider_name}' not found", param_hint="PROVIDER"
            )
        variables = await services.resolver.resolve_variables(collection)
        return await services.secret_references.list_secret_names(provider, variables)
