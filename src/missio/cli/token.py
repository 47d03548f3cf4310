from typing import Any

import click

from missio.cli.services import MissioServices, load_cli_collection, load_cli_folder, open_services
from missio.cli.utils import configure_logging_from_config, output_error, output_result, run_async_cli
from missio.config.models import UserConfigModel
from missio.config.user_config import load_user_config
from missio.sdk.oauth2.manager import OAUTH2_AUTH_TYPES, OAuth2AuthConfig
from missio.sdk.oauth2.request_auth import effective_auth, resolve_oauth2_auth
from missio.sdk.variables.models import MissioCollection

_collection_argument = click.argument("collection", type=click.Path(exists=True, dir_okay=False))
_env_option = click.option("--env", help="Environment to activate for this run")
_folder_option = click.option(
    "--folder-file",
    type=click.Path(exists=True, dir_okay=False),
    help="Folder file whose auth and variables apply",
)
_json_option = click.option("--json-output", is_flag=True, help="Output in JSON format")
_debug_option = click.option("--debug", is_flag=True, help="Show detailed debug information")


@click.group(name="token")
def token() -> None:
    """Fetch, inspect and clear OAuth2 tokens of a collection."""


async def _resolve_auth(
    services: MissioServices,
    collection_path: str,
    env: str | None,
    folder_file: str | None,
) -> tuple[MissioCollection, OAuth2AuthConfig, str | None]:
    collection = load_cli_collection(collection_path, env, services.resolver)
    folder = load_cli_folder(folder_file)
    auth = effective_auth(None, folder, collection)
    if not isinstance(auth, OAUTH2_AUTH_TYPES):
        raise click.ClickException("No OAuth2 auth is configured for this collection")
    variables = await services.resolver.resolve_variables(collection, folder)
    resolved = await resolve_oauth2_auth(auth, variables, collection, services.resolver)
    env_name = services.resolver.get_active_environment_name(collection.id)
    return collection, resolved, env_name


def _run(command: Any, json_output: bool, debug: bool) -> Any:
    try:
        user_config = load_user_config()
        configure_logging_from_config(user_config, debug=debug)
        return run_async_cli(command(user_config))
    except click.ClickException:
        raise
    except KeyboardInterrupt:
        if not json_output:
            click.echo("\nOperation cancelled by user", err=True)
        raise click.Abort() from None
    except Exception as e:
        output_error(e, json_output, debug)


@token.command(name="get")
@_collection_argument
@_env_option
@_folder_option
@_json_option
@_debug_option
def get_token(
    collection: str, env: str | None, folder_file: str | None, json_output: bool, debug: bool
) -> None:
    """Print a valid access token, fetching or refreshing it when needed.

    \b
    The authorization code flow opens the system browser and waits for the
    redirect on a local port.

    \b
    Examples:
        missio token get api.yml --env dev
    """

    async def command(user_config: UserConfigModel) -> str | None:
        async with open_services(user_config) as services:
            coll, auth, env_name = await _resolve_auth(services, collection, env, folder_file)
            return await services.token_manager.get_token(auth, coll.id, env_name)

    access_token = _run(command, json_output, debug)
    if access_token is None:
        output_result("No token available and automatic fetching is disabled", json_output)
    else:
        output_result(access_token, json_output)


@token.command(name="status")
@_collection_argument
@_env_option
@_folder_option
@_json_option
@_debug_option
def token_status(
    collection: str, env: str | None, folder_file: str | None, json_output: bool, debug: bool
) -> None:
    """Show whether a token is stored and when it expires. Makes no network calls."""

    async def command(user_config: UserConfigModel) -> dict[str, Any]:
        async with open_services(user_config) as services:
            coll, auth, env_name = await _resolve_auth(services, collection, env, folder_file)
            status = await services.token_manager.get_token_status(auth, coll.id, env_name)
            return status.model_dump()

    status = _run(command, json_output, debug)
    if json_output:
        output_result(status, json_output=True)
        return
    if not status["has_token"]:
        click.echo("No token stored")
        return
    click.echo(f"Expired: {'yes' if status['is_expired'] else 'no'}")
    if status["time_remaining"] is not None:
        click.echo(f"Time remaining: {status['time_remaining'] // 1000}s")
    else:
        click.echo("Time remaining: no expiry")


@token.command(name="clear")
@_collection_argument
@_env_option
@_folder_option
@click.option("--all", "clear_all", is_flag=True, help="Clear every stored token of the collection")
@_json_option
@_debug_option
def clear_token(
    collection: str,
    env: str | None,
    folder_file: str | None,
    clear_all: bool,
    json_output: bool,
    debug: bool,
) -> None:
    """Delete the stored token so the next request fetches a new one."""

    async def command(user_config: UserConfigModel) -> int:
        async with open_services(user_config) as services:
            if clear_all:
                coll = load_cli_collection(collection, env, services.resolver)
                return await services.token_manager.clear_all_tokens(coll.id)
            coll, auth, env_name = await _resolve_auth(services, collection, env, folder_file)
            await services.token_manager.clear_token(auth, coll.id, env_name)
            return 1

    cleared = _run(command, json_output, debug)
    if clear_all:
        output_result(f"Cleared {cleared} token(s)", json_output)
    else:
        output_result("Token cleared", json_output)
