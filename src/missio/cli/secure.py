import click

from missio.cli.services import open_services
from missio.cli.utils import configure_logging_from_config, output_error, output_result, run_async_cli
from missio.config.models import UserConfigModel
from missio.config.user_config import load_user_config
from missio.sdk.secrets.secure import extract_secure_id, generate_secure_ref


@click.group(name="secure")
def secure() -> None:
    """Manage secure variable values in the local secret store."""


@secure.command(name="set")
@click.option("--ref", help="Existing secure:<uuid> reference to overwrite")
@click.option("--value", prompt=True, hide_input=True, help="Secret value to store")
@click.option("--json-output", is_flag=True, help="Output in JSON format")
@click.option("--debug", is_flag=True, help="Show detailed debug information")
def set_secure(ref: str | None, value: str, json_output: bool, debug: bool) -> None:
    """Store a secure value and print its reference.

    \b
    Paste the printed reference into the variable's value with secure: true.

    \b
    Examples:
        missio secure set
        missio secure set --ref secure:2f0c... --value s3cret
    """
    try:
        user_config = load_user_config()
        configure_logging_from_config(user_config, debug=debug)
        reference = ref or generate_secure_ref()
        secure_id = extract_secure_id(reference)
        if secure_id is None:
            raise click.BadParameter("Expected a secure:<uuid> reference", param_hint="--ref")
        run_async_cli(_set_async(user_config, secure_id, value))
        output_result(reference, json_output=json_output)
    except click.ClickException:
        raise
    except KeyboardInterrupt:
        raise click.Abort() from None
    except Exception as e:
        output_error(e, json_output, debug)


@secure.command(name="delete")
@click.argument("ref")
@click.option("--json-output", is_flag=True, help="Output in JSON format")
@click.option("--debug", is_flag=True, help="Show detailed debug information")
def delete_secure(ref: str, json_output: bool, debug: bool) -> None:
    """Delete the value behind a secure:<uuid> reference."""
    try:
        user_config = load_user_config()
        configure_logging_from_config(user_config, debug=debug)
        secure_id = extract_secure_id(ref)
        if secure_id is None:
            raise click.BadParameter("Expected a secure:<uuid> reference", param_hint="REF")
        run_async_cli(_delete_async(user_config, secure_id))
        output_result(f"Deleted {ref}", json_output=json_output)
    except click.ClickException:
        raise
    except KeyboardInterrupt:
        raise click.Abort() from None
    except Exception as e:
        output_error(e, json_output, debug)


async def _set_async(user_config: UserConfigModel, secure_id: str, value: str) -> None:
    async with open_services(user_config) as services:
        await services.secure_values.store_secure_value(secure_id, value)


async def _delete_async(user_config: UserConfigModel, secure_id: str) -> None:
    async with open_services(user_config) as services:
        await services.secure_values.delete_secure_value(secure_id)
