"""Click-based CLI for WattBox devices."""

import asyncio
import json
import sys
import time
from typing import Any, Callable

import click

from lib.wattbox.config import load_config
from lib.wattbox.events import NotificationEvent, SocketEvent
from lib.wattbox.logging import setup_logging
from lib.wattbox.models import OutletAction
from lib.wattbox.sync_client import SyncWattBoxClient


def common_options(func: Callable[..., Any]) -> Callable[..., Any]:
    """Decorator for common CLI options.

    Parameters
    ----------
    func : Callable[..., Any]
        Function to decorate

    Returns
    -------
    Callable[..., Any]
        Decorated function
    """
    func = click.option(
        "--target",
        "-t",
        "host",
        required=True,
        help="Target device IP address",
    )(func)
    func = click.option(
        "--username",
        "-u",
        default="wattbox",
        help="Username for authentication",
    )(func)
    func = click.option(
        "--password",
        "-p",
        default="wattbox",
        help="Password for authentication",
    )(func)
    func = click.option(
        "--port",
        default=23,
        type=int,
        help="Telnet port",
    )(func)
    func = click.option(
        "--timeout",
        default=5.0,
        type=float,
        help="Request timeout in seconds",
    )(func)
    func = click.option(
        "--json",
        "json_output",
        is_flag=True,
        help="Output in JSON format",
    )(func)
    func = click.option(
        "--verbose",
        "-v",
        is_flag=True,
        help="Verbose output (includes protocol traffic)",
    )(func)
    func = click.option(
        "--quiet",
        "-q",
        is_flag=True,
        help="Quiet output (errors only)",
    )(func)
    return func


def setup_cli_logging(verbose: bool, quiet: bool, json_output: bool) -> None:
    """Set up logging for CLI.

    Parameters
    ----------
    verbose : bool
        Enable verbose logging
    quiet : bool
        Enable quiet logging
    json_output : bool
        Enable JSON output
    """
    import logging

    if quiet:
        level = logging.ERROR
    elif verbose:
        level = logging.DEBUG
    else:
        level = logging.INFO

    setup_logging(level=level, json_output=json_output)


def _execute(
    options: dict[str, Any],
    command: str,
    action: Callable[[SyncWattBoxClient], Any],
    render: Callable[[Any], str] | None = None,
) -> None:
    """Connect, run ``action`` on the client, print the result and exit."""
    host = options["host"]
    json_output = options["json_output"]
    setup_cli_logging(options["verbose"], options["quiet"], json_output)

    try:
        with SyncWattBoxClient(
            host=host,
            port=options["port"],
            username=options["username"],
            password=options["password"],
            timeout=options["timeout"],
            max_reconnect_attempts=0,
        ) as client:
            value = action(client)

    except Exception as e:
        if json_output:
            result = {
                "host": host,
                "command": command,
                "error": str(e),
                "success": False,
            }
            click.echo(json.dumps(result))
        else:
            click.echo(f"Error: {e}", err=True)

        sys.exit(1)

    if json_output:
        if hasattr(value, "model_dump"):
            value = value.model_dump()
        elif isinstance(value, list):
            value = [item.model_dump() if hasattr(item, "model_dump") else item for item in value]
        click.echo(json.dumps({"host": host, "command": command, "result": value, "success": True}))
    elif render is not None:
        click.echo(render(value))
    else:
        click.echo("OK")

    sys.exit(0)


def _render_fields(value: Any) -> str:
    if value is None:
        return "Not available"
    return "\n".join(f"{key}: {field}" for key, field in value.model_dump().items())


@click.group()
@click.version_option(version="0.1.0")
def cli() -> None:
    """WattBox power device CLI."""
    pass


@cli.command()
@common_options
def info(**options: Any) -> None:
    """Show firmware, model, hostname and service tag."""
    _execute(options, "info", lambda client: client.get_system_info(), _render_fields)


@cli.command()
@common_options
def outlets(**options: Any) -> None:
    """List outlets with their names and states."""

    def render(value: list) -> str:
        return "\n".join(
            f"{outlet.number:>2}  {'ON ' if outlet.on else 'OFF'}  {outlet.name}" for outlet in value
        )

    _execute(options, "outlets", lambda client: client.get_outlets(), render)


@cli.command()
@common_options
@click.argument(
    "action",
    type=click.Choice([member.name.lower() for member in OutletAction], case_sensitive=False),
)
@click.argument("outlet", type=int)
def outlet(action: str, outlet: int, **options: Any) -> None:
    """Switch an outlet.

    ACTION: off, on, toggle or reset

    OUTLET: Outlet number (1-indexed), or 0 with reset for all outlets
    """
    member = OutletAction[action.upper()]
    _execute(
        options,
        f"outlet {action.lower()} {outlet}",
        lambda client: client.set_outlet_action(outlet, member),
    )


@cli.command()
@common_options
@click.option("--outlet", "-o", "outlet_number", type=int, help="Show a single outlet")
def power(outlet_number: int | None, **options: Any) -> None:
    """Show power readings for the device or one outlet."""
    if outlet_number is None:
        _execute(options, "power", lambda client: client.get_power_metrics(), _render_fields)
    else:
        _execute(
            options,
            f"power {outlet_number}",
            lambda client: client.get_outlet_power_metrics(outlet_number),
            _render_fields,
        )


@cli.command()
@common_options
def ups(**options: Any) -> None:
    """Show the status of the attached UPS."""

    def read_ups(client: SyncWattBoxClient) -> Any:
        if not client.get_ups_connected():
            return None
        return client.get_ups_metrics()

    _execute(options, "ups", read_ups, _render_fields)


@cli.command()
@common_options
@click.confirmation_option(prompt="Reboot the device?")
def reboot(**options: Any) -> None:
    """Reboot the device."""
    _execute(options, "reboot", lambda client: client.reboot())


@cli.command()
@common_options
@click.option("--duration", "-d", type=float, help="Stop after this many seconds")
def watch(duration: float | None, **options: Any) -> None:
    """Print notifications and connection events until interrupted."""
    host = options["host"]
    json_output = options["json_output"]
    setup_cli_logging(options["verbose"], options["quiet"], json_output)

    def on_notification(event: NotificationEvent) -> None:
        if json_output:
            click.echo(json.dumps({"host": host, "event": event.name, "payload": event.payload}))
        else:
            click.echo(f"{event.name}: {event.payload}")

    def on_socket(event: SocketEvent) -> None:
        if event.name == "data":
            return
        if json_output:
            click.echo(json.dumps({"host": host, "event": event.name, "detail": event.detail}))
        else:
            click.echo(f"[{event.name}] {event.detail or ''}".rstrip())

    client = SyncWattBoxClient(
        host=host,
        port=options["port"],
        username=options["username"],
        password=options["password"],
        timeout=options["timeout"],
    )
    try:
        client.on(NotificationEvent, on_notification)
        client.on(SocketEvent, on_socket)
        client.connect()
        deadline = None if duration is None else time.monotonic() + duration
        while deadline is None or time.monotonic() < deadline:
            time.sleep(0.1)
    except KeyboardInterrupt:
        pass
    except Exception as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)
    finally:
        client.close()


@cli.command()
@click.option("--config", "-c", "config_file", type=click.Path(), help="YAML config file")
@click.option("--host", help="Bind address (overrides config)")
@click.option("--port", type=int, help="Bind port (overrides config)")
def serve(config_file: str | None, host: str | None, port: int | None) -> None:
    """Run the REST API server."""
    import uvicorn

    from lib.wattbox.api.app import create_app

    config = load_config(config_file)
    app = create_app(config)
    uvicorn.run(
        app,
        host=host or config.service.api_host,
        port=port or config.service.api_port,
    )


@cli.command()
@click.option("--config", "-c", "config_file", type=click.Path(), help="YAML config file")
def run(config_file: str | None) -> None:
    """Run the device service without the REST API."""
    import logging

    from lib.wattbox.service import WattBoxService

    config = load_config(config_file)
    setup_logging(
        level=getattr(logging, config.log_level.upper(), logging.INFO),
        json_output=config.log_json,
        log_file=config.log_file,
    )
    asyncio.run(WattBoxService(config=config).run())


if __name__ == "__main__":
    cli()
