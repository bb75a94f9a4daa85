"""Config commands -- view and modify persisted client settings.

Provides the ``pollcurl config`` sub-command group for reading, updating,
and resetting the settings file (:class:`~pollcurl.models.ClientSettings`).
Settings control the poll cadence, the default request timeout, and the
transport engine and its tunables.
"""

from __future__ import annotations

import typer

from pollcurl.output import error, info, print_data, render_settings, success


config_app = typer.Typer(no_args_is_help=True)

_NULLABLE_KEYS = ("default_timeout",)


@config_app.command("show")
def config_show(
    effective: bool = typer.Option(
        False, "--effective", "-e", help="Include environment overrides."
    ),
) -> None:
    """Show current settings.

    Prints the settings file location followed by the stored settings, or
    with ``--effective`` the settings after environment overrides apply.

    Example::

        pollcurl config show
        pollcurl --json config show --effective
    """
    from pollcurl.config import load_settings, resolve_settings, settings_path

    settings = resolve_settings() if effective else load_settings()
    info(f"Settings file: {settings_path()}")
    render_settings(settings.model_dump(mode="json"))


@config_app.command("set")
def config_set(
    key: str = typer.Argument(help="Settings key (e.g. 'poll_interval_ms')."),
    value: str = typer.Argument(help="Value to set; 'none' clears optional keys."),
) -> None:
    """Set a settings value.

    The value is coerced to match the existing field's type (int, float,
    or str). The updated settings are validated against
    :class:`~pollcurl.models.ClientSettings` before saving.

    Raises:
        typer.Exit: With code 2 if the key is unknown, the value cannot be
            coerced, or validation fails.

    Example::

        pollcurl config set poll_interval_ms 50
        pollcurl config set default_timeout none
    """
    from pollcurl.config import load_settings, save_settings
    from pollcurl.models import ClientSettings

    data = load_settings().model_dump(mode="json")
    if key not in data:
        error(f"Unknown config key: {key}")
        raise typer.Exit(code=2)

    current = data[key]
    coerced: object
    if key in _NULLABLE_KEYS and value.lower() in ("none", "null", "off"):
        coerced = None
    elif isinstance(current, bool):
        coerced = value.lower() in ("true", "1", "yes")
    elif isinstance(current, int):
        try:
            coerced = int(value)
        except ValueError:
            error(f"Expected integer for {key}, got: {value}")
            raise typer.Exit(code=2) from None
    elif isinstance(current, float) or key == "default_timeout":
        try:
            coerced = float(value)
        except ValueError:
            error(f"Expected number for {key}, got: {value}")
            raise typer.Exit(code=2) from None
    else:
        coerced = value

    data[key] = coerced
    try:
        new_settings = ClientSettings.model_validate(data)
    except Exception as exc:
        error(f"Validation error: {exc}")
        raise typer.Exit(code=2) from None

    save_settings(new_settings)
    success(f"Set {key} = {coerced}")


@config_app.command("reset")
def config_reset(ctx: typer.Context) -> None:
    """Reset settings to defaults.

    Removes the settings file. Asks for confirmation unless ``--force`` is
    active.

    Example::

        pollcurl config reset
        pollcurl --force config reset
    """
    from pollcurl.config import reset_settings

    force = ctx.obj.get("force", False) if ctx.obj else False
    if not force:
        confirmed = typer.confirm("Reset all settings to defaults?")
        if not confirmed:
            info("Cancelled.")
            raise typer.Exit()

    reset_settings()
    success("Settings reset to defaults.")


@config_app.command("path")
def config_path() -> None:
    """Print the settings file path."""
    from pollcurl.config import settings_path

    print_data(str(settings_path()))
