"""Config commands -- view and modify the user configuration.

Provides the ``offlinecache config`` sub-command group for reading,
updating, and resetting the user's configuration file
(:class:`~offlinecache.models.WorkerConfig`).  Settings are persisted in
the offlinecache config directory and set the application name, version,
strategy, and content list used by every other command.
"""

from __future__ import annotations

import typer

from offlinecache.output import error, format_response, info, success


config_app = typer.Typer(no_args_is_help=True)


@config_app.command("show")
def config_show(ctx: typer.Context) -> None:
    """Show the effective configuration.

    Prints the config directory path, then the configuration after every
    precedence layer (user config, project config, environment, flags)
    has been applied.

    Example::

        offlinecache config show
        offlinecache --json --app-version 2 config show
    """
    from offlinecache.config import get_config_dir
    from offlinecache.runtime import config_from_context

    config = config_from_context(ctx)
    info(f"Config directory: {get_config_dir()}")
    format_response(config.model_dump(mode="json"))


@config_app.command("set")
def config_set(
    key: str = typer.Argument(
        help="Config key (dot notation, e.g., 'network.base_url')."
    ),
    value: str = typer.Argument(help="Value to set."),
) -> None:
    """Set a value in the user configuration.

    Uses dot notation for nested keys.  The value is coerced to the type of
    the existing field (bool, int, float, or a comma-separated list); a
    field that is currently unset takes the string as is.  The updated
    config is validated against :class:`~offlinecache.models.WorkerConfig`
    before saving.

    Raises:
        typer.Exit: With code 2 if the key path is invalid, the value
            cannot be coerced, or validation fails.

    Example::

        offlinecache config set version 2
        offlinecache config set strategy race
        offlinecache config set content index.html,pkg/package.js
    """
    from offlinecache.config import load_worker_config, save_worker_config
    from offlinecache.models import WorkerConfig

    config = load_worker_config()
    data = config.model_dump(mode="json")

    keys = key.split(".")
    target = data
    for k in keys[:-1]:
        if k not in target or not isinstance(target[k], dict):
            error(f"Invalid config key: {key}")
            raise typer.Exit(code=2)
        target = target[k]

    final_key = keys[-1]
    if final_key not in target:
        error(f"Unknown config key: {key}")
        raise typer.Exit(code=2)

    current = target[final_key]
    coerced: object
    if isinstance(current, bool):
        coerced = value.lower() in ("true", "1", "yes")
    elif isinstance(current, int):
        try:
            coerced = int(value)
        except ValueError:
            error(f"Expected integer for {key}, got: {value}")
            raise typer.Exit(code=2) from None
    elif isinstance(current, float):
        try:
            coerced = float(value)
        except ValueError:
            error(f"Expected number for {key}, got: {value}")
            raise typer.Exit(code=2) from None
    elif isinstance(current, list):
        coerced = [item.strip() for item in value.split(",") if item.strip()]
    else:
        coerced = value

    target[final_key] = coerced

    try:
        new_config = WorkerConfig.model_validate(data)
    except Exception as exc:
        error(f"Validation error: {exc}")
        raise typer.Exit(code=2) from None

    save_worker_config(new_config)
    success(f"Set {key} = {coerced}")


@config_app.command("reset")
def config_reset(ctx: typer.Context) -> None:
    """Reset the user configuration to defaults.

    Asks for confirmation unless ``--force`` is active.

    Example::

        offlinecache --force config reset
    """
    from offlinecache.config import save_worker_config
    from offlinecache.models import WorkerConfig

    force = ctx.obj.get("force", False) if ctx.obj else False
    if not force:
        confirmed = typer.confirm("Reset all config to defaults?")
        if not confirmed:
            info("Cancelled.")
            raise typer.Exit()

    save_worker_config(WorkerConfig())
    success("Configuration reset to defaults.")
