"""Padmap CLI, a typer-based entry point."""

from __future__ import annotations

import asyncio
import contextlib
import json
import logging
import signal
from pathlib import Path
from typing import TYPE_CHECKING, Annotated

import typer

from padmap.controller.symbols import InputSymbol
from padmap.keyboard.keys import KeyCode, Modifier

if TYPE_CHECKING:
    from padmap.app import App

app = typer.Typer(
    name="padmap",
    help="Map game controller buttons to keyboard keys.",
    no_args_is_help=True,
)
config_app = typer.Typer(help="Configuration commands.")
app.add_typer(config_app, name="config")
rules_app = typer.Typer(help="Edit the mapping rules stored in the config file.")
app.add_typer(rules_app, name="rules")

ConfigOption = Annotated[
    Path | None,
    typer.Option("--config", "-c", help="Path to config file."),
]


# --- Run ---


@app.command()
def run(
    config: ConfigOption = None,
    override: Annotated[
        Path | None,
        typer.Option("--override", "-o", help="Override TOML to merge on top of config."),
    ] = None,
    debug: Annotated[bool, typer.Option("--debug", help="Enable debug logging.")] = False,
) -> None:
    """Start mapping until interrupted."""
    _setup_logging(debug)
    from padmap.app import App
    from padmap.config import AppConfig
    from padmap.controller.source import DeviceUnavailable

    cfg = AppConfig.load_with_override(base=config, override=override)
    application = App(cfg)
    application.set_on_state_change(lambda state: typer.echo(f"[padmap] {state.value}"))

    async def _main() -> None:
        stop = asyncio.Event()
        loop = asyncio.get_running_loop()
        for sig in (signal.SIGINT, signal.SIGTERM):
            loop.add_signal_handler(sig, stop.set)
        await application.run_until_stopped(stop)

    try:
        with contextlib.suppress(KeyboardInterrupt):
            asyncio.run(_main())
    except DeviceUnavailable as e:
        typer.echo(f"✗ {e}", err=True)
        raise typer.Exit(code=1) from e


# --- Doctor ---


@app.command()
def doctor(
    json_output: Annotated[bool, typer.Option("--json", help="Output results as JSON.")] = False,
) -> None:
    """Check system requirements and configuration."""
    results: list[dict[str, str]] = []

    def check(name: str, fn: object) -> bool:
        try:
            fn()  # type: ignore[operator]
            results.append({"name": name, "status": "ok"})
            return True
        except Exception as e:
            results.append({"name": name, "status": "fail", "message": str(e)})
            return False

    def _check_evdev() -> None:
        import evdev

        devices = evdev.list_devices()
        if not devices:
            raise RuntimeError("No input devices found. Is the controller connected?")

    def _check_gamepad() -> None:
        from padmap.config import AppConfig
        from padmap.controller.source import find_gamepad

        device_path = AppConfig.load().controller.device_path
        if device_path:
            if not Path(device_path).exists():
                raise RuntimeError(f"Configured controller {device_path} does not exist.")
        elif find_gamepad() is None:
            raise RuntimeError("No gamepad found. Set 'controller.device_path' in config.")

    def _check_uinput() -> None:
        import os

        if not os.access("/dev/uinput", os.W_OK):
            raise RuntimeError("/dev/uinput is not writable. Add your user to the 'input' group.")

    def _check_config() -> None:
        from padmap.config import AppConfig
        from padmap.paths import default_config_path

        path = default_config_path()
        if path.exists():
            AppConfig.load(path)
        # No config file means defaults

    check("evdev", _check_evdev)
    check("gamepad", _check_gamepad)
    check("uinput", _check_uinput)
    check("config", _check_config)

    if json_output:
        typer.echo(json.dumps(results, indent=2))
    else:
        all_ok = True
        for result in results:
            status = result["status"]
            message = result.get("message", "")
            icon = "✓" if status == "ok" else "✗"
            line = f"  {icon} {result['name']}"
            if message:
                line += f": {message}"
            typer.echo(line)
            if status != "ok":
                all_ok = False
        if not all_ok:
            raise typer.Exit(code=1)


# --- Symbols ---


@app.command()
def symbols() -> None:
    """List controller inputs, output keys and modifiers."""
    typer.echo("Inputs:")
    for symbol in InputSymbol:
        typer.echo(f"  {symbol.value:<18} {symbol.label}")
    typer.echo("Keys:")
    typer.echo("  " + " ".join(key.value for key in KeyCode))
    typer.echo("Modifiers:")
    typer.echo("  " + " ".join(mod.value for mod in Modifier))


# --- Config subcommands ---


@config_app.command("show")
def config_show(config: ConfigOption = None) -> None:
    """Show effective configuration as TOML."""
    import tomli_w

    from padmap.config import AppConfig

    cfg = AppConfig.load(config)
    typer.echo(tomli_w.dumps(cfg.to_toml_data()))


@config_app.command("validate")
def config_validate(config: ConfigOption = None) -> None:
    """Validate configuration file and report errors."""
    from pydantic import ValidationError

    from padmap.config import AppConfig
    from padmap.paths import default_config_path

    path = config or default_config_path()
    if not path.exists():
        typer.echo(f"Config file not found: {path}")
        typer.echo("Using defaults, nothing to validate.")
        return

    try:
        cfg = AppConfig.load(path)
        typer.echo(f"✓ Config valid: {path}")
        typer.echo(f"  controller.poll_interval_ms = {cfg.controller.poll_interval_ms}")
        typer.echo(f"  rules                       = {len(cfg.rules)} entries")
    except ValidationError as e:
        typer.echo(f"✗ Config validation failed: {path}", err=True)
        for error in e.errors():
            loc = " -> ".join(str(item) for item in error["loc"])
            typer.echo(f"  [{loc}] {error['msg']}", err=True)
        raise typer.Exit(code=1) from e


# --- Rules subcommands ---


@rules_app.command("list")
def rules_list(config: ConfigOption = None) -> None:
    """List mapping rules in priority order."""
    from padmap.config import AppConfig

    cfg = AppConfig.load(config)
    if not cfg.rules:
        typer.echo("No rules.")
        return
    for rule in cfg.rules:
        typer.echo(f"  {rule.id}  {rule.describe()}")


@rules_app.command("add-key")
def rules_add_key(
    source: Annotated[InputSymbol, typer.Argument(help="Controller input.")],
    keys: Annotated[list[KeyCode], typer.Argument(help="Keys to hold.")],
    modifier: Annotated[
        list[Modifier] | None,
        typer.Option("--mod", "-m", help="Modifier to hold (repeatable)."),
    ] = None,
    name: Annotated[str, typer.Option("--name", help="Optional rule label.")] = "",
    config: ConfigOption = None,
) -> None:
    """Map a controller input to keyboard keys."""
    from padmap.mapping.rule import RuleError

    application = _rules_app(config)
    try:
        rule = application.add_keyboard_rule(source, keys, modifier or (), name=name)
    except RuleError as e:
        typer.echo(f"✗ {e}", err=True)
        raise typer.Exit(code=1) from e
    typer.echo(f"✓ Added {rule.id}: {rule.describe()}")


@rules_app.command("add-forward")
def rules_add_forward(
    source: Annotated[InputSymbol, typer.Argument(help="Controller input.")],
    targets: Annotated[list[InputSymbol], typer.Argument(help="Inputs to trigger.")],
    name: Annotated[str, typer.Option("--name", help="Optional rule label.")] = "",
    config: ConfigOption = None,
) -> None:
    """Make a controller input act as other controller inputs."""
    from pydantic import ValidationError

    from padmap.mapping.rule import RuleError

    application = _rules_app(config)
    try:
        rule = application.add_forward_rule(source, targets, name=name)
    except (RuleError, ValidationError) as e:
        typer.echo(f"✗ {e}", err=True)
        raise typer.Exit(code=1) from e
    typer.echo(f"✓ Added {rule.id}: {rule.describe()}")


@rules_app.command("remove")
def rules_remove(
    rule_id: Annotated[str, typer.Argument(help="Rule id.")],
    config: ConfigOption = None,
) -> None:
    """Delete a rule."""
    application = _rules_app(config)
    if not application.remove_rule(rule_id):
        typer.echo(f"✗ No rule with id '{rule_id}'.", err=True)
        raise typer.Exit(code=1)
    typer.echo(f"✓ Removed {rule_id}")


@rules_app.command("enable")
def rules_enable(
    rule_id: Annotated[str, typer.Argument(help="Rule id.")],
    config: ConfigOption = None,
) -> None:
    """Enable a rule."""
    _set_enabled(rule_id, True, config)


@rules_app.command("disable")
def rules_disable(
    rule_id: Annotated[str, typer.Argument(help="Rule id.")],
    config: ConfigOption = None,
) -> None:
    """Disable a rule without deleting it."""
    _set_enabled(rule_id, False, config)


# --- Helpers ---


def _rules_app(config: Path | None) -> App:
    from padmap.app import App
    from padmap.config import AppConfig
    from padmap.paths import default_config_path

    path = config or default_config_path()
    return App(AppConfig.load(path), config_path=path)


def _set_enabled(rule_id: str, enabled: bool, config: Path | None) -> None:
    from padmap.mapping.rule import RuleError

    application = _rules_app(config)
    try:
        rule = application.set_rule_enabled(rule_id, enabled)
    except RuleError as e:
        typer.echo(f"✗ {e}", err=True)
        raise typer.Exit(code=1) from e
    typer.echo(f"✓ {rule.describe()}")


def _setup_logging(debug: bool) -> None:
    level = logging.DEBUG if debug else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%H:%M:%S",
    )
