"""
LOGCAT Monitor CLI Entry Point

Provides commands for managing configuration, listing devices, streaming
logs to the terminal and launching the dashboard.
"""

import logging
import sys
import time
from pathlib import Path

import click
import orjson

from logcat_monitor.config import (
    ConfigError,
    ConfigLoader,
    ConfigValidationError,
    MonitorConfig,
    init_default_config,
    load_config,
    resolve_adb_path,
)
from logcat_monitor.log_parser import LogRecord, Severity
from logcat_monitor.monitor import LogcatMonitor


def _load_or_exit(config_path: Path | None) -> MonitorConfig:
    try:
        return load_config(config_path)
    except ConfigError as e:
        click.secho(f"✗ Configuration error: {e}", fg="red")
        sys.exit(1)


def _configure_logging(config: MonitorConfig, dashboard: bool = False) -> None:
    """Route log records to stderr, or to Textual's console for the dashboard"""
    level = getattr(logging, config.effective_log_level)
    if dashboard:
        from textual.logging import TextualHandler

        logging.basicConfig(level=level, handlers=[TextualHandler()], force=True)
    else:
        logging.basicConfig(
            level=level,
            format="%(asctime)s %(levelname)s %(name)s: %(message)s",
            stream=sys.stderr,
            force=True,
        )


def _build_monitor(config: MonitorConfig) -> LogcatMonitor:
    adb_path = resolve_adb_path(config)
    if adb_path is None:
        click.secho(
            "✗ adb not found. Set adb.path in the config, ANDROID_SDK_ROOT, or add adb to PATH.",
            fg="red",
        )
        sys.exit(1)
    return LogcatMonitor(config, adb_path=adb_path)


def _echo_json(data: dict) -> None:
    click.echo(orjson.dumps(data).decode())


config_option = click.option(
    "--config",
    "-c",
    "config_path",
    type=click.Path(path_type=Path),
    help="Path to config file (defaults to ~/.logcat-monitor/config.yaml)",
)


@click.group(invoke_without_command=True)
@click.version_option(version="0.1.0", prog_name="logcat-monitor")
@click.pass_context
def cli(ctx: click.Context) -> None:
    """LOGCAT Monitor - live Android device log viewer

    Streams `adb logcat`, keeps a bounded history and filters it by text
    and severity.

    Run 'logcat-monitor' to launch the dashboard.
    """
    if ctx.invoked_subcommand is None:
        ctx.invoke(dashboard)


@cli.command()
@click.option(
    "--output",
    "-o",
    type=click.Path(path_type=Path),
    help="Output path for config file (defaults to ~/.logcat-monitor/config.yaml)",
)
@click.option("--force", "-f", is_flag=True, help="Overwrite an existing config file")
def init(output: Path | None, force: bool) -> None:
    """Write a default configuration file."""
    target = output or Path(ConfigLoader.DEFAULT_USER_CONFIG_PATH).expanduser()
    if target.exists() and not force:
        click.secho(f"✓ Configuration already exists at: {target}", fg="green")
        click.echo()
        click.echo("To overwrite it, use:")
        click.echo("  logcat-monitor init --force")
        return

    written = init_default_config(target)
    click.secho(f"✓ Wrote default configuration to: {written}", fg="green")


@cli.command()
@config_option
def validate(config_path: Path | None) -> None:
    """Validate the configuration file and show key settings."""
    try:
        config = load_config(config_path)
    except ConfigValidationError as e:
        click.secho(f"✗ Configuration validation error: {e}", fg="red")
        sys.exit(1)
    except ConfigError as e:
        click.secho(f"✗ Configuration error: {e}", fg="red")
        sys.exit(1)

    click.secho("✓ Configuration is valid", fg="green")

    adb_path = resolve_adb_path(config)
    click.echo("\nKey settings:")
    click.echo(f"  adb: {adb_path if adb_path else 'not found'}")
    click.echo(f"  Buffer capacity: {config.buffer.capacity}")
    click.echo(f"  Display limit: {config.buffer.display_limit}")
    click.echo(f"  Only Unity: {'yes' if config.filters.only_unity else 'no'}")
    click.echo(f"  Refresh interval: {config.dashboard.refresh_interval_ms}ms")


@cli.command()
@config_option
@click.option("--json", "as_json", is_flag=True, help="Print JSON Lines")
def devices(config_path: Path | None, as_json: bool) -> None:
    """List connected devices with their build details."""
    config = _load_or_exit(config_path)
    _configure_logging(config)
    monitor = _build_monitor(config)

    try:
        if not monitor.refresh_devices():
            click.secho(f"✗ {monitor.status_message}", fg="red")
            sys.exit(1)
        while monitor.discovery.is_running:
            monitor.tick()
    finally:
        monitor.shutdown()

    if monitor.discovery.last_error is not None:
        click.secho(f"✗ {monitor.status_message}", fg="red")
        sys.exit(1)

    for device in monitor.devices:
        if as_json:
            _echo_json(device.to_dict())
        else:
            click.echo(f"{device.id}\t{device.detail}")

    if not monitor.devices and not as_json:
        click.echo("No devices found", err=True)


def _echo_record(record: LogRecord, as_json: bool) -> None:
    if as_json:
        _echo_json(record.to_dict())
    else:
        click.secho(record.format_row(), fg=_CLICK_COLORS[record.severity])


_CLICK_COLORS = {
    Severity.WARNING: "yellow",
    Severity.INFO: "green",
    Severity.ERROR: "red",
    Severity.DEBUG: "blue",
    Severity.VERBOSE: "bright_black",
}


@cli.command()
@config_option
@click.option("--device", "-d", "device_id", help="Device serial (defaults to the first device found)")
@click.option("--all-tags", is_flag=True, help="Do not restrict the stream to the Unity tag")
@click.option("--filter", "-f", "filter_text", default="", help="Case-insensitive message filter (3+ characters)")
@click.option(
    "--level",
    "-l",
    "levels",
    multiple=True,
    type=click.Choice(["V", "D", "I", "W", "E"], case_sensitive=False),
    help="Only show these severities (repeatable)",
)
@click.option("--json", "as_json", is_flag=True, help="Print JSON Lines")
def stream(
    config_path: Path | None,
    device_id: str | None,
    all_tags: bool,
    filter_text: str,
    levels: tuple[str, ...],
    as_json: bool,
) -> None:
    """Stream matching log lines to the terminal until Ctrl-C."""
    config = _load_or_exit(config_path)
    _configure_logging(config)
    monitor = _build_monitor(config)

    monitor.set_filter_text(filter_text)
    monitor.set_severities(levels)
    monitor.set_only_unity(not all_tags)

    try:
        if not monitor.refresh_devices():
            click.secho(f"✗ {monitor.status_message}", fg="red")
            sys.exit(1)
        while monitor.discovery.is_running:
            monitor.tick()

        if device_id is not None and not monitor.select_device(device_id):
            click.secho(f"✗ Device not found: {device_id}", fg="red")
            sys.exit(1)

        # Baseline before the reader threads start appending
        last_revision = monitor.buffer.revision
        if not monitor.start_streaming():
            click.secho(f"✗ {monitor.status_message or 'Could not start streaming'}", fg="red")
            sys.exit(1)

        interval = config.dashboard.refresh_interval_ms / 1000
        while True:
            time.sleep(interval)
            snapshot = monitor.tick()

            # Records appended since the last pass are the newest ones
            records, revision = monitor.buffer.snapshot_with_revision()
            new_count = min(revision - last_revision, len(records))
            last_revision = revision
            if new_count > 0:
                for record in records[len(records) - new_count:]:
                    if snapshot.filter.matches(record):
                        _echo_record(record, as_json)

            if not snapshot.streaming:
                click.secho("✗ adb logcat exited", fg="red", err=True)
                sys.exit(1)
    except KeyboardInterrupt:
        pass
    finally:
        monitor.shutdown()


@cli.command()
@config_option
def dashboard(config_path: Path | None) -> None:
    """Launch the Logcat Monitor TUI dashboard."""
    from logcat_monitor.app import run_dashboard

    config = _load_or_exit(config_path)
    _configure_logging(config, dashboard=True)

    try:
        run_dashboard(LogcatMonitor(config))
    except Exception as e:
        click.secho(f"✗ Failed to launch dashboard: {e}", fg="red")
        sys.exit(1)


def main() -> None:
    """Main entry point for the CLI"""
    cli()


if __name__ == "__main__":
    main()
