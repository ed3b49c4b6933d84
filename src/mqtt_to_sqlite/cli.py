from __future__ import annotations

import subprocess
from typing import Optional

import typer
from loguru import logger

from . import app as runtime
from .config import Settings
from .errors import StoreInitError
from .repair import ShellRepairAction
from .store import StoreWriter

app = typer.Typer(help="MQTT to SQLite ingester")


def _settings(**overrides) -> Settings:
    return Settings(**{k: v for k, v in overrides.items() if v is not None})


@app.command()
def run(
    broker: Optional[str] = typer.Option(None, "--broker", help="Broker host (MQTT_BROKER)"),
    port: Optional[int] = typer.Option(None, "--port", help="Broker port (MQTT_PORT)"),
    topic: Optional[str] = typer.Option(None, "--topic", help="Topic filter (MQTT_TOPIC)"),
    db_path: Optional[str] = typer.Option(None, "--db-path", help="SQLite file (MQTT_DB_PATH)"),
    log_level: Optional[str] = typer.Option(None, "--log-level", help="Log level (LOG_LEVEL)"),
):
    """Subscribe and store messages until SIGINT/SIGTERM."""
    settings = _settings(
        MQTT_BROKER=broker,
        MQTT_PORT=port,
        MQTT_TOPIC=topic,
        MQTT_DB_PATH=db_path,
        LOG_LEVEL=log_level,
    )
    runtime.configure_logging(settings.LOG_LEVEL)
    raise typer.Exit(runtime.run(settings))


@app.command("init-db")
def init_db(
    db_path: Optional[str] = typer.Option(None, "--db-path", help="SQLite file (MQTT_DB_PATH)"),
):
    """Create the messages table and indexes if missing."""
    settings = _settings(MQTT_DB_PATH=db_path)
    try:
        with StoreWriter(settings.db_path):
            pass
    except StoreInitError as e:
        logger.error(f"Failed to init DB at {settings.db_path}: {e}")
        raise typer.Exit(1)
    logger.success(f"Schema ready at {settings.db_path}")


@app.command()
def repair(
    command: Optional[str] = typer.Option(
        None, "--command", help="Repair command (NETWORK_FIX_SCRIPT)"
    ),
):
    """Run the network repair command once, ignoring the throttle."""
    settings = _settings(NETWORK_FIX_SCRIPT=command)
    action = ShellRepairAction(settings.NETWORK_FIX_SCRIPT, timeout=settings.repair_timeout)
    try:
        rc = action.run()
    except (OSError, subprocess.SubprocessError) as e:
        logger.error(f"Network repair could not be run: {e}")
        raise typer.Exit(1)
    logger.info(f"Network repair script exit code: {rc}")
    raise typer.Exit(rc)


if __name__ == "__main__":
    app()
