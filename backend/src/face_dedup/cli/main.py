"""
face-dedup CLI — run and inspect the face deduplication service.

Usage:
    face-dedup [--config PATH] [--verbose] serve [--host HOST] [--port PORT] [--debug]
    face-dedup submit <descriptor.json> [--image REF] [--device UA]
    face-dedup count
    face-dedup show <record_id>
    face-dedup init
    face-dedup version
"""

from __future__ import annotations

import json
import logging
from pathlib import Path

import click

from face_dedup import __version__
from face_dedup.errors import ConfigError, SubmissionError


@click.group()
@click.option("--config", "config_path", default=None, type=click.Path(dir_okay=False),
              help="Path to config.json (default: ~/.face-dedup/config.json)")
@click.option("--verbose", "-v", is_flag=True, default=False, help="Enable debug logging")
@click.pass_context
def cli(ctx: click.Context, config_path: str | None, verbose: bool) -> None:
    """Register each face exactly once."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    ctx.ensure_object(dict)
    ctx.obj["config_path"] = Path(config_path) if config_path else None


def _load_config(ctx: click.Context) -> dict:
    from face_dedup.config import get_config

    try:
        return get_config(ctx.obj.get("config_path"))
    except ConfigError as e:
        raise click.ClickException(str(e))


@cli.command()
def version() -> None:
    """Print the installed version."""
    click.echo(f"face-dedup {__version__}")


@cli.command()
@click.pass_context
def init(ctx: click.Context) -> None:
    """Create ~/.face-dedup/ with a default configuration."""
    from face_dedup.config import get_default_config
    from face_dedup.paths import ensure_data_home, get_config_path

    data_home = ensure_data_home()
    click.echo(f"Data directory: {data_home}")

    config_path = ctx.obj.get("config_path") or get_config_path()
    if config_path.exists():
        click.echo(f"Config already exists: {config_path}")
    else:
        config_path.parent.mkdir(parents=True, exist_ok=True)
        config_path.write_text(json.dumps(get_default_config(), indent=2), encoding="utf-8")
        click.echo(f"Config created: {config_path}")

    click.echo("Initialization complete.")


@cli.command()
@click.option("--host", default=None, help="Bind address (default: from config or 0.0.0.0)")
@click.option("--port", default=None, type=int, help="Port (default: from config or 3000)")
@click.option("--debug", is_flag=True, default=False, help="Enable Flask debug mode")
@click.pass_context
def serve(ctx: click.Context, host: str | None, port: int | None, debug: bool) -> None:
    """Start the HTTP submission gateway."""
    from face_dedup_gateway.app import create_app

    config = _load_config(ctx)
    server_config = config["server"]

    final_host = host or server_config["host"]
    final_port = port or server_config["port"]
    final_debug = debug or server_config["debug"]

    app = create_app(config)
    click.echo(f"Starting face-dedup gateway on {final_host}:{final_port}")
    # Reloader would build a second coordinator in a child process
    app.run(host=final_host, port=final_port, debug=final_debug, threaded=True, use_reloader=False)


@cli.command()
@click.argument("descriptor_file", type=click.Path(exists=True, dir_okay=False))
@click.option("--image", default=None, help="Image reference stored with a new face")
@click.option("--device", default=None, help="Device string stored with a new face")
@click.pass_context
def submit(ctx: click.Context, descriptor_file: str, image: str | None, device: str | None) -> None:
    """Submit a descriptor from a JSON file.

    DESCRIPTOR_FILE holds either a list of numbers or an object with a
    "descriptor" list and optional "image", "device" and "location" keys.
    """
    from face_dedup.bootstrap import create_coordinator

    try:
        payload = json.loads(Path(descriptor_file).read_text(encoding="utf-8"))
    except json.JSONDecodeError as e:
        raise click.ClickException(f"Invalid JSON in {descriptor_file}: {e}")

    if isinstance(payload, list):
        payload = {"descriptor": payload}
    if not isinstance(payload, dict) or "descriptor" not in payload:
        raise click.ClickException("Descriptor file must hold a list or an object with 'descriptor'")

    metadata = {
        "device": device or payload.get("device"),
        "network_origin": "cli",
        "location": payload.get("location"),
    }

    coordinator = create_coordinator(_load_config(ctx))
    try:
        result = coordinator.process_submission(
            payload["descriptor"],
            metadata,
            image or payload.get("image"),
        )
    except SubmissionError as e:
        click.echo(f"Error: {e}", err=True)
        raise SystemExit(1)
    finally:
        coordinator.store.close()

    click.echo(f"{result.message} ({result.record_id})")


@cli.command()
@click.pass_context
def count(ctx: click.Context) -> None:
    """Print the number of registered faces."""
    from face_dedup.bootstrap import create_store

    store = create_store(_load_config(ctx))
    try:
        click.echo(str(store.count()))
    finally:
        store.close()


@cli.command()
@click.argument("record_id")
@click.pass_context
def show(ctx: click.Context, record_id: str) -> None:
    """Print a registered face as JSON."""
    from face_dedup.bootstrap import create_store

    store = create_store(_load_config(ctx))
    try:
        record = store.get(record_id)
    finally:
        store.close()

    if record is None:
        click.echo(f"No face with id {record_id}", err=True)
        raise SystemExit(1)

    click.echo(json.dumps(record.to_dict(), indent=2))


if __name__ == "__main__":
    cli()
