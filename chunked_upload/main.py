"""
Main entry point for the chunked upload service.

This module provides the command-line interface: uploading a local file
in parts, serving the HTTP API, and managing configuration files.
"""

import asyncio
import sys
from pathlib import Path
from typing import Optional

import aiohttp
import typer
import uvicorn
from loguru import logger

from .application.startup import ApplicationStartup, create_uploader
from .core.domain.errors import ChunkedUploadError
from .core.domain.upload import AssemblyResult
from .core.services.streaming import ProgressCallback, upload_file
from .infrastructure.config.loader import ConfigLoader
from .infrastructure.config.models import ApplicationConfig
from .infrastructure.logging.setup import setup_logging
from .presentation.api.app import create_app

# Create CLI application
cli = typer.Typer(
    name="chunked-upload",
    help="Upload large objects in parts and assemble them on the storage backend"
)


def _load_config(config_file: Optional[str]) -> ApplicationConfig:
    try:
        return ConfigLoader().load_config(config_file)
    except (FileNotFoundError, ValueError) as e:
        typer.echo(f"Error loading configuration: {e}", err=True)
        sys.exit(1)


@cli.command()
def upload(
    source: str = typer.Argument(..., help="Local file to upload"),
    target: str = typer.Argument(..., help="Target path on the storage backend"),
    config_file: Optional[str] = typer.Option(
        None, "--config", "-c", help="Configuration file path"
    ),
    chunk_size: Optional[int] = typer.Option(
        None, "--chunk-size", help="Part size in bytes"
    ),
    quiet: bool = typer.Option(
        False, "--quiet", "-q", help="Do not show a progress bar"
    )
) -> None:
    """Upload a local file as a chunked upload."""
    config = _load_config(config_file)
    setup_logging(config.logging)

    source_path = Path(source)
    if not source_path.is_file():
        typer.echo(f"Source file not found: {source}", err=True)
        sys.exit(1)

    size = source_path.stat().st_size
    part_size = chunk_size or config.upload.chunk_size

    try:
        if quiet:
            result = asyncio.run(run_upload(config, source, target, part_size))
        else:
            with typer.progressbar(length=size, label=f"Uploading {source_path.name}") as bar:
                def progress(sent: int, total: int) -> None:
                    bar.update(sent - bar.pos)

                result = asyncio.run(run_upload(config, source, target, part_size, progress))
    except ChunkedUploadError as e:
        typer.echo(f"Upload failed: {e}", err=True)
        sys.exit(1)

    typer.echo(
        f"Uploaded {result.size} bytes to {result.target_path} "
        f"({result.part_count} parts, {result.rounds} rounds, strategy {result.strategy})"
    )


async def run_upload(
    config: ApplicationConfig,
    source: str,
    target: str,
    chunk_size: int,
    progress: Optional[ProgressCallback] = None
) -> AssemblyResult:
    """Run one file upload with a freshly built uploader."""
    uploader = create_uploader(config)
    await uploader.start()
    try:
        return await upload_file(uploader, source, target, chunk_size, progress)
    finally:
        await uploader.stop()


@cli.command()
def serve(
    config_file: Optional[str] = typer.Option(
        None, "--config", "-c", help="Configuration file path"
    ),
    host: Optional[str] = typer.Option(
        None, "--host", help="Server host address"
    ),
    port: Optional[int] = typer.Option(
        None, "--port", "-p", help="Server port"
    ),
    log_level: Optional[str] = typer.Option(
        None, "--log-level", help="Logging level"
    ),
    debug: bool = typer.Option(
        False, "--debug", help="Enable debug mode"
    )
) -> None:
    """Serve the chunked upload HTTP API."""
    config = _load_config(config_file)

    # Override with command line arguments
    if host:
        config.server.host = host
    if port:
        config.server.port = port
    if log_level:
        config.logging.level = log_level.upper()
    if debug:
        config.debug = True
        config.logging.level = "DEBUG"

    setup_logging(config.logging)

    logger.info(f"Starting {config.name} v{config.version}")
    logger.info(f"Environment: {config.environment}")
    logger.info(f"Storage backend: {config.storage.backend}")

    try:
        startup = ApplicationStartup(config)
        app = create_app(startup.uploader, config, startup)
        uvicorn.run(
            app,
            host=config.server.host,
            port=config.server.port,
            log_level=config.logging.level.lower(),
            access_log=config.debug
        )
    except KeyboardInterrupt:
        logger.info("Server interrupted by user")
    except (OSError, ValueError) as e:
        logger.error(f"Server failed to start: {e}")
        sys.exit(1)


@cli.command()
def init_config(
    output: str = typer.Option(
        "config.yaml", "--output", "-o", help="Output configuration file"
    ),
    format: str = typer.Option(
        "yaml", "--format", "-f", help="Configuration format (yaml/json)"
    )
) -> None:
    """Generate a default configuration file."""
    config = ApplicationConfig()
    config_loader = ConfigLoader()

    try:
        config_loader.save_config(config, output, format)
        typer.echo(f"Default configuration saved to {output}")
    except ValueError as e:
        typer.echo(f"Error saving configuration: {e}", err=True)
        sys.exit(1)


@cli.command()
def validate_config(
    config_file: str = typer.Argument(..., help="Configuration file to validate")
) -> None:
    """Validate a configuration file."""
    config_loader = ConfigLoader()

    try:
        config = config_loader.load_config(config_file)
        typer.echo(f"Configuration file {config_file} is valid")
        typer.echo(f"Application: {config.name} v{config.version}")
        typer.echo(f"Storage: {config.storage.backend} ({config.storage.merge_mode})")
    except (FileNotFoundError, ValueError) as e:
        typer.echo(f"Configuration validation failed: {e}", err=True)
        sys.exit(1)


@cli.command()
def health_check(
    host: str = typer.Option("localhost", "--host", help="Server host"),
    port: int = typer.Option(8000, "--port", help="Server port"),
    timeout: float = typer.Option(10.0, "--timeout", help="Request timeout")
) -> None:
    """Check the health of a running server."""

    async def check_health() -> bool:
        url = f"http://{host}:{port}/health"
        timeout_config = aiohttp.ClientTimeout(total=timeout)

        try:
            async with aiohttp.ClientSession(timeout=timeout_config) as session:
                async with session.get(url) as response:
                    data = await response.json()
                    status = data.get("status", "unknown")
                    if response.status == 200 and status == "healthy":
                        typer.echo(f"Server is healthy: {status}")
                        return True
                    typer.echo(f"Server returned status {response.status} ({status})")
                    return False
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            typer.echo(f"Health check failed: {e}")
            return False

    if not asyncio.run(check_health()):
        sys.exit(1)


def main() -> None:
    """Main entry point for the CLI."""
    cli()


if __name__ == "__main__":
    main()
