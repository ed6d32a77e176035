"""CLI entry point for the UFile SDK.

This module provides a command-line interface over UFileClient. Credentials
and bucket come from UFILE_* environment variables or a .env file.

Usage:
    # Print an Authorization header for an external request
    python -m ufile sign PUT photos/cat.jpg --content-type image/jpeg

    # Multipart upload of a local file with 4 parallel parts
    python -m ufile upload backups/db.tar ./db.tar --concurrency 4

    # Thaw an archived object and wait until it can be read
    python -m ufile restore backups/2019.tar --wait

Examples:
    python -m ufile head photos/cat.jpg
    python -m ufile list-uploads --prefix backups/
"""

import asyncio
import sys
from pathlib import Path
from typing import NoReturn, Optional

import click
from loguru import logger
from pydantic import ValidationError

from ufile import __version__
from ufile.core.config import Settings
from ufile.core.errors import ConfigurationError, UFileError
from ufile.storage.aio import AsyncUFileClient
from ufile.storage.client import UFileClient
from ufile.storage.multipart import DEFAULT_PART_SIZE


def _fail(message: str) -> NoReturn:
    logger.error(message)
    sys.exit(1)


def _load_settings() -> Settings:
    """Load settings, configure logging and check the client config."""
    try:
        settings = Settings()
    except ValidationError as e:
        _fail(f"Invalid UFILE_* settings: {e}")
    logger.remove()
    logger.add(sys.stderr, level=settings.log_level)
    try:
        settings.to_client_config()
    except ConfigurationError as e:
        _fail(f"Invalid configuration: {e}")
    return settings


@click.group()
def cli() -> None:
    """UFile object storage client."""
    pass


@cli.command()
@click.argument("method")
@click.argument("key")
@click.option("--content-md5", default="", help="Content-MD5 the request will carry")
@click.option(
    "--content-type",
    default="multipart/form-data",
    show_default=True,
    help="Content-Type the request will carry",
)
def sign(method: str, key: str, content_md5: str, content_type: str) -> None:
    """Print the Authorization header for METHOD on KEY."""
    settings = _load_settings()
    with UFileClient(settings.to_client_config()) as client:
        click.echo(client.get_authorization(method, key, content_md5, content_type))


@cli.command()
@click.argument("key")
def head(key: str) -> None:
    """Show object metadata."""
    settings = _load_settings()
    try:
        with UFileClient(settings.to_client_config()) as client:
            info = client.head_file(key)
    except UFileError as e:
        _fail(f"Error reading {key}: {e}")
    for name, value in sorted(info.headers.items()):
        click.echo(f"{name}: {value}")


@cli.command("need-restore")
@click.argument("key")
def need_restore(key: str) -> None:
    """Report whether KEY must be restored before it can be read."""
    settings = _load_settings()
    try:
        with UFileClient(settings.to_client_config()) as client:
            status = client.restore_status(key)
    except UFileError as e:
        _fail(f"Error reading {key}: {e}")
    click.echo(f"{status.state.value} (needs restore: {'yes' if status.needs_restore else 'no'})")


@cli.command()
@click.argument("key")
@click.option("--wait", is_flag=True, help="Wait until the restore has finished")
@click.option("--interval", type=float, default=None, help="Seconds between polls")
@click.option("--max-retry", type=int, default=None, help="Polls after the first one")
def restore(key: str, wait: bool, interval: Optional[float], max_retry: Optional[int]) -> None:
    """Restore an archived object."""
    settings = _load_settings()
    try:
        with UFileClient(settings.to_client_config()) as client:
            client.restore(key)
            if not wait:
                return
            status = client.wait_for_restore(
                key,
                interval=settings.restore_interval_seconds if interval is None else interval,
                max_retry=settings.restore_max_retry if max_retry is None else max_retry,
            )
    except UFileError as e:
        _fail(f"Error restoring {key}: {e}")
    expiry = f", readable until {status.expiry.isoformat()}" if status.expiry else ""
    click.echo(f"Restore of {key} finished: {status.state.value}{expiry}")


@cli.command()
@click.argument("key")
@click.argument("path", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option(
    "--part-size",
    type=int,
    default=None,
    help="Part size in bytes (default: service suggestion, else 4 MiB)",
)
@click.option("--concurrency", type=int, default=4, show_default=True, help="Parallel part uploads")
@click.option("--new-key", default=None, help="Key to use if KEY is taken when the upload finishes")
def upload(key: str, path: Path, part_size: Optional[int], concurrency: int, new_key: Optional[str]) -> None:
    """Upload PATH to KEY with a multipart upload.

    The upload is aborted if any part fails.
    """
    settings = _load_settings()
    logger.info(f"Uploading {path} to {key}")

    async def run() -> None:
        """Run the upload."""
        async with AsyncUFileClient(settings.to_client_config()) as client:
            session = await client.initiate_multipart_upload(key)
            size = part_size or session.block_size or DEFAULT_PART_SIZE
            try:
                with open(path, "rb") as f:
                    await client.upload_parts(session, f, part_size=size, concurrency=concurrency)
                result = await client.finish_multipart_upload(
                    session.key, session.upload_id, session.parts, new_key=new_key
                )
            except Exception:
                logger.error(f"Upload failed, aborting {session.upload_id}")
                await client.abort_multipart_upload(session.key, session.upload_id)
                raise
            click.echo(f"Uploaded {result.key or session.key} ({len(session.parts)} parts, ETag {result.etag})")

    try:
        asyncio.run(run())
    except UFileError as e:
        _fail(f"Error uploading {path}: {e}")


@cli.command()
@click.argument("key")
@click.argument("path", type=click.Path(dir_okay=False, path_type=Path))
def download(key: str, path: Path) -> None:
    """Stream KEY into the local file PATH."""
    settings = _load_settings()
    try:
        with UFileClient(settings.to_client_config()) as client:
            written = client.download_file(key, path)
    except UFileError as e:
        _fail(f"Error downloading {key}: {e}")
    click.echo(f"Downloaded {key} to {path} ({written} bytes)")


@cli.command("list-uploads")
@click.option("--prefix", default=None, help="Only uploads whose key starts with this prefix")
@click.option("--marker", default=None, help="Cursor returned by a previous page")
@click.option("--limit", type=int, default=20, show_default=True, help="Page size")
def list_uploads(prefix: Optional[str], marker: Optional[str], limit: int) -> None:
    """List multipart uploads that are still in progress."""
    settings = _load_settings()
    try:
        with UFileClient(settings.to_client_config()) as client:
            listing = client.list_multipart_uploads(prefix=prefix, marker=marker, limit=limit)
    except UFileError as e:
        _fail(f"Error listing uploads: {e}")
    for item in listing.uploads:
        click.echo(f"{item.upload_id}\t{item.file_name}")
    if listing.next_marker:
        click.echo(f"next marker: {listing.next_marker}")


@cli.command()
@click.argument("key")
@click.argument("upload_id")
def abort(key: str, upload_id: str) -> None:
    """Abort an in-progress multipart upload."""
    settings = _load_settings()
    try:
        with UFileClient(settings.to_client_config()) as client:
            client.abort_multipart_upload(key, upload_id)
    except UFileError as e:
        _fail(f"Error aborting {upload_id}: {e}")


@cli.command()
def version() -> None:
    """Show version information."""
    print(f"UFile SDK v{__version__}")


if __name__ == "__main__":
    cli()
