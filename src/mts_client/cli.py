"""
Command-line interface for the MTS client.
"""

import json
import tempfile
import time
from contextlib import contextmanager
from typing import Any, BinaryIO, Callable, Iterator

import click
from loguru import logger

from mts_client import __version__
from mts_client.client import Client
from mts_client.config import ENV_ACCESS_TOKEN, ENV_LOG_LEVEL, ENV_USERNAME, Settings
from mts_client.errors import MTSError, ValidationError
from mts_client.jobs import JobStatus, PublishJob, PublishJobStage
from mts_client.logging import setup_logging
from mts_client.recipe import build_recipe
from mts_client.sources import is_line_delimited, write_feature_lines


class CustomGroup(click.Group):
    """Custom group with an examples section in its help."""

    def format_help(self, ctx: click.Context, formatter: click.HelpFormatter) -> None:
        """Write the help into the formatter with additional info."""
        self.format_usage(ctx, formatter)
        self.format_help_text(ctx, formatter)
        self.format_options(ctx, formatter)
        self.format_commands(ctx, formatter)

        formatter.write_paragraph()
        with formatter.section("Examples"):
            formatter.write_text('mts upload data.geojson -i my-tileset -n "My Tileset" --wait')
            formatter.write_text("mts upload-source my-source features.ldgeojson")
            formatter.write_text("mts publish my-tileset --wait")
            formatter.write_text("mts status my-tileset JOB_ID")


def credential_options(func: Callable[..., Any]) -> Callable[..., Any]:
    """Add ``--token`` and ``--username`` options read from the environment."""
    func = click.option(
        "--username", envvar=ENV_USERNAME, help=f"Mapbox username [env: {ENV_USERNAME}]"
    )(func)
    func = click.option(
        "--token", envvar=ENV_ACCESS_TOKEN, help=f"Mapbox access token [env: {ENV_ACCESS_TOKEN}]"
    )(func)
    return func


def make_client(token: str | None, username: str | None) -> Client:
    """Build a client from CLI credentials and environment settings."""
    if not token:
        raise click.UsageError(
            f"Mapbox access token required. Set {ENV_ACCESS_TOKEN} or pass --token."
        )
    if not username:
        raise click.UsageError(f"Mapbox username required. Set {ENV_USERNAME} or pass --username.")
    try:
        settings = Settings.from_env()
        return Client(token, username, base_url=settings.base_url, timeout=settings.timeout)
    except ValidationError as e:
        raise click.ClickException(str(e))


def load_recipe(path: str) -> dict[str, Any]:
    """Load a recipe JSON file."""
    try:
        with open(path, encoding="utf-8") as f:
            recipe = json.load(f)
    except (OSError, ValueError) as e:
        raise click.ClickException(f"Cannot read recipe {path}: {e}")
    if not isinstance(recipe, dict):
        raise click.ClickException(f"Recipe {path} must contain a JSON object")
    return recipe


@contextmanager
def open_source(file_path: str) -> Iterator[BinaryIO]:
    """
    Open a GeoJSON file as a line-delimited binary stream.

    Line-delimited files are streamed as they are; any other GeoJSON is
    converted to one feature per line in a temporary file first.
    """
    if is_line_delimited(file_path):
        with open(file_path, "rb") as f:
            yield f
        return

    with open(file_path, encoding="utf-8") as f:
        geojson = json.load(f)

    with tempfile.TemporaryFile(suffix=".ldgeojson") as tmp:
        count = write_feature_lines(geojson, tmp)
        logger.debug(f"Converted {file_path} to {count} line-delimited features")
        tmp.seek(0)
        yield tmp


def wait_for_job(job: PublishJob, interval: float, timeout: float) -> JobStatus | None:
    """Poll ``job`` until it finishes; return ``None`` on timeout."""
    start_time = time.monotonic()
    last_stage: PublishJobStage | None = None

    while time.monotonic() - start_time < timeout:
        status = job.poll()
        if status.stage != last_stage:
            click.echo(f"   Stage: {status.stage.value}")
            last_stage = status.stage
        if status.done:
            return status
        time.sleep(interval)

    return None


def echo_status(status: JobStatus) -> None:
    click.echo(f"   Job: {status.id}")
    click.echo(f"   Tileset: {status.tileset_id}")
    click.echo(f"   Stage: {status.stage.value}")
    if status.created_nice:
        click.echo(f"   Created: {status.created_nice}")
    for error in status.errors:
        click.echo(f"   ❌ {error}")
    for warning in status.warnings:
        click.echo(f"   ⚠️  {warning}")
    for layer, stats in status.layer_stats.items():
        click.echo(f"   Layer {layer}: {json.dumps(stats)}")


def finish_publish(job: PublishJob, wait: bool, interval: float, timeout: float) -> None:
    """Report a publish job and optionally wait for it."""
    if not job.job_id:
        click.echo("\n⚠️  Publish started but the API returned no job id")
        return

    click.echo(f"   Job ID: {job.job_id}")
    if not wait:
        return

    status = wait_for_job(job, interval, timeout)
    if status is None:
        raise click.ClickException(f"Timed out after {timeout:g}s waiting for job {job.job_id}")
    if status.stage == PublishJobStage.FAILED:
        echo_status(status)
        raise click.ClickException(f"Job {job.job_id} failed")
    click.echo(f"\n✅ Published {job.tileset}")
    click.echo(f"   View at: https://studio.mapbox.com/tilesets/{job.tileset}/")


wait_options = [
    click.option("--wait", is_flag=True, help="Wait for the publish job to finish"),
    click.option("--interval", default=10.0, type=float, help="Seconds between status checks"),
    click.option("--timeout", default=600.0, type=float, help="Maximum seconds to wait"),
]


def with_wait_options(func: Callable[..., Any]) -> Callable[..., Any]:
    for option in reversed(wait_options):
        func = option(func)
    return func


@click.group(cls=CustomGroup)
@click.version_option(version=__version__, prog_name="mts-client")
@click.option("--verbose", "-v", is_flag=True, help="Log requests (DEBUG level)")
@click.option(
    "--log-level",
    envvar=ENV_LOG_LEVEL,
    default="WARNING",
    show_default=True,
    help=f"Log level [env: {ENV_LOG_LEVEL}]",
)
def main(verbose: bool, log_level: str) -> None:
    """
    MTS client - manage Mapbox tilesets from the command line.

    Upload line-delimited GeoJSON as tileset sources, create or update
    tileset recipes, publish tilesets and check publish jobs.

    \b
    Required environment variables:
      MAPBOX_ACCESS_TOKEN  Your Mapbox access token with tilesets scopes
      MAPBOX_USERNAME      Your Mapbox username
    """
    setup_logging("DEBUG" if verbose else log_level)


@main.command("upload-source")
@click.argument("source_id")
@click.argument("file_path", type=click.Path(exists=True, dir_okay=False))
@credential_options
def upload_source(source_id: str, file_path: str, token: str | None, username: str | None) -> None:
    """
    Create or replace a tileset source from a GeoJSON file.

    \b
    Examples:
      mts upload-source my-source features.ldgeojson
      mts upload-source my-source collection.geojson
    """
    client = make_client(token, username)
    click.echo(f"\n📤 Uploading {file_path} to source {source_id}")

    try:
        with open_source(file_path) as data:
            summary = client.put_tileset_source(source_id, data)
    except (MTSError, OSError, ValueError) as e:
        raise click.ClickException(str(e))

    click.echo(f"\n✅ Source: {summary.id}")
    click.echo(f"   Files: {summary.files}")
    click.echo(f"   File size: {summary.file_size} bytes")
    click.echo(f"   Source size: {summary.source_size} bytes")


@main.command()
@click.argument("tileset")
@click.option("--recipe", "-r", "recipe_path", type=click.Path(exists=True), help="Recipe JSON file")
@click.option("--source-id", "-s", help="Source for a single-layer recipe (defaults to tileset)")
@click.option("--layer", "-l", "layer_name", default="data", help="Layer name in the tileset")
@click.option("--min-zoom", default=0, type=int, help="Minimum zoom level (0-16)")
@click.option("--max-zoom", default=10, type=int, help="Maximum zoom level (0-16)")
@click.option("--name", "-n", help="Human-readable tileset name")
@click.option("--description", "-d", default="", help="Tileset description")
@credential_options
def upsert(
    tileset: str,
    recipe_path: str | None,
    source_id: str | None,
    layer_name: str,
    min_zoom: int,
    max_zoom: int,
    name: str | None,
    description: str,
    token: str | None,
    username: str | None,
) -> None:
    """
    Create a tileset, or update its recipe if it exists.

    \b
    Examples:
      mts upsert my-tileset --source-id my-source --max-zoom 14
      mts upsert my-tileset --recipe recipe.json
    """
    client = make_client(token, username)
    try:
        if recipe_path:
            recipe: Any = load_recipe(recipe_path)
        else:
            recipe = build_recipe(
                client.username,
                source_id or tileset.replace(".", "-"),
                layer_name=layer_name,
                minzoom=min_zoom,
                maxzoom=max_zoom,
            )
        client.upsert_tileset(tileset, recipe, name=name, description=description)
    except MTSError as e:
        raise click.ClickException(str(e))

    click.echo(f"\n✅ Tileset {client.qualify(tileset)} is up to date")


@main.command("update-recipe")
@click.argument("tileset")
@click.argument("recipe_path", type=click.Path(exists=True))
@credential_options
def update_recipe(tileset: str, recipe_path: str, token: str | None, username: str | None) -> None:
    """
    Replace the recipe of an existing tileset.

    \b
    Examples:
      mts update-recipe my-tileset recipe.json
    """
    client = make_client(token, username)
    recipe = load_recipe(recipe_path)
    try:
        client.update_tileset_recipe(tileset, recipe)
    except MTSError as e:
        raise click.ClickException(str(e))

    click.echo(f"\n✅ Updated recipe of {client.qualify(tileset)}")


@main.command()
@click.argument("tileset")
@with_wait_options
@credential_options
def publish(
    tileset: str,
    wait: bool,
    interval: float,
    timeout: float,
    token: str | None,
    username: str | None,
) -> None:
    """
    Publish a tileset.

    \b
    Examples:
      mts publish my-tileset
      mts publish my-tileset --wait --interval 5
    """
    client = make_client(token, username)
    try:
        job = client.publish_tileset(tileset)
        click.echo(f"\n🚀 Publishing {job.tileset}")
        finish_publish(job, wait, interval, timeout)
    except MTSError as e:
        raise click.ClickException(str(e))


@main.command()
@click.argument("tileset")
@click.argument("job_id")
@credential_options
def status(tileset: str, job_id: str, token: str | None, username: str | None) -> None:
    """
    Show the status of a publish job.

    \b
    Examples:
      mts status my-tileset cijywvwcx00002pmgwd3xbvfk
    """
    client = make_client(token, username)
    try:
        job_status = client.get_job_status(tileset, job_id)
    except MTSError as e:
        raise click.ClickException(str(e))

    click.echo("")
    echo_status(job_status)


@main.command()
@click.argument("file_path", type=click.Path(exists=True, dir_okay=False))
@click.option("--id", "-i", "tileset_id", required=True, help="Tileset ID (without username prefix)")
@click.option("--name", "-n", "tileset_name", required=True, help="Human-readable tileset name")
@click.option("--source-id", "-s", help="Source ID (defaults to tileset ID)")
@click.option("--layer", "-l", "layer_name", default="data", help="Layer name in the tileset")
@click.option("--min-zoom", default=0, type=int, help="Minimum zoom level (0-16)")
@click.option("--max-zoom", default=10, type=int, help="Maximum zoom level (0-16)")
@click.option("--description", "-d", default="", help="Tileset description")
@click.option("--recipe", "-r", "recipe_path", type=click.Path(exists=True), help="Custom recipe JSON file")
@with_wait_options
@credential_options
def upload(
    file_path: str,
    tileset_id: str,
    tileset_name: str,
    source_id: str | None,
    layer_name: str,
    min_zoom: int,
    max_zoom: int,
    description: str,
    recipe_path: str | None,
    wait: bool,
    interval: float,
    timeout: float,
    token: str | None,
    username: str | None,
) -> None:
    """
    Upload a GeoJSON file and publish it as a tileset.

    Uploads the file as a tileset source, creates the tileset (or updates its
    recipe) and starts a publish job.

    \b
    Examples:
      mts upload data.geojson -i my-tileset -n "My Tileset"
      mts upload data.ldgeojson -i places -n "Places" --max-zoom 14 --wait
    """
    client = make_client(token, username)
    source_id = source_id or tileset_id.replace(".", "-")
    custom_recipe = load_recipe(recipe_path) if recipe_path else None

    click.echo(f"\n📦 Uploading tileset: {client.qualify(tileset_id)}")
    click.echo(f"   Name: {tileset_name}")
    click.echo(f"   Source: {file_path}")

    try:
        recipe: Any = custom_recipe or build_recipe(
            client.username, source_id, layer_name=layer_name, minzoom=min_zoom, maxzoom=max_zoom
        )
        with open_source(file_path) as data:
            summary = client.put_tileset_source(source_id, data)
        click.echo(f"   Uploaded source: {summary.id} ({summary.file_size} bytes)")

        client.upsert_tileset(tileset_id, recipe, name=tileset_name, description=description)
        click.echo("   Recipe: saved")

        job = client.publish_tileset(tileset_id)
        finish_publish(job, wait, interval, timeout)
    except (MTSError, OSError, ValueError) as e:
        raise click.ClickException(str(e))


@main.command("list-sources")
@credential_options
def list_sources(token: str | None, username: str | None) -> None:
    """
    List all tileset sources for your account.

    \b
    Examples:
      mts list-sources
    """
    client = make_client(token, username)
    try:
        sources = client.list_tileset_sources()
    except MTSError as e:
        raise click.ClickException(str(e))

    if not sources:
        click.echo("\n📂 No tileset sources found.\n")
        return

    click.echo(f"\n📂 Found {len(sources)} tileset source(s):\n")
    for source in sources:
        size = source.get("size", "")
        size_str = f" ({size} bytes)" if size else ""
        click.echo(f"   • {source.get('id', '')}{size_str}")
    click.echo()


@main.command("list-tilesets")
@credential_options
def list_tilesets(token: str | None, username: str | None) -> None:
    """
    List all tilesets for your account.

    \b
    Examples:
      mts list-tilesets
    """
    client = make_client(token, username)
    try:
        tilesets = client.list_tilesets()
    except MTSError as e:
        raise click.ClickException(str(e))

    if not tilesets:
        click.echo("\n🗺️  No tilesets found.\n")
        return

    click.echo(f"\n🗺️  Found {len(tilesets)} tileset(s):\n")
    for tileset in tilesets:
        click.echo(f"   • {tileset.get('name', 'Unnamed')}")
        click.echo(f"      ID: {tileset.get('id', '')}")
    click.echo()


@main.command("delete-source")
@click.argument("source_id")
@click.option("--yes", "-y", is_flag=True, help="Skip confirmation")
@credential_options
def delete_source(source_id: str, yes: bool, token: str | None, username: str | None) -> None:
    """
    Delete a tileset source.

    \b
    Examples:
      mts delete-source my-source-id --yes
    """
    if not yes:
        click.confirm(f"Are you sure you want to delete source '{source_id}'?", abort=True)

    client = make_client(token, username)
    try:
        client.delete_tileset_source(source_id)
    except MTSError as e:
        raise click.ClickException(str(e))

    click.echo(f"\n✅ Deleted source: {source_id}\n")


@main.command("delete-tileset")
@click.argument("tileset_id")
@click.option("--yes", "-y", is_flag=True, help="Skip confirmation")
@credential_options
def delete_tileset(tileset_id: str, yes: bool, token: str | None, username: str | None) -> None:
    """
    Delete a tileset.

    \b
    Examples:
      mts delete-tileset my-tileset --yes
    """
    if not yes:
        click.confirm(f"Are you sure you want to delete tileset '{tileset_id}'?", abort=True)

    client = make_client(token, username)
    try:
        client.delete_tileset(tileset_id)
    except MTSError as e:
        raise click.ClickException(str(e))

    click.echo(f"\n✅ Deleted tileset: {client.qualify(tileset_id)}\n")


@main.command()
def info() -> None:
    """Show configuration help."""
    click.echo(f"""
MTS client v{__version__}

🔧 CONFIGURATION
   export MAPBOX_ACCESS_TOKEN="your-token-here"
   export MAPBOX_USERNAME="your-username"

   Optional:
   MTS_API_BASE_URL   API root (default https://api.mapbox.com)
   MTS_TIMEOUT        Request timeout in seconds
   MTS_LOG_LEVEL      Log level (default WARNING)

   Token scopes required:
   • tilesets:write
   • tilesets:read
   • tilesets:list

📚 COMMANDS
   mts upload          Upload, create/update and publish in one go
   mts upload-source   Create or replace a tileset source
   mts upsert          Create a tileset or update its recipe
   mts update-recipe   Replace a tileset recipe
   mts publish         Publish a tileset
   mts status          Show a publish job
   mts list-*          List sources/tilesets
   mts delete-*        Delete sources/tilesets
""")


if __name__ == "__main__":
    main()
