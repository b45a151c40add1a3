"""CLI entry point for postman-sync."""

from pathlib import Path

import click
from dotenv import load_dotenv

from postman_sync.collection.discovery import discover_collections, relative_key
from postman_sync.config import API_KEY_ENV, BASE_URL_ENV, WORKSPACE_ENV, load_config, resolve_paths
from postman_sync.errors import ConfigError, FilesystemError
from postman_sync.mapping.store import MappingStore
from postman_sync.sync.engine import SyncEngine, SyncFailure, SyncResult

EXIT_FAILURE = 1
EXIT_CONFIG_ERROR = 2
EXIT_FILESYSTEM_ERROR = 3


def _path_options(f):
    f = click.option("--map-file", type=click.Path(path_type=Path), default=None, help="Mapping document (default: <root>/postman-map.json).")(f)
    f = click.option("--services-dir", type=click.Path(path_type=Path), default=None, help="Directory searched for collections (default: <root>/services).")(f)
    f = click.option("--root", type=click.Path(file_okay=False, path_type=Path), default=None, help="Project root; mapping keys are relative to it (default: cwd).")(f)
    return f


def _echo_result(result: SyncResult) -> None:
    if isinstance(result, SyncFailure):
        click.secho(f"-> {result.file} ... ERROR: {result.error}", fg="red", err=True)
    else:
        click.echo(f"-> {result.file} ... {result.action} uid={result.uid}")


@click.group()
@click.option("--env-file", type=click.Path(exists=True, dir_okay=False, path_type=Path), default=None, help="Load environment variables from a dotenv file.")
def main(env_file: Path | None):
    """postman-sync: push local Postman collections to Postman Cloud."""
    if env_file:
        # Variables already set in the environment take precedence.
        load_dotenv(env_file, override=False)


@main.command()
@_path_options
@click.option("--api-key", envvar=API_KEY_ENV, default=None, help=f"Postman API key [env: {API_KEY_ENV}].")
@click.option("--workspace", envvar=WORKSPACE_ENV, default=None, help=f"Workspace for newly created collections [env: {WORKSPACE_ENV}].")
@click.option("--base-url", envvar=BASE_URL_ENV, default=None, help=f"Postman API base URL [env: {BASE_URL_ENV}].")
@click.option("--timeout", type=float, default=None, help="Per-request timeout in seconds (default: none).")
@click.pass_context
def sync(
    ctx: click.Context,
    root: Path | None,
    services_dir: Path | None,
    map_file: Path | None,
    api_key: str | None,
    workspace: str | None,
    base_url: str | None,
    timeout: float | None,
):
    """Create or update every *.postman_collection.json under the services directory."""
    try:
        config = load_config(
            api_key,
            workspace_id=workspace,
            base_url=base_url,
            root=root,
            services_dir=services_dir,
            map_file=map_file,
            timeout=timeout,
        )
    except ConfigError as e:
        click.secho(str(e), fg="red", err=True)
        ctx.exit(EXIT_CONFIG_ERROR)

    engine = SyncEngine(config)
    try:
        report = engine.run(on_result=_echo_result)
    except FilesystemError as e:
        click.secho(f"ERROR: {e}", fg="red", err=True)
        ctx.exit(EXIT_FILESYSTEM_ERROR)

    for key in report.pruned:
        click.echo(f"   pruned {key}")

    map_name = config.map_path.name
    if report.persisted:
        click.echo(f"\nUpdated {map_name} with new/changed UIDs.")
    else:
        click.echo(f"\n{map_name} already up to date.")

    if not report.ok:
        click.secho(f"{len(report.failures)} of {len(report.results)} collections failed.", fg="red", err=True)
        ctx.exit(EXIT_FAILURE)


@main.command()
@_path_options
@click.pass_context
def status(ctx: click.Context, root: Path | None, services_dir: Path | None, map_file: Path | None):
    """Show which collections are tracked, new, or stale. Makes no network calls."""
    root_dir, services, mapping = resolve_paths(root, services_dir, map_file)

    store = MappingStore(mapping)
    store.load()
    try:
        files = discover_collections(services)
    except FilesystemError as e:
        click.secho(f"ERROR: {e}", fg="red", err=True)
        ctx.exit(EXIT_FILESYSTEM_ERROR)

    keys = [relative_key(f, root_dir) for f in files]
    for key in keys:
        entry = store.get(key)
        click.echo(f"{key}  {entry.uid or '(new)'}")

    for key in sorted(set(store.keys()) - set(keys)):
        click.echo(f"{key}  (stale)")

    click.echo(f"\n{len(keys)} collections found, {len(store)} tracked in {mapping.name}.")
