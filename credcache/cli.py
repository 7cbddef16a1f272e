"""credcache CLI - inspect and manage the local credential cache."""

import logging
import sys
from typing import NoReturn, Optional

import click
from rich.console import Console
from rich.logging import RichHandler

from .cache import CredentialCache
from .clock import Clock, epoch_seconds, system_clock
from .config import ConfigManager
from .errors import CacheError
from .ui import console, mask_token, render_error, render_header, render_status_table, render_success


class CredcacheApp:
    """Host wiring: one config and one lazily opened cache per process."""

    def __init__(
        self,
        config_path: Optional[str] = None,
        root: Optional[str] = None,
        clock: Clock = system_clock,
    ):
        self.config = ConfigManager(config_path)
        self._root_override = root
        self._clock = clock
        self._cache: Optional[CredentialCache] = None

    @property
    def storage_root(self):
        return self.config.get_storage_root(self._root_override)

    @property
    def cache(self) -> CredentialCache:
        """Open the cache on first use. Raises StorageUnavailable."""
        if self._cache is None:
            self._cache = CredentialCache.initialize(self.storage_root, clock=self._clock)
        return self._cache

    def now(self) -> int:
        return epoch_seconds(self._clock)


def configure_logging(level: int) -> None:
    """Route credcache log records to stderr through rich."""
    logger = logging.getLogger("credcache")
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
    handler = RichHandler(console=Console(stderr=True), show_path=False, show_time=False)
    handler.setFormatter(logging.Formatter("%(message)s"))
    logger.addHandler(handler)
    logger.setLevel(level)
    logger.propagate = False


def _fail(error: Exception) -> NoReturn:
    render_error(str(error))
    sys.exit(1)


@click.group()
@click.option("--config", "config_path", type=click.Path(dir_okay=False), help="Config file path")
@click.option("--root", type=click.Path(file_okay=False), help="Override the storage directory")
@click.option("--verbose", "-v", is_flag=True, help="Enable debug logging")
@click.pass_context
def cli(ctx, config_path, root, verbose):
    """credcache - local credential cache.

    Store a short-lived token pair with the signed-in user's identity and
    permissions, then inspect or clear it.
    """
    if ctx.obj is None:
        ctx.obj = CredcacheApp(config_path=config_path, root=root)
    app = ctx.obj
    configure_logging(logging.DEBUG if verbose else app.config.get_log_level())


@cli.command()
@click.argument("token")
@click.argument("refresh_token")
@click.option("--user-id", "-u", required=True, help="Subject id of the signed-in user")
@click.option("--username", "-n", required=True, help="Display name of the signed-in user")
@click.option("--permission", "-p", "permissions", multiple=True, help="Permission tag (repeatable)")
@click.pass_obj
def store(app, token, refresh_token, user_id, username, permissions):
    """Cache a token pair for 30 minutes."""
    try:
        app.cache.store(token, refresh_token, user_id, username, list(permissions))
    except ValueError as e:
        raise click.BadParameter(str(e), param_hint="--user-id")
    except CacheError as e:
        _fail(e)
    render_success(f"Stored credential for {username} ({user_id})")


@cli.command()
@click.option("--reveal", is_flag=True, help="Print the raw token values")
@click.pass_obj
def token(app, reveal):
    """Show the cached token pair, read from disk."""
    try:
        pair = app.cache.retrieve()
    except CacheError as e:
        _fail(e)
    if pair is None:
        console.print("No cached credential.", style="dim")
        sys.exit(1)

    access, refresh = pair
    if reveal:
        click.echo(access)
        click.echo(refresh)
        return
    console.print(f"access   {mask_token(access)}", markup=False)
    console.print(f"refresh  {mask_token(refresh)}", markup=False)


@cli.command()
@click.pass_obj
def clear(app):
    """Remove the cached credential."""
    try:
        app.cache.clear()
    except CacheError as e:
        _fail(e)
    render_success("Credential cache cleared")


@cli.command()
@click.pass_obj
def status(app):
    """Show whether a valid credential is cached."""
    try:
        cache = app.cache
        authenticated = cache.is_authenticated()
        state = cache.get_state()
        now = app.now()
    except CacheError as e:
        _fail(e)
    render_header("credcache", "local credential cache")
    render_status_table(state, authenticated, token_path=str(cache.path), now=now)


@cli.command()
@click.pass_obj
def whoami(app):
    """Print the signed-in user id and name."""
    try:
        user = app.cache.get_current_user()
    except CacheError as e:
        _fail(e)
    if user is None:
        console.print("Not signed in.", style="dim")
        sys.exit(1)
    user_id, username = user
    click.echo(f"{user_id}\t{username}")


@cli.command()
@click.pass_obj
def permissions(app):
    """List the cached permission tags, one per line."""
    try:
        granted = app.cache.get_permissions()
    except CacheError as e:
        _fail(e)
    for tag in granted:
        click.echo(tag)


@cli.command()
@click.argument("required", nargs=-1, required=True)
@click.option("--any", "match_any", is_flag=True, help="Succeed if any one permission is granted")
@click.pass_obj
def check(app, required, match_any):
    """Exit 0 if the cached credential grants REQUIRED permissions."""
    try:
        cache = app.cache
        if match_any:
            allowed = cache.has_any_permission(required)
        else:
            allowed = cache.has_all_permissions(required)
    except CacheError as e:
        _fail(e)
    if not allowed:
        render_error(f"Permission denied: {', '.join(required)}")
        sys.exit(1)
    render_success("Permission granted")


@cli.command(name="sync-permissions")
@click.option("--permission", "-p", "permissions", multiple=True, help="Permission tag (repeatable)")
@click.pass_obj
def sync_permissions(app, permissions):
    """Replace the cached permission list, keeping the tokens."""
    try:
        updated = app.cache.sync_permissions(list(permissions))
    except CacheError as e:
        _fail(e)
    if not updated:
        render_error("No cached credential to update")
        sys.exit(1)
    render_success(f"Synced {len(permissions)} permission(s)")


@cli.command()
@click.option("--set-root", "new_root", help="Persist a storage directory ('' restores the default)")
@click.pass_obj
def config(app, new_root):
    """Show configuration."""
    try:
        if new_root is not None:
            app.config.set_storage_root(new_root)
        root = app.storage_root
    except (OSError, CacheError) as e:
        _fail(e)
    click.echo(f"Config file: {app.config.config_path}")
    click.echo(f"Storage root: {root}")


if __name__ == "__main__":
    cli()
