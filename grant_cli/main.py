from __future__ import annotations

import json
import logging
from typing import NoReturn, Optional

import typer
from rich.console import Console
from rich.logging import RichHandler

from grant import get_version
from grant.builder import AddFavoriteFlags, FavoriteBuilder
from grant.cache import CacheStore, CachedEligibilityLister
from grant.config import API_TIMEOUT_SECONDS, get_cache_dir, parse_cache_ttl
from grant.context import CallContext
from grant.eligibility import EligibilityAggregator
from grant.errors import GrantError, NetworkFailure, NoEligibleTargets
from grant.favorites import FavoriteStore
from grant.models import Config
from grant.prompts import RichItemChooser, RichNamePrompter
from grant.sca_client import ScaAccessClient
from grant.selection import CloudSelection, GroupSelection, UnifiedSelector, build_options

logger = logging.getLogger("grant.cli")

app = typer.Typer(help="Request temporary elevated cloud access and manage favorites")
favorites_app = typer.Typer(
    help="Manage saved elevation favorites.\n\n"
    "Workflow: 'grant favorites add' to select a target and save it, "
    "'grant favorites list' to see saved favorites."
)
app.add_typer(favorites_app, name="favorites")


# --- wiring ---


def make_aggregator(config: Config, refresh: bool = False) -> EligibilityAggregator:
    """Production eligibility stack: HTTP client behind the on-disk cache."""
    client = ScaAccessClient()
    cache = CacheStore(get_cache_dir(), parse_cache_ttl(config.cache_ttl))
    lister = CachedEligibilityLister(client, client, cache, refresh=refresh)
    return EligibilityAggregator(lister, lister)


def make_chooser() -> RichItemChooser:
    return RichItemChooser()


def make_prompter() -> RichNamePrompter:
    return RichNamePrompter()


def _configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(name)s: %(message)s",
        handlers=[RichHandler(console=Console(stderr=True), show_path=False)],
        force=True,
    )


def _fail(error: GrantError) -> NoReturn:
    typer.secho(f"Error: {error.message}", fg=typer.colors.RED, err=True)
    raise typer.Exit(code=1)


# --- root ---


@app.callback(invoke_without_command=True)
def root(
    ctx: typer.Context,
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Log progress to stderr"),
):
    """Top-level CLI. Shows help when no subcommand is given."""
    _configure_logging(verbose)
    if ctx.invoked_subcommand is None:
        typer.echo(ctx.get_help())
        raise typer.Exit()


@app.command()
def version():
    """Print package version."""
    typer.echo(get_version())


@app.command("list")
def list_targets(
    provider: Optional[str] = typer.Option(
        None, "--provider", "-p", help="Cloud provider: azure, aws (omit to show all)"
    ),
    groups_only: bool = typer.Option(False, "--groups", help="Only list directory groups"),
    refresh: bool = typer.Option(False, "--refresh", help="Bypass the eligibility cache"),
    json_output: bool = typer.Option(False, "--json", help="Output as JSON"),
):
    """
    List eligible cloud targets and directory groups

    Example:
        grant list
        grant list --provider aws
        grant list --groups --json
    """
    try:
        aggregator = make_aggregator(FavoriteStore().load(), refresh=refresh)
        ctx = CallContext.with_timeout(API_TIMEOUT_SECONDS)

        cloud_targets = []
        if not groups_only:
            try:
                cloud_targets = aggregator.fetch_cloud_targets(ctx, provider).targets
            except NetworkFailure as e:
                logger.info("cloud eligibility fetch failed: %s", e)

        groups = []
        if not provider:
            try:
                groups = aggregator.fetch_group_targets(
                    ctx, cloud_pool=cloud_targets if not groups_only else None
                )
            except NetworkFailure as e:
                logger.info("groups eligibility fetch failed: %s", e)

        if not cloud_targets and not groups:
            raise NoEligibleTargets("no eligible targets or groups found, check your access policies")
    except GrantError as e:
        _fail(e)

    if json_output:
        payload = {
            "cloud": [t.model_dump(exclude_none=True) for t in cloud_targets],
            "groups": [g.model_dump() | {"directory_name": g.directory_name} for g in groups],
        }
        typer.echo(json.dumps(payload, ensure_ascii=False, indent=2))
        return

    items = [CloudSelection(t) for t in cloud_targets] + [GroupSelection(g) for g in groups]
    labels, _ = build_options(items)
    for label in labels:
        typer.echo(label)


# --- favorites ---


@favorites_app.command("add")
def favorites_add(
    name: Optional[str] = typer.Argument(None, help="Favorite name (prompted for when omitted)"),
    provider: Optional[str] = typer.Option(
        None, "--provider", "-p", help="Cloud provider: azure, aws (omit to show all)"
    ),
    target: Optional[str] = typer.Option(
        None, "--target", "-t", help="Target name (subscription, resource group, etc.)"
    ),
    role: Optional[str] = typer.Option(None, "--role", "-r", help="Role name"),
    fav_type: Optional[str] = typer.Option(
        None, "--type", help="Favorite type: cloud, groups (default: cloud)"
    ),
    group: Optional[str] = typer.Option(None, "--group", "-g", help="Group name (for --type groups)"),
    refresh: bool = typer.Option(False, "--refresh", help="Bypass the eligibility cache"),
):
    """
    Add a new favorite

    Select from eligible targets interactively, or pass --target and --role
    (or --type groups --group) to save one directly.

    Example:
        grant favorites add
        grant favorites add prod-admin
        grant favorites add prod-admin --target "Prod-EastUS" --role "Contributor"
        grant favorites add eng --type groups --group "Engineering"
    """
    flags = AddFavoriteFlags(
        provider=provider or "",
        target=target or "",
        role=role or "",
        type=fav_type or "",
        group=group or "",
    )
    store = FavoriteStore()
    try:
        builder = FavoriteBuilder(
            store,
            aggregator=make_aggregator(store.load(), refresh=refresh),
            selector=UnifiedSelector(make_chooser()),
            prompter=make_prompter(),
        )
        added = builder.add_favorite(name, flags)
    except GrantError as e:
        _fail(e)

    typer.echo(added.describe())


@favorites_app.command("list")
def favorites_list(json_output: bool = typer.Option(False, "--json", help="Output as JSON")):
    """
    List all favorites

    Example:
        grant favorites list
    """
    try:
        favorites = FavoriteBuilder(FavoriteStore()).list_favorites()
    except GrantError as e:
        _fail(e)

    if json_output:
        output = [{"name": name, **fav.to_dict()} for name, fav in favorites]
        typer.echo(json.dumps(output, ensure_ascii=False, indent=2))
        return

    if not favorites:
        typer.echo("No favorites saved. Run 'grant favorites add' to create one.")
        return

    for name, fav in favorites:
        typer.echo(f"{name}: {fav.summary()}")


@favorites_app.command("show")
def favorites_show(name: str = typer.Argument(..., help="Favorite name")):
    """
    Show full details of a favorite

    Example:
        grant favorites show prod-admin
    """
    from rich.panel import Panel

    store = FavoriteStore()
    try:
        fav = store.get(store.load(), name)
    except GrantError as e:
        _fail(e)

    if fav.is_group:
        info = f"""[bold]Type:[/bold] groups
[bold]Provider:[/bold] {fav.provider}
[bold]Group:[/bold] {fav.group}
[bold]Directory ID:[/bold] {fav.directory_id or '-'}"""
    else:
        info = f"""[bold]Type:[/bold] cloud
[bold]Provider:[/bold] {fav.provider}
[bold]Target:[/bold] {fav.target}
[bold]Role:[/bold] {fav.role}"""

    Console().print(Panel(info, title=f"[bold cyan]Favorite: {name}[/bold cyan]", border_style="cyan"))


@favorites_app.command("remove")
def favorites_remove(name: str = typer.Argument(..., help="Favorite name to remove")):
    """
    Remove a favorite

    Example:
        grant favorites remove prod-admin
    """
    try:
        FavoriteBuilder(FavoriteStore()).remove_favorite(name)
    except GrantError as e:
        _fail(e)

    typer.echo(f'Removed favorite "{name}"')


def main() -> None:
    app()


if __name__ == "__main__":  # pragma: no cover
    main()
