"""Command line interface for chr."""

import logging
from dataclasses import replace
from datetime import datetime
from pathlib import Path
from typing import Annotated, NoReturn, Optional

import typer
from rich import print
from rich.console import Console
from rich.logging import RichHandler
from rich.markup import escape
from rich.panel import Panel

from chrpick import __version__
from chrpick.config import ConfigError, NamingScheme, describe, get_config_path, load_config, save_config, validate
from chrpick.git import GitError, GitRepo
from chrpick.picker import (
    DEFAULT_COUNT,
    LATEST_HISTORY_DEPTH,
    ApplyConflict,
    DateWindow,
    PickError,
    apply_selection,
    format_selection,
    resolve_branches,
    select_commits,
)

app = typer.Typer(help="Manage ticket branches and cherry-pick commits from production to homologation")
console = Console()
DATE_FORMAT = "%Y-%m-%d"


def setup_logging(debug: bool) -> None:
    """Send log records to stderr through rich."""
    logging.basicConfig(
        level=logging.DEBUG if debug else logging.WARNING,
        format="%(message)s",
        handlers=[RichHandler(console=Console(stderr=True), show_time=False, show_path=debug)],
        force=True,
    )


def version_callback(value: bool) -> None:
    if value:
        print(f"chr version {__version__}")
        raise typer.Exit()


def get_repo(path: Path) -> GitRepo:
    """Get git repository instance."""
    try:
        return GitRepo(path)
    except GitError as err:
        print(f"[red]Error:[/red] {escape(str(err))}")
        raise typer.Exit(code=1) from err


def colors_enabled(ctx: typer.Context, scheme: NamingScheme) -> bool:
    """Apply the --no-color switch and the configured color setting to the console."""
    enabled = scheme.color and not ctx.obj["no_color"]
    console.no_color = not enabled
    return enabled


def fail(err: Exception) -> NoReturn:
    print(f"[red]Error:[/red] {escape(str(err))}")
    raise typer.Exit(code=1) from err


@app.callback()
def main(
    ctx: typer.Context,
    version: bool = typer.Option(
        False, "--version", "-v", callback=version_callback, is_eager=True, help="Show version information"
    ),
    debug: bool = typer.Option(
        False, "--debug", "-d", help="Verbose output. `start` also skips the uncommitted changes check"
    ),
    no_color: bool = typer.Option(False, "--no-color", help="Disable colored output"),
) -> None:
    """Manage ticket branches and cherry-pick commits from production to homologation."""
    setup_logging(debug)
    ctx.obj = {"debug": debug, "no_color": no_color}


def date_window(today: bool, yesterday: bool, since: Optional[datetime], until: Optional[datetime]) -> Optional[DateWindow]:
    """Turn the date options of `pick` into a window, or None when none was given."""
    if today + yesterday + (since is not None or until is not None) > 1:
        raise typer.BadParameter("use only one of --today, --yesterday or --since/--until")
    if today:
        return DateWindow.today()
    if yesterday:
        return DateWindow.yesterday()
    if since is None and until is None:
        return None
    window = DateWindow(since=since.date() if since else None, until=until.date() if until else None)
    if window.since and window.until and window.since > window.until:
        raise typer.BadParameter(f"--since {window.since} is after --until {window.until}")
    return window


@app.command()
def pick(
    ctx: typer.Context,
    count: int = typer.Option(DEFAULT_COUNT, "--count", "-c", min=1, help="Number of commits to list"),
    latest: bool = typer.Option(
        False,
        "--latest",
        "-l",
        help=f"Only your commits, searching the last {LATEST_HISTORY_DEPTH} commits of the production branch",
    ),
    today: bool = typer.Option(False, "--today", help="Only commits authored today"),
    yesterday: bool = typer.Option(False, "--yesterday", help="Only commits authored yesterday"),
    since: Optional[datetime] = typer.Option(
        None, "--since", formats=[DATE_FORMAT], help="Only commits authored on or after this date (YYYY-MM-DD)"
    ),
    until: Optional[datetime] = typer.Option(
        None, "--until", formats=[DATE_FORMAT], help="Only commits authored on or before this date (YYYY-MM-DD)"
    ),
    show: bool = typer.Option(False, "--show", "-s", help="Only list the commits, never cherry-pick"),
    path: Annotated[Path, typer.Option(help="Path to git repository")] = Path("."),
) -> None:
    """List production commits missing from homologation and cherry-pick them onto the current branch.

    Commits whose changes homologation already has, for example from an
    earlier pick, are not listed. Date filters search the same history depth
    as --latest.
    """
    window = date_window(today, yesterday, since, until)
    scheme = load_config()
    color = colors_enabled(ctx, scheme)
    repo = get_repo(path)

    try:
        current = repo.get_current_branch_name()
        pair = resolve_branches(repo, current, scheme)
        current_user = repo.get_current_user()
        author = current_user if latest else None
        limit = LATEST_HISTORY_DEPTH if latest or window is not None else count
        selection = select_commits(repo, pair, limit, author=author, window=window)
    except (PickError, GitError) as err:
        fail(err)

    console.print(f"Current branch: [cyan]{escape(current)}[/cyan]")
    console.print(f"PRD branch: [cyan]{escape(pair.production)}[/cyan]")
    console.print(f"HML branch: [cyan]{escape(pair.homologation)}[/cyan]")

    if not selection:
        if latest or window is not None:
            scope = "for this user" if latest else ""
            if window is not None:
                scope = f"{scope} {window.describe()}".strip()
            console.print(
                f"\n[yellow]No commits {scope} between {escape(pair.production)} and {escape(pair.homologation)}.[/yellow]"
            )
        else:
            console.print("\n[yellow]No commits between these branches.[/yellow]")
        return

    console.print(f"\nFound {len(selection.commits)} commit(s) in {escape(pair.production)} missing from {escape(pair.homologation)}:")
    for line in format_selection(selection, current_user, color):
        console.print(line, highlight=False)

    if show:
        return

    console.print()
    try:
        confirm = input(f"Cherry-pick these commits onto {current}? [y/N] ")
    except EOFError:
        confirm = ""
    if confirm.lower() != "y":
        console.print("\n[yellow]Operation cancelled[/yellow]")
        return

    try:
        picked = apply_selection(repo, selection)
    except ApplyConflict as err:
        console.print(f"\n[yellow]{escape(str(err))}[/yellow]")
        raise typer.Exit(code=1) from err
    except GitError as err:
        fail(err)

    console.print(
        Panel(
            f"[green]Cherry-picked {len(picked)} commit(s) onto {escape(current)}[/green]",
            style="green",
            padding=(0, 2),
            expand=False,
        )
    )


@app.command()
def start(
    ctx: typer.Context,
    card: Optional[int] = typer.Option(None, "--card", min=0, help="Card number, prompted for when omitted"),
    mainline: str = typer.Option("main", help="Branch the new card branch starts from"),
    path: Annotated[Path, typer.Option(help="Path to git repository")] = Path("."),
) -> None:
    """Start a new card branch named <prefix><card><suffix_prd> off an updated mainline."""
    scheme = load_config()
    colors_enabled(ctx, scheme)
    repo = get_repo(path)

    try:
        if not ctx.obj["debug"] and repo.has_uncommitted_changes():
            console.print("[yellow]You have uncommitted changes. Please commit them before starting a new card[/yellow]")
            raise typer.Exit(code=1)

        while card is None or card < 0:
            card = typer.prompt("Card number?", type=int)

        branch = scheme.production(str(card))
        repo.create_ticket_branch(branch, mainline)
    except GitError as err:
        fail(err)

    console.print(f"[green]Switched to a new branch[/green] [cyan]{escape(branch)}[/cyan]")


@app.command()
def config(
    ctx: typer.Context,
    show: bool = typer.Option(False, "--show", help="Print the current configuration"),
    set_key: Optional[str] = typer.Option(None, "--set-key", help="Configuration key to set"),
    set_value: Optional[str] = typer.Option(None, "--set-value", help="Value for --set-key"),
) -> None:
    """Configure the branch prefix and suffixes. Prompts for them when run without options."""
    # --show reports the effective scheme; edits start from the file so CHR_* overrides are never saved
    scheme = load_config(env=show)
    colors_enabled(ctx, scheme)

    if show:
        console.print(f"[dim]{escape(str(get_config_path()))}[/dim]")
        console.print(escape(describe(scheme)), highlight=False)
        return

    try:
        if set_key is not None or set_value is not None:
            if set_key is None or set_value is None:
                raise ConfigError("both --set-key and --set-value must be provided together")
            scheme = replace(scheme, **{set_key: validate(set_key, set_value)})
        else:
            scheme = replace(
                scheme,
                prefix=validate("prefix", typer.prompt("Branch prefix", default=scheme.prefix)),
                suffix_prd=validate("suffix_prd", typer.prompt("Production suffix", default=scheme.suffix_prd)),
                suffix_hml=validate("suffix_hml", typer.prompt("Homologation suffix", default=scheme.suffix_hml)),
            )
    except ConfigError as err:
        fail(err)

    saved = save_config(scheme)
    console.print(f"[green]Configuration saved to[/green] {escape(str(saved))}")
    console.print(escape(describe(scheme)), highlight=False)


if __name__ == "__main__":
    app()
