"""Find production commits missing from homologation and cherry-pick them.

The pipeline for one `chr pick` run is:

1. resolve_branches: derive the production/homologation pair from the current branch
2. select_commits: list commits on production that homologation has not received
3. format_commit: render each commit for the terminal
4. apply_selection: replay the selected range, oldest first, onto the current branch
"""

import datetime
import logging
from dataclasses import dataclass, field
from typing import Optional, Union

from rich.markup import escape

from chrpick.config import NamingScheme
from chrpick.git import GitError, GitRepo

logger = logging.getLogger(__name__)

DEFAULT_COUNT = 5
# How far back `--latest` looks for the user's commits
LATEST_HISTORY_DEPTH = 100


class PickError(Exception):
    """A pick run cannot continue."""


class InvalidBranchFormat(PickError):
    """Current branch does not follow the ticket naming scheme."""

    def __init__(self, branch: str, scheme: NamingScheme) -> None:
        super().__init__(f"Branch '{branch}' does not match the expected pattern '{scheme.pattern}'")
        self.branch = branch


class BranchNotFound(PickError):
    """A derived branch does not exist."""

    def __init__(self, branch: str) -> None:
        super().__init__(f"Branch '{branch}' does not exist")
        self.branch = branch


class ApplyConflict(PickError):
    """git stopped while cherry-picking the selection."""

    def __init__(self, revision_range: str, reason: str) -> None:
        super().__init__(
            f"Cherry-pick of {revision_range} stopped: {reason}\n"
            "Resolve conflicts manually, then run `git cherry-pick --continue` or `git cherry-pick --abort`."
        )
        self.revision_range = revision_range


@dataclass(frozen=True)
class BranchPair:
    production: str
    homologation: str


@dataclass(frozen=True)
class CommitRecord:
    short_hash: str
    author: str
    date: datetime.date
    subject: str


Entry = Union[CommitRecord, str]


@dataclass
class CommitSelection:
    """Log entries, newest first. Plain strings are lines that could not be parsed."""

    entries: list[Entry] = field(default_factory=list)

    @property
    def commits(self) -> list[CommitRecord]:
        return [entry for entry in self.entries if isinstance(entry, CommitRecord)]

    def __bool__(self) -> bool:
        return bool(self.commits)


@dataclass(frozen=True)
class DateWindow:
    """Author dates from since to until, both included. A missing end is open."""

    since: Optional[datetime.date] = None
    until: Optional[datetime.date] = None

    @classmethod
    def day(cls, day: datetime.date) -> "DateWindow":
        return cls(since=day, until=day)

    @classmethod
    def today(cls) -> "DateWindow":
        return cls.day(datetime.date.today())

    @classmethod
    def yesterday(cls) -> "DateWindow":
        return cls.day(datetime.date.today() - datetime.timedelta(days=1))

    def __contains__(self, day: datetime.date) -> bool:
        if self.since is not None and day < self.since:
            return False
        if self.until is not None and day > self.until:
            return False
        return True

    def describe(self) -> str:
        if self.since == self.until and self.since is not None:
            return f"on {self.since.isoformat()}"
        parts = []
        if self.since is not None:
            parts.append(f"since {self.since.isoformat()}")
        if self.until is not None:
            parts.append(f"until {self.until.isoformat()}")
        return " ".join(parts)


def extract_ticket(branch: str, scheme: NamingScheme) -> str:
    """Return the ticket id of a branch such as ZUP-42-prd.

    The prefix is stripped literally, so prefixes containing '-' work. A known
    suffix is stripped next; any other tail is cut at the first '-'.
    """
    if not branch.startswith(scheme.prefix) or len(branch.split("-")) < 2:
        raise InvalidBranchFormat(branch, scheme)

    remainder = branch[len(scheme.prefix) :]
    for suffix in (scheme.suffix_prd, scheme.suffix_hml):
        if suffix and remainder.endswith(suffix) and len(remainder) > len(suffix):
            ticket = remainder[: -len(suffix)]
            break
    else:
        ticket = remainder.split("-", 1)[0]

    if not ticket:
        raise InvalidBranchFormat(branch, scheme)
    return ticket


def resolve_branches(repo: GitRepo, current_branch: str, scheme: NamingScheme) -> BranchPair:
    """Derive the production/homologation pair and check both exist."""
    ticket = extract_ticket(current_branch, scheme)
    pair = BranchPair(production=scheme.production(ticket), homologation=scheme.homologation(ticket))
    logger.debug("Ticket %s -> %s / %s", ticket, pair.production, pair.homologation)

    for branch in (pair.production, pair.homologation):
        if not repo.branch_exists(branch):
            raise BranchNotFound(branch)
    return pair


def parse_log_line(line: str) -> Optional[CommitRecord]:
    """Parse one `%h|%an|%ad|%s` line, or None if a field is missing or the date is not YYYY-MM-DD."""
    parts = line.split("|", 3)
    if len(parts) < 4:
        return None
    short_hash, author, authored, subject = parts
    if not short_hash or not author:
        return None
    try:
        day = datetime.date.fromisoformat(authored)
    except ValueError:
        return None
    return CommitRecord(short_hash=short_hash, author=author, date=day, subject=subject)


def select_commits(
    repo: GitRepo,
    pair: BranchPair,
    limit: int,
    author: Optional[str] = None,
    window: Optional[DateWindow] = None,
) -> CommitSelection:
    """Commits on the production branch that the homologation branch has not received.

    Args:
        repo: Repository to query
        pair: Branches to compare
        limit: Maximum number of log lines to consider
        author: If given, keep only commits whose author name equals it exactly
        window: If given, keep only commits authored inside it
    """
    filtered = author is not None or window is not None
    selection = CommitSelection()
    for line in repo.log_exclusive(pair.homologation, pair.production, limit):
        record = parse_log_line(line)
        if record is None:
            logger.debug("Unparsed log line: %r", line)
            if not filtered:
                selection.entries.append(line)
            continue
        if author is not None and record.author != author:
            continue
        if window is not None and record.date not in window:
            continue
        selection.entries.append(record)
    return selection


def format_commit(record: CommitRecord, current_user: str, color: bool = True) -> str:
    """Render a commit as `<hash> | <author> | <date> | <subject>` in rich markup.

    Own commits are green, everybody else's red.
    """
    authored = record.date.isoformat()
    if not color:
        return escape(f"{record.short_hash} | {record.author} | {authored} | {record.subject}")
    style = "green" if record.author == current_user else "red"
    return (
        f"[yellow]{escape(record.short_hash)}[/yellow] | [{style}]{escape(record.author)}[/{style}] | "
        f"[blue]{authored}[/blue] | {escape(record.subject)}"
    )


def format_selection(selection: CommitSelection, current_user: str, color: bool = True) -> list[str]:
    lines = []
    for entry in selection.entries:
        if isinstance(entry, CommitRecord):
            lines.append(format_commit(entry, current_user, color))
        else:
            lines.append(escape(entry))
    return lines


def pick_range(selection: CommitSelection) -> Optional[str]:
    """Revision range from the oldest to the newest selected commit, both included."""
    commits = selection.commits
    if not commits:
        return None
    newest, oldest = commits[0], commits[-1]
    return f"{oldest.short_hash}^..{newest.short_hash}"


def apply_selection(repo: GitRepo, selection: CommitSelection) -> list[str]:
    """Cherry-pick the selected range onto the current branch, oldest first.

    Returns:
        The commit ids that were replayed, oldest first. Empty if nothing was selected.

    Raises:
        ApplyConflict: If git stops part way. Nothing is rolled back.
    """
    revision_range = pick_range(selection)
    if revision_range is None:
        return []

    commit_ids = repo.list_range(revision_range)
    logger.debug("Cherry-picking %d commit(s) from %s", len(commit_ids), revision_range)
    try:
        repo.cherry_pick_range(revision_range)
    except GitError as err:
        raise ApplyConflict(revision_range, str(err)) from err
    return commit_ids
