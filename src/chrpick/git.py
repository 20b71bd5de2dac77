"""Git repository operations."""

import logging
from pathlib import Path

from git import GitCommandError, InvalidGitRepositoryError, NoSuchPathError, Repo

logger = logging.getLogger(__name__)

# One commit per line: short hash, author name, author date (with --date=short), subject.
# The subject comes last so it may contain "|".
LOG_FORMAT = "%h|%an|%ad|%s"


class GitError(Exception):
    """Git operation error."""


class GitRepo:
    """Git repository operations."""

    def __init__(self, path: Path) -> None:
        """Initialize repository."""
        try:
            self.repo: Repo = Repo(path, search_parent_directories=True)
            if self.repo.bare:
                raise GitError("Cannot operate on bare repository")
        except (GitCommandError, ValueError, InvalidGitRepositoryError, NoSuchPathError) as err:
            raise GitError(f"Failed to open repository: {err}") from err

    def get_current_branch_name(self) -> str:
        """Get current branch name."""
        try:
            try:
                return self.repo.active_branch.name
            except TypeError:
                # Detached HEAD has no branch to derive a ticket from
                return ""
        except (GitCommandError, ValueError) as err:
            raise GitError(f"Failed to get current branch: {err}") from err

    def branch_exists(self, branch_name: str) -> bool:
        """Check whether a reference resolves in this repository."""
        logger.debug("git rev-parse --verify %s", branch_name)
        try:
            self.repo.git.rev_parse("--verify", "--quiet", branch_name)
        except GitCommandError:
            return False
        return True

    def get_current_user(self) -> str:
        """Get the configured git user name."""
        logger.debug("git config user.name")
        try:
            name = self.repo.git.config("user.name").strip()
        except GitCommandError as err:
            raise GitError("Failed to read git user.name, set it with `git config user.name`") from err
        if not name:
            raise GitError("git user.name is empty")
        return name

    def has_uncommitted_changes(self) -> bool:
        """Check if there are any uncommitted or untracked changes in the work tree."""
        try:
            return bool(self.repo.git.status("--porcelain").strip())
        except GitCommandError as err:
            raise GitError(f"Failed to check repository status: {err}") from err

    def log_exclusive(self, base: str, tip: str, limit: int) -> list[str]:
        """Return raw log lines for commits on tip that base has not received.

        Commits whose patch is already on base, such as earlier cherry-picks,
        are left out. Merges are skipped. Lines come newest first, formatted
        with LOG_FORMAT.
        """
        revision_range = f"{base}...{tip}"
        logger.debug("git log --cherry-pick --right-only --no-merges -%d %s", limit, revision_range)
        try:
            output = self.repo.git.log(
                "--cherry-pick",
                "--right-only",
                "--no-merges",
                f"-{limit}",
                f"--format={LOG_FORMAT}",
                "--date=short",
                revision_range,
            )
        except GitCommandError as err:
            raise GitError(f"Failed to list commits in {tip} missing from {base}: {err}") from err
        return [line for line in output.splitlines() if line.strip()]

    def list_range(self, revision_range: str) -> list[str]:
        """Expand a revision range into commit ids, oldest first."""
        logger.debug("git rev-list --reverse %s", revision_range)
        try:
            return self.repo.git.rev_list("--reverse", revision_range).split()
        except GitCommandError as err:
            raise GitError(f"Failed to expand range {revision_range}: {err}") from err

    def cherry_pick_range(self, revision_range: str) -> None:
        """Cherry-pick every commit of a range onto the current branch, oldest first.

        The output of `git rev-list --reverse` is piped straight into
        `git cherry-pick --stdin`.

        Raises:
            GitError: If either git process fails. The work tree is left as git left it.
        """
        logger.debug("git rev-list --reverse %s | git cherry-pick --stdin", revision_range)
        try:
            producer = self.repo.git.rev_list("--reverse", revision_range, as_process=True)
            try:
                self.repo.git.cherry_pick("--stdin", istream=producer.stdout)
            finally:
                producer.stdout.close()
            producer.wait()
        except GitCommandError as err:
            raise GitError(f"Cherry-pick of {revision_range} failed: {err}") from err

    def create_ticket_branch(self, branch_name: str, mainline: str = "main") -> None:
        """Create branch_name off an up to date mainline and switch to it.

        Raises:
            GitError: If any git operation fails
        """
        try:
            logger.debug("git switch %s", mainline)
            self.repo.git.switch(mainline)
            for remote in self.repo.remotes:
                logger.debug("git fetch %s", remote.name)
                remote.fetch()
            if self.repo.remotes:
                logger.debug("git pull")
                self.repo.git.pull()
            logger.debug("git switch -c %s", branch_name)
            self.repo.git.switch("-c", branch_name)
        except GitCommandError as err:
            raise GitError(f"Failed to create branch {branch_name}: {err}") from err
