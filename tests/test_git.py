"""Tests for git repository operations."""

import tempfile
from pathlib import Path

import pytest
from git import Repo

from chrpick.git import GitError, GitRepo

from conftest import BOB, commit_file


def test_current_branch(test_env: Path) -> None:
    """The checked out branch is reported."""
    assert GitRepo(test_env).get_current_branch_name() == "ZUP-42-hml"


def test_current_branch_detached_head(test_env: Path, repo: Repo) -> None:
    """A detached HEAD has no branch name."""
    repo.git.checkout("--detach", "HEAD")
    assert GitRepo(test_env).get_current_branch_name() == ""


def test_branch_exists(test_env: Path) -> None:
    """Existing branches resolve, others do not."""
    git_repo = GitRepo(test_env)
    assert git_repo.branch_exists("ZUP-42-prd")
    assert git_repo.branch_exists("main")
    assert not git_repo.branch_exists("ZUP-99-prd")


def test_current_user(test_env: Path) -> None:
    """The configured user name is returned."""
    assert GitRepo(test_env).get_current_user() == "alice"


def test_log_exclusive(test_env: Path) -> None:
    """Commits on production that homologation lacks, newest first."""
    lines = GitRepo(test_env).log_exclusive("ZUP-42-hml", "ZUP-42-prd", 5)
    fields = [line.split("|", 3) for line in lines]
    assert [(author, subject) for _, author, _, subject in fields] == [
        ("alice", "docs: add three"),
        ("alice", "fix: add two"),
        ("alice", "feat: add one"),
    ]


def test_log_exclusive_short_author_date(test_env: Path, repo: Repo) -> None:
    """The third field is the author date as YYYY-MM-DD."""
    repo.heads["ZUP-42-prd"].checkout()
    commit_file(repo, "dated.txt", "dated", "chore: dated", date="2024-01-15T12:00:00")
    repo.heads["ZUP-42-hml"].checkout()

    newest = GitRepo(test_env).log_exclusive("ZUP-42-hml", "ZUP-42-prd", 1)[0]
    assert newest.split("|", 3)[2:] == ["2024-01-15", "chore: dated"]


def test_log_exclusive_skips_commits_already_picked(test_env: Path, repo: Repo) -> None:
    """A commit cherry-picked onto homologation is not listed again under its new hash."""
    git_repo = GitRepo(test_env)
    oldest = git_repo.log_exclusive("ZUP-42-hml", "ZUP-42-prd", 5)[-1].split("|")[0]
    repo.git.cherry_pick(oldest)

    lines = git_repo.log_exclusive("ZUP-42-hml", "ZUP-42-prd", 5)
    assert [line.split("|", 3)[3] for line in lines] == ["docs: add three", "fix: add two"]


def test_log_exclusive_ignores_homologation_only_commits(test_env: Path, repo: Repo) -> None:
    """Commits only homologation has are not listed."""
    commit_file(repo, "hml-only.txt", "hml", "chore: only on hml", author=BOB)
    lines = GitRepo(test_env).log_exclusive("ZUP-42-hml", "ZUP-42-prd", 5)
    assert len(lines) == 3
    assert not any("only on hml" in line for line in lines)


def test_log_exclusive_limit(test_env: Path) -> None:
    """The limit caps the number of lines."""
    assert len(GitRepo(test_env).log_exclusive("ZUP-42-hml", "ZUP-42-prd", 2)) == 2


def test_log_exclusive_nothing_missing(test_env: Path) -> None:
    """Branches at the same commit have no exclusive commits."""
    assert GitRepo(test_env).log_exclusive("ZUP-7-hml", "ZUP-7-prd", 5) == []


def test_log_exclusive_unknown_branch(test_env: Path) -> None:
    """An unknown branch is a git failure."""
    with pytest.raises(GitError, match="Failed to list commits"):
        GitRepo(test_env).log_exclusive("ZUP-42-hml", "nope", 5)


def test_list_range_oldest_first(test_env: Path, repo: Repo) -> None:
    """A range expands oldest first."""
    hashes = [line.split("|")[0] for line in GitRepo(test_env).log_exclusive("ZUP-42-hml", "ZUP-42-prd", 5)]
    newest, oldest = hashes[0], hashes[-1]
    expanded = GitRepo(test_env).list_range(f"{oldest}^..{newest}")
    subjects = [repo.commit(sha).summary for sha in expanded]
    assert subjects == ["feat: add one", "fix: add two", "docs: add three"]


def test_cherry_pick_range(test_env: Path, repo: Repo) -> None:
    """Every commit of the range lands on the current branch in order."""
    git_repo = GitRepo(test_env)
    hashes = [line.split("|")[0] for line in git_repo.log_exclusive("ZUP-42-hml", "ZUP-42-prd", 5)]
    git_repo.cherry_pick_range(f"{hashes[-1]}^..{hashes[0]}")

    subjects = repo.git.log("--format=%s", "-4").splitlines()
    assert subjects == ["docs: add three", "fix: add two", "feat: add one", "Initial commit"]
    assert repo.active_branch.name == "ZUP-42-hml"


def test_cherry_pick_range_conflict(test_env: Path, repo: Repo) -> None:
    """A conflicting cherry-pick raises and leaves git mid cherry-pick."""
    commit_file(repo, "one.txt", "different", "chore: clash with one", author=BOB)
    git_repo = GitRepo(test_env)
    hashes = [line.split("|")[0] for line in git_repo.log_exclusive("ZUP-42-hml", "ZUP-42-prd", 5)]

    with pytest.raises(GitError, match="Cherry-pick of"):
        git_repo.cherry_pick_range(f"{hashes[-1]}^..{hashes[0]}")
    assert (Path(repo.git_dir) / "CHERRY_PICK_HEAD").exists()


def test_has_uncommitted_changes(test_env: Path) -> None:
    """Untracked and modified files count as changes."""
    git_repo = GitRepo(test_env)
    assert not git_repo.has_uncommitted_changes()
    (test_env / "scratch.txt").write_text("scratch")
    assert git_repo.has_uncommitted_changes()


def test_create_ticket_branch(test_env: Path, repo: Repo) -> None:
    """The new branch starts at main and is checked out."""
    GitRepo(test_env).create_ticket_branch("ZUP-99-prd")
    assert repo.active_branch.name == "ZUP-99-prd"
    assert repo.heads["ZUP-99-prd"].commit == repo.heads.main.commit


def test_create_existing_branch_fails(test_env: Path) -> None:
    """Creating a branch that already exists is an error."""
    with pytest.raises(GitError, match="Failed to create branch ZUP-42-prd"):
        GitRepo(test_env).create_ticket_branch("ZUP-42-prd")


def test_invalid_repo() -> None:
    """A directory that is not a repository cannot be opened."""
    with tempfile.TemporaryDirectory() as temp_dir:
        with pytest.raises(GitError, match="Failed to open repository"):
            GitRepo(Path(temp_dir))
