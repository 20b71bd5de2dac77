"""Test configuration and fixtures."""

from pathlib import Path
from typing import Generator, Optional

import pytest
from git import Actor, Repo

ALICE = Actor("alice", "alice@example.com")
BOB = Actor("bob", "bob@example.com")


def commit_file(
    repo: Repo, name: str, content: str, message: str, author: Actor = ALICE, date: Optional[str] = None
) -> str:
    """Write a file, commit it and return the short hash. date is an ISO 8601 timestamp, now by default."""
    path = Path(repo.working_tree_dir) / name
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(content)
    repo.index.add([name])
    commit = repo.index.commit(message, author=author, committer=author, author_date=date, commit_date=date)
    return repo.git.rev_parse("--short", commit.hexsha)


@pytest.fixture(autouse=True)
def isolated_config(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """Point the config file at a temporary location and clear CHR_* overrides."""
    config_path = tmp_path / "config" / "chr.toml"
    monkeypatch.setenv("CHR_CONFIG", str(config_path))
    for name in ("CHR_PREFIX", "CHR_SUFFIX_PRD", "CHR_SUFFIX_HML", "CHR_COLOR"):
        monkeypatch.delenv(name, raising=False)
    return config_path


@pytest.fixture
def test_env(tmp_path: Path) -> Generator[Path, None, None]:
    """Create a repository with a ticket branch pair.

    Layout:
        main        - initial commit
        ZUP-42-hml  - branched from main, nothing else (checked out)
        ZUP-42-prd  - branched from main, three commits by alice
        ZUP-7-prd / ZUP-7-hml - both at main
    """
    local_path = tmp_path / "local"
    local_path.mkdir()
    repo = Repo.init(local_path)

    # Set up git config
    with repo.config_writer() as writer:
        writer.set_value("user", "name", ALICE.name)
        writer.set_value("user", "email", ALICE.email)

    commit_file(repo, "README.md", "# Test Repository", "Initial commit")

    # Ensure we're on main branch
    if "main" not in repo.heads:
        repo.create_head("main")
    main_branch = repo.heads.main
    main_branch.checkout()

    repo.create_head("ZUP-42-hml", "main")
    repo.create_head("ZUP-7-prd", "main")
    repo.create_head("ZUP-7-hml", "main")

    repo.create_head("ZUP-42-prd", "main").checkout()
    commit_file(repo, "one.txt", "one", "feat: add one")
    commit_file(repo, "two.txt", "two", "fix: add two")
    commit_file(repo, "three.txt", "three", "docs: add three")

    repo.heads["ZUP-42-hml"].checkout()

    yield local_path

    repo.close()


@pytest.fixture
def repo(test_env: Path) -> Repo:
    """GitPython handle on the test repository."""
    return Repo(test_env)
