"""Integration tests for working tree scanning against real repositories."""

from helpers import GitRepo

from gitstate.repository import FileStatus, GitWorkspace


def test_clean_repository(workspace: GitWorkspace, git_repo: GitRepo) -> None:
    status = workspace.scanner.scan()

    assert status.clean
    assert status.branch == "main"
    assert status.head == git_repo.head()
    assert workspace.scanner.merge_state(status) is None


def test_partitions_staged_unstaged_and_untracked(
    workspace: GitWorkspace, git_repo: GitRepo
) -> None:
    _ = git_repo.write("README.md", "# Changed\n")
    _ = git_repo.write("staged.txt", "new\n")
    _ = git_repo.git("add", "staged.txt")
    _ = git_repo.write("nested/untracked.txt", "u\n")

    status = workspace.scanner.scan()

    assert status.staged_paths == ["staged.txt"]
    assert status.staged[0].status == FileStatus.ADDED
    assert status.unstaged_paths == ["README.md"]
    assert status.unstaged[0].status == FileStatus.MODIFIED
    assert status.untracked_paths == ["nested/untracked.txt"]
    assert status.conflicts == ()


def test_partially_staged_file_is_reported_once(
    workspace: GitWorkspace, git_repo: GitRepo
) -> None:
    _ = git_repo.write("README.md", "# Staged\n")
    _ = git_repo.git("add", "README.md")
    _ = git_repo.write("README.md", "# Staged then edited\n")

    status = workspace.scanner.scan()

    assert status.staged_paths == ["README.md"]
    assert status.staged[0].has_unstaged_changes
    assert status.unstaged == ()


def test_rename_is_detected_in_index(workspace: GitWorkspace, git_repo: GitRepo) -> None:
    _ = git_repo.git("mv", "README.md", "DOCS.md")

    (entry,) = workspace.scanner.scan().staged

    assert entry.status == FileStatus.RENAMED
    assert (entry.old_path, entry.path) == ("README.md", "DOCS.md")


def test_unborn_branch(empty_repo: GitRepo) -> None:
    _ = empty_repo.write("a.txt", "a\n")

    with GitWorkspace.open(empty_repo.root) as ws:
        status = ws.scanner.scan()

    assert status.branch == "main"
    assert status.head is None
    assert status.untracked_paths == ["a.txt"]


def test_scanning_does_not_modify_the_index(
    workspace: GitWorkspace, git_repo: GitRepo
) -> None:
    index = git_repo.root / ".git" / "index"
    before = index.stat().st_mtime_ns
    _ = git_repo.write("README.md", "# Changed\n")

    first = workspace.scanner.scan()
    second = workspace.scanner.scan()

    assert first == second
    assert index.stat().st_mtime_ns == before


def test_conflicts_and_merge_state(workspace: GitWorkspace, git_repo: GitRepo) -> None:
    _ = git_repo.git("checkout", "-q", "-b", "feature")
    theirs = git_repo.commit_file("README.md", "feature\n", "Feature change")
    _ = git_repo.git("checkout", "-q", "main")
    ours = git_repo.commit_file("README.md", "main\n", "Main change")
    _ = git_repo.git("merge", "feature", check=False)

    status = workspace.scanner.scan()
    state = workspace.scanner.merge_state(status)

    assert status.conflict_paths == ["README.md"]
    assert status.staged == ()
    assert state is not None
    assert (state.ours, state.theirs) == (ours, theirs)
    assert state.base is not None
    assert state.conflicts == ("README.md",)
    assert workspace.scanner.in_progress_operation() == "MERGE_HEAD"
