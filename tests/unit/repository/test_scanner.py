"""Unit tests for porcelain v2 status parsing."""

from gitstate.repository import FileStatus, GitStatus, parse_porcelain_v2

_SHA = "a" * 40
_ZERO = "0" * 40


def _ordinary(xy: str, path: str) -> str:
    return f"1 {xy} N... 100644 100644 100644 {_SHA} {_SHA} {path}"


def _porcelain(*records: str) -> str:
    return "\0".join(records) + "\0"


class TestBranchHeaders:
    def test_parses_branch_head_and_upstream(self) -> None:
        raw = _porcelain(
            f"# branch.oid {_SHA}",
            "# branch.head main",
            "# branch.upstream origin/main",
            "# branch.ab +2 -1",
        )

        status = parse_porcelain_v2(raw)

        assert status.branch == "main"
        assert status.head == _SHA
        assert status.upstream == "origin/main"
        assert (status.ahead, status.behind) == (2, 1)

    def test_unborn_branch_has_no_head(self) -> None:
        status = parse_porcelain_v2(_porcelain("# branch.oid (initial)", "# branch.head main"))

        assert status.branch == "main"
        assert status.head is None
        assert not status.detached

    def test_detached_head_has_no_branch(self) -> None:
        status = parse_porcelain_v2(_porcelain(f"# branch.oid {_SHA}", "# branch.head (detached)"))

        assert status.branch is None
        assert status.detached

    def test_without_upstream_counts_are_zero(self) -> None:
        status = parse_porcelain_v2(_porcelain(f"# branch.oid {_SHA}", "# branch.head dev"))

        assert status.upstream is None
        assert (status.ahead, status.behind) == (0, 0)


class TestPartition:
    def test_empty_output_is_clean(self) -> None:
        status = parse_porcelain_v2("")

        assert status == GitStatus()
        assert status.clean

    def test_worktree_modification_is_unstaged(self) -> None:
        status = parse_porcelain_v2(_porcelain(_ordinary(".M", "a.txt")))

        assert status.unstaged_paths == ["a.txt"]
        assert status.unstaged[0].status == FileStatus.MODIFIED
        assert not status.unstaged[0].staged
        assert status.staged == ()

    def test_index_addition_is_staged(self) -> None:
        record = f"1 A. N... 000000 100644 100644 {_ZERO} {_SHA} new.txt"
        status = parse_porcelain_v2(_porcelain(record))

        assert status.staged_paths == ["new.txt"]
        assert status.staged[0].status == FileStatus.ADDED
        assert status.staged[0].staged

    def test_staged_and_modified_again_is_reported_once(self) -> None:
        status = parse_porcelain_v2(_porcelain(_ordinary("MM", "both.txt")))

        assert status.staged_paths == ["both.txt"]
        assert status.unstaged == ()
        assert status.staged[0].has_unstaged_changes

    def test_deletions(self) -> None:
        status = parse_porcelain_v2(_porcelain(_ordinary("D.", "gone.txt"), _ordinary(".D", "rm.txt")))

        assert status.staged[0].status == FileStatus.DELETED
        assert status.unstaged[0].status == FileStatus.DELETED

    def test_rename_carries_old_path(self) -> None:
        record = f"2 R. N... 100644 100644 100644 {_SHA} {_SHA} R100 new name.txt"
        status = parse_porcelain_v2(_porcelain(record, "old name.txt"))

        entry = status.staged[0]
        assert entry.path == "new name.txt"
        assert entry.old_path == "old name.txt"
        assert entry.status == FileStatus.RENAMED

    def test_rename_record_does_not_swallow_next_entry(self) -> None:
        rename = f"2 R. N... 100644 100644 100644 {_SHA} {_SHA} R100 b.txt"
        status = parse_porcelain_v2(_porcelain(rename, "a.txt", "? c.txt"))

        assert status.staged_paths == ["b.txt"]
        assert status.untracked_paths == ["c.txt"]

    def test_unmerged_entries_only_in_conflicts(self) -> None:
        record = f"u UU N... 100644 100644 100644 100644 {_SHA} {_SHA} {_SHA} x.txt"
        status = parse_porcelain_v2(_porcelain(record))

        assert status.conflict_paths == ["x.txt"]
        assert status.conflicts[0].status == FileStatus.CONFLICTED
        assert status.staged == ()
        assert status.unstaged == ()
        assert not status.clean

    def test_untracked_paths_with_spaces(self) -> None:
        status = parse_porcelain_v2(_porcelain("? dir/with space.txt"))

        assert status.untracked_paths == ["dir/with space.txt"]
        assert status.untracked[0].status == FileStatus.UNTRACKED

    def test_buckets_are_sorted(self) -> None:
        status = parse_porcelain_v2(_porcelain("? z.txt", "? a.txt", _ordinary(".M", "m.txt"), _ordinary(".M", "b.txt")))

        assert status.untracked_paths == ["a.txt", "z.txt"]
        assert status.unstaged_paths == ["b.txt", "m.txt"]
