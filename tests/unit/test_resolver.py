"""Tests for pollwatch._resolver module."""

from __future__ import annotations

import os
from collections.abc import Callable
from pathlib import Path
from typing import TYPE_CHECKING

import pytest
from structlog.typing import FilteringBoundLogger

from pollwatch._differ import diff
from pollwatch._models import WatchSource
from pollwatch._resolver import PathResolver
from pollwatch._snapshot import Snapshot
from pollwatch.exceptions import GlobPatternError

if TYPE_CHECKING:
    from pytest_mock import MockerFixture

    from tests.conftest import LogCapture


@pytest.fixture
def workdir(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    monkeypatch.chdir(tmp_path)
    return tmp_path


def denying_stat(denied: str) -> Callable[..., os.stat_result]:
    """Return an ``os.stat`` replacement that refuses one path."""
    real_stat = os.stat

    def _stat(path: str, *args: object, **kwargs: object) -> os.stat_result:
        if os.fspath(path) == denied:
            raise PermissionError(13, "Permission denied", denied)
        return real_stat(path, *args, **kwargs)  # pyright: ignore[reportArgumentType]

    return _stat


def denying_scandir(denied: str) -> Callable[..., object]:
    """Return an ``os.scandir`` replacement that refuses one directory."""
    real_scandir = os.scandir

    def _scandir(path: str = os.curdir) -> object:
        if os.fspath(path) == denied:
            raise PermissionError(13, "Permission denied", denied)
        return real_scandir(path)

    return _scandir


class TestConstruction:
    def test_malformed_glob_is_rejected_up_front(self) -> None:
        with pytest.raises(GlobPatternError):
            _ = PathResolver([WatchSource.glob("src/***")])

    def test_sources_are_deduplicated_in_order(self) -> None:
        a = WatchSource.exact("a")
        g = WatchSource.glob("*.rs")
        resolver = PathResolver([a, g, a])
        assert resolver.sources == (a, g)


class TestResolveExact:
    def test_existing_file(
        self, workdir: Path, write_file: Callable[..., Path], base_mtime: int
    ) -> None:
        _ = write_file(workdir / "a.txt")
        source = WatchSource.exact("a.txt")

        resolution = PathResolver([source]).resolve()

        assert resolution.entries == {"a.txt": base_mtime}
        assert resolution.origins == {"a.txt": {source}}
        assert not resolution.failed_sources

    def test_missing_file_is_absent_not_an_error(self, workdir: Path) -> None:
        resolution = PathResolver([WatchSource.exact("missing.txt")]).resolve()

        assert resolution.entries == {}
        assert not resolution.failed_sources

    def test_missing_parent_directory(self, workdir: Path) -> None:
        resolution = PathResolver([WatchSource.exact("nope/a.txt")]).resolve()
        assert resolution.entries == {}

    def test_directory_is_watched_by_its_mtime(self, workdir: Path) -> None:
        (workdir / "dir").mkdir()
        resolution = PathResolver([WatchSource.exact("dir")]).resolve()
        assert "dir" in resolution.entries

    def test_permission_error_fails_the_source(
        self,
        workdir: Path,
        write_file: Callable[..., Path],
        mocker: MockerFixture,
        logger: FilteringBoundLogger,
        log_capture: LogCapture,
    ) -> None:
        _ = write_file(workdir / "secret.txt")
        source = WatchSource.exact("secret.txt")
        _ = mocker.patch("pollwatch._resolver.os.stat", denying_stat("secret.txt"))

        resolution = PathResolver([source], logger=logger).resolve()

        assert resolution.entries == {}
        assert resolution.failed_sources == {source}
        [warning] = log_capture.events("resolution_warning")
        assert warning["level"] == "warning"
        assert warning["source"] == "exact:secret.txt"
        assert warning["consecutive_failures"] == 1


class TestResolveGlob:
    def test_matches_are_statted(
        self, workdir: Path, write_file: Callable[..., Path], base_mtime: int
    ) -> None:
        _ = write_file(workdir / "src" / "main.rs")
        _ = write_file(workdir / "src" / "nested" / "lib.rs", mtime_ns=base_mtime + 1)
        _ = write_file(workdir / "src" / "README.md")
        source = WatchSource.glob("src/**/*.rs")

        resolution = PathResolver([source]).resolve()

        assert resolution.entries == {
            os.path.join("src", "main.rs"): base_mtime,
            os.path.join("src", "nested", "lib.rs"): base_mtime + 1,
        }

    def test_missing_root_matches_nothing(self, workdir: Path) -> None:
        resolution = PathResolver([WatchSource.glob("src/**/*.rs")]).resolve()
        assert resolution.entries == {}
        assert not resolution.failed_sources

    def test_unreadable_root_fails_the_source(
        self,
        workdir: Path,
        write_file: Callable[..., Path],
        mocker: MockerFixture,
        logger: FilteringBoundLogger,
        log_capture: LogCapture,
    ) -> None:
        _ = write_file(workdir / "src" / "main.rs")
        source = WatchSource.glob("src/*.rs")
        _ = mocker.patch(
            "pollwatch._glob.os.scandir",
            side_effect=PermissionError(13, "Permission denied", "src"),
        )

        resolution = PathResolver([source], logger=logger).resolve()

        assert resolution.failed_sources == {source}
        assert resolution.entries == {}
        [warning] = log_capture.events("resolution_warning")
        assert warning["path"] == "src"

    def test_unreadable_match_is_marked_unreadable(
        self,
        workdir: Path,
        write_file: Callable[..., Path],
        mocker: MockerFixture,
        logger: FilteringBoundLogger,
        log_capture: LogCapture,
    ) -> None:
        _ = write_file(workdir / "a.rs")
        _ = write_file(workdir / "b.rs")
        _ = mocker.patch("pollwatch._resolver.os.stat", denying_stat("b.rs"))

        resolution = PathResolver([WatchSource.glob("*.rs")], logger=logger).resolve()

        assert list(resolution.entries) == ["a.rs"]
        assert resolution.unreadable == {"b.rs"}
        assert not resolution.failed_sources
        assert len(log_capture.events("resolution_warning")) == 1

    def test_unreadable_subdirectory_is_shielded(
        self,
        workdir: Path,
        write_file: Callable[..., Path],
        mocker: MockerFixture,
        logger: FilteringBoundLogger,
        log_capture: LogCapture,
    ) -> None:
        _ = write_file(workdir / "src" / "main.rs")
        _ = write_file(workdir / "src" / "sub" / "a.rs")
        source = WatchSource.glob("src/**/*.rs")
        resolver = PathResolver([source], logger=logger)
        snapshot = Snapshot.from_resolution(resolver.resolve())
        denied = os.path.join("src", "sub")
        _ = mocker.patch("pollwatch._glob.os.scandir", denying_scandir(denied))

        resolution = resolver.resolve()

        assert list(resolution.entries) == [os.path.join("src", "main.rs")]
        assert resolution.unreadable_dirs == {denied}
        assert not resolution.failed_sources
        [warning] = log_capture.events("resolution_warning")
        assert warning["path"] == denied
        assert diff(resolution, snapshot) == []
        assert os.path.join(denied, "a.rs") in snapshot

    def test_subdirectory_below_search_depth_is_not_listed(
        self,
        workdir: Path,
        write_file: Callable[..., Path],
        mocker: MockerFixture,
    ) -> None:
        _ = write_file(workdir / "src" / "main.rs")
        _ = write_file(workdir / "src" / "sub" / "a.rs")
        _ = mocker.patch(
            "pollwatch._glob.os.scandir",
            denying_scandir(os.path.join("src", "sub")),
        )

        resolution = PathResolver([WatchSource.glob("src/*.rs")]).resolve()

        assert resolution.unreadable_dirs == set()
        assert list(resolution.entries) == [os.path.join("src", "main.rs")]

    def test_overlapping_sources_record_every_origin(
        self, workdir: Path, write_file: Callable[..., Path]
    ) -> None:
        _ = write_file(workdir / "a.rs")
        exact = WatchSource.exact("a.rs")
        pattern = WatchSource.glob("*.rs")

        resolution = PathResolver([exact, pattern]).resolve()

        assert list(resolution.entries) == ["a.rs"]
        assert resolution.origins["a.rs"] == {exact, pattern}


class TestEscalation:
    def _resolve_denied(self, resolver: PathResolver, times: int) -> None:
        with pytest.MonkeyPatch.context() as mp:
            mp.setattr("pollwatch._resolver.os.stat", denying_stat("secret"))
            for _ in range(times):
                _ = resolver.resolve()

    def test_never_escalates_by_default(
        self,
        logger: FilteringBoundLogger,
        log_capture: LogCapture,
    ) -> None:
        resolver = PathResolver([WatchSource.exact("secret")], logger=logger)
        self._resolve_denied(resolver, 5)

        levels = [entry["level"] for entry in log_capture.events("resolution_warning")]
        assert levels == ["warning"] * 5

    def test_escalates_after_consecutive_failures(
        self,
        logger: FilteringBoundLogger,
        log_capture: LogCapture,
    ) -> None:
        source = WatchSource.exact("secret")
        resolver = PathResolver([source], escalate_after=3, logger=logger)
        self._resolve_denied(resolver, 4)

        warnings = log_capture.events("resolution_warning")
        assert [entry["level"] for entry in warnings] == [
            "warning",
            "warning",
            "error",
            "error",
        ]
        assert [entry["consecutive_failures"] for entry in warnings] == [1, 2, 3, 4]
        assert resolver.failure_streak(source) == 4

    def test_success_resets_the_streak(
        self,
        workdir: Path,
        logger: FilteringBoundLogger,
        log_capture: LogCapture,
    ) -> None:
        source = WatchSource.exact("secret")
        resolver = PathResolver([source], escalate_after=2, logger=logger)

        self._resolve_denied(resolver, 1)
        _ = resolver.resolve()
        assert resolver.failure_streak(source) == 0
        self._resolve_denied(resolver, 1)

        levels = [entry["level"] for entry in log_capture.events("resolution_warning")]
        assert levels == ["warning", "warning"]
