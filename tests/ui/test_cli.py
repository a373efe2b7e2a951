from __future__ import annotations

import json
from typing import TYPE_CHECKING

from licsync.domain.model import SyncOutcome, SyncRun
from licsync.domain.ports.fetching import SourceHealth
from licsync.domain.reconciliation import (
    MergeAction,
    PendingSyncResult,
    SingleSyncResult,
    SyncAlreadyRunning,
    SyncOptions,
    SyncResult,
    SyncStatistics,
    SyncStatus,
    SyncTimedOut,
)
from licsync.ui import cli
from tests.helpers.licenses import EARLIER, NOW

if TYPE_CHECKING:
    import pytest


def _result(**overrides: object) -> SyncResult:
    values: dict[str, object] = {
        "started_at": EARLIER,
        "finished_at": NOW,
        "total_external_fetched": 2,
        "created": ("EXT-A1-AAAAAA",),
        "batch_size": 200,
    }
    values.update(overrides)
    return SyncResult(**values)  # type: ignore[arg-type]


def test_sync_command_passes_options(
    monkeypatch: pytest.MonkeyPatch, capsys: pytest.CaptureFixture[str]
) -> None:
    captured: list[SyncOptions] = []

    def fake_run(options: SyncOptions) -> SyncResult:
        captured.append(options)
        return _result(dry_run=options.dry_run)

    monkeypatch.setattr(cli, "run_license_sync", fake_run)

    exit_code = cli.main(["sync", "--dry-run", "--batch-size", "5", "--no-bidirectional"])

    assert exit_code == cli.EXIT_OK
    assert captured == [
        SyncOptions(force=False, batch_size=5, dry_run=True, bidirectional=False)
    ]
    output = json.loads(capsys.readouterr().out)
    assert output["dryRun"] is True
    assert output["created"]["count"] == 1


def test_sync_command_defaults_leave_config_in_charge(monkeypatch: pytest.MonkeyPatch) -> None:
    captured: list[SyncOptions] = []

    def fake_run(options: SyncOptions) -> SyncResult:
        captured.append(options)
        return _result()

    monkeypatch.setattr(cli, "run_license_sync", fake_run)

    assert cli.main(["sync", "--internal-only", "--force"]) == cli.EXIT_OK
    (options,) = captured
    assert options.batch_size is None
    assert options.bidirectional is None
    assert options.sync_to_internal_only
    assert options.force


def test_invalid_batch_size_is_rejected(monkeypatch: pytest.MonkeyPatch) -> None:
    calls: list[SyncOptions] = []
    monkeypatch.setattr(cli, "run_license_sync", calls.append)

    assert cli.main(["sync", "--batch-size", "0"]) == cli.EXIT_INVALID_ARGS
    assert calls == []


def test_unknown_command_is_an_argument_error() -> None:
    assert cli.main(["rebuild"]) == cli.EXIT_INVALID_ARGS


def test_running_sync_exits_with_dedicated_code(monkeypatch: pytest.MonkeyPatch) -> None:
    def busy(_options: SyncOptions) -> SyncResult:
        raise SyncAlreadyRunning("A license sync is already in progress")

    monkeypatch.setattr(cli, "run_license_sync", busy)

    assert cli.main(["sync"]) == cli.EXIT_ALREADY_RUNNING


def test_timeout_prints_partial_result(
    monkeypatch: pytest.MonkeyPatch, capsys: pytest.CaptureFixture[str]
) -> None:
    partial = _result(outcome=SyncOutcome.TIMED_OUT, not_attempted=4)

    def slow(_options: SyncOptions) -> SyncResult:
        raise SyncTimedOut("Sync exceeded its time budget", result=partial)

    monkeypatch.setattr(cli, "run_license_sync", slow)

    assert cli.main(["sync"]) == cli.EXIT_FATAL
    output = json.loads(capsys.readouterr().out)
    assert output["outcome"] == "timed_out"
    assert output["notAttempted"] == 4


def test_unexpected_error_is_fatal(monkeypatch: pytest.MonkeyPatch) -> None:
    def broken(_options: SyncOptions) -> SyncResult:
        raise RuntimeError("database is gone")

    monkeypatch.setattr(cli, "run_license_sync", broken)

    assert cli.main(["sync"]) == cli.EXIT_FATAL


def test_status_command_prints_status(
    monkeypatch: pytest.MonkeyPatch, capsys: pytest.CaptureFixture[str]
) -> None:
    monkeypatch.setattr(
        cli, "get_sync_status", lambda: SyncStatus(in_progress=True, current_started_at=NOW)
    )

    assert cli.main(["status"]) == cli.EXIT_OK
    output = json.loads(capsys.readouterr().out)
    assert output["inProgress"] is True
    assert output["lastResult"] is None


def test_history_command_lists_runs(
    monkeypatch: pytest.MonkeyPatch, capsys: pytest.CaptureFixture[str]
) -> None:
    limits: list[int] = []

    def fake_runs(*, limit: int) -> list[SyncRun]:
        limits.append(limit)
        return [SyncRun(started_at=EARLIER, finished_at=NOW, created=3, id=7)]

    monkeypatch.setattr(cli, "list_sync_runs", fake_runs)

    assert cli.main(["history", "--limit", "3"]) == cli.EXIT_OK
    assert limits == [3]
    (run,) = json.loads(capsys.readouterr().out)
    assert run["id"] == 7
    assert run["created"] == 3
    assert run["outcome"] == "succeeded"


def test_history_rejects_non_positive_limit() -> None:
    assert cli.main(["history", "--limit", "0"]) == cli.EXIT_INVALID_ARGS


def test_value_error_from_the_sync_is_fatal(monkeypatch: pytest.MonkeyPatch) -> None:
    def broken(_options: SyncOptions) -> SyncResult:
        raise ValueError("invalid isoformat string")

    monkeypatch.setattr(cli, "run_license_sync", broken)

    assert cli.main(["sync"]) == cli.EXIT_FATAL


def test_non_numeric_batch_size_is_an_argument_error() -> None:
    assert cli.main(["sync", "--batch-size", "lots"]) == cli.EXIT_INVALID_ARGS


def test_sync_one_command_prints_the_result(
    monkeypatch: pytest.MonkeyPatch, capsys: pytest.CaptureFixture[str]
) -> None:
    seen: list[str] = []

    def fake_single(app_id: str) -> SingleSyncResult:
        seen.append(app_id)
        return SingleSyncResult(
            reference=f"appId={app_id}", action=MergeAction.UPDATE, license_key="LIC-0001"
        )

    monkeypatch.setattr(cli, "sync_single_license", fake_single)

    assert cli.main(["sync-one", "A1"]) == cli.EXIT_OK
    assert seen == ["A1"]
    output = json.loads(capsys.readouterr().out)
    assert output["action"] == "update"
    assert output["success"] is True


def test_failed_sync_one_exits_fatal(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(
        cli,
        "sync_single_license",
        lambda app_id: SingleSyncResult(reference=f"appId={app_id}", error="not found"),
    )

    assert cli.main(["sync-one", "A1"]) == cli.EXIT_FATAL


def test_sync_pending_command_passes_limit(
    monkeypatch: pytest.MonkeyPatch, capsys: pytest.CaptureFixture[str]
) -> None:
    limits: list[int] = []

    def fake_pending(limit: int) -> PendingSyncResult:
        limits.append(limit)
        return PendingSyncResult(started_at=EARLIER, finished_at=NOW)

    monkeypatch.setattr(cli, "sync_pending_licenses", fake_pending)

    assert cli.main(["sync-pending", "--limit", "25"]) == cli.EXIT_OK
    assert limits == [25]
    assert json.loads(capsys.readouterr().out)["processed"] == 0


def test_stats_command_can_skip_the_source(
    monkeypatch: pytest.MonkeyPatch, capsys: pytest.CaptureFixture[str]
) -> None:
    calls: list[bool] = []

    def fake_stats(*, include_source: bool) -> SyncStatistics:
        calls.append(include_source)
        health = SourceHealth(healthy=True, checked_at=NOW) if include_source else None
        return SyncStatistics(total=4, synced=3, failed=1, pending=0, source=health)

    monkeypatch.setattr(cli, "get_sync_statistics", fake_stats)

    assert cli.main(["stats", "--no-source"]) == cli.EXIT_OK
    assert calls == [False]
    output = json.loads(capsys.readouterr().out)
    assert output["successRate"] == 75
    assert output["source"] is None
