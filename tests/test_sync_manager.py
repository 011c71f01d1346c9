"""
End-to-end tests for the sync orchestrator against an in-memory transport.
"""

import pytest

from truckersmp_cli.core import sync_manager as sync_manager_module
from truckersmp_cli.core.sync_manager import (
    RetryBudget,
    SyncOrchestrator,
    SyncState,
)
from truckersmp_cli.exceptions import (
    ConcurrencyAdmissionError,
    ConfigurationError,
    MalformedManifestError,
    RetryBudgetExhaustedError,
    SyncIncompleteError,
    VerificationIOError,
)
from tests.conftest import FakeTransport, FlakySemaphore, manifest_doc

S = SyncState

FILES = {
    "data/core.scs": b"shared core archive",
    "data/ets2/map.scs": b"ets2 map archive",
    "data/ats/map.scs": b"ats map archive",
}

MANIFEST = manifest_doc(
    ("system", "data/core.scs", FILES["data/core.scs"]),
    ("ets2", "data/ets2/map.scs", FILES["data/ets2/map.scs"]),
    ("ats", "data/ats/map.scs", FILES["data/ats/map.scs"]),
)


def _populate(root, files: dict[str, bytes]):
    for path, body in files.items():
        target = root / path
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_bytes(body)


class TestRetryBudget:
    def test_disabled_budget_allows_a_single_pass(self):
        budget = RetryBudget(attempts_remaining=5, retry_enabled=False)
        assert budget.max_verify_passes == 1
        assert budget.consume() is False

    def test_consume_counts_down_to_zero(self):
        budget = RetryBudget(attempts_remaining=2)
        assert budget.max_verify_passes == 3
        assert [budget.consume() for _ in range(3)] == [True, True, False]
        assert budget.attempts_remaining == 0


class TestFreshInstall:
    @pytest.mark.asyncio
    async def test_downloads_shared_and_profile_files_only(
        self, make_config, content_root
    ):
        transport = FakeTransport(manifest=MANIFEST, files=FILES)

        report = await SyncOrchestrator(make_config(), transport).run()

        assert report.state is S.DONE
        assert report.history == [S.PLANNING, S.FIRST_DOWNLOAD, S.VERIFYING, S.DONE]
        assert sorted(transport.fetched_paths) == ["data/core.scs", "data/ets2/map.scs"]
        assert transport.manifest_calls == 1
        assert not (content_root / "data/ats/map.scs").exists()
        assert (content_root / "data/core.scs").read_bytes() == FILES["data/core.scs"]
        assert report.residual == ()
        assert report.stats.files_downloaded == 2
        assert report.stats.verify_passes == 1

    @pytest.mark.asyncio
    async def test_ats_profile_selects_ats_bucket(self, make_config):
        transport = FakeTransport(manifest=MANIFEST, files=FILES)

        await SyncOrchestrator(make_config(profile="ats"), transport).run()

        assert sorted(transport.fetched_paths) == ["data/ats/map.scs", "data/core.scs"]

    @pytest.mark.asyncio
    async def test_transient_transport_failure_is_retried(self, make_config):
        transport = FakeTransport(
            manifest=MANIFEST, files=FILES, fail_times={"data/core.scs": 1}
        )

        report = await SyncOrchestrator(make_config(), transport).run()

        assert report.state is S.DONE
        assert S.RETRY_DOWNLOAD in report.history
        assert transport.fetched_paths.count("data/core.scs") == 2
        assert report.stats.files_failed == 1
        assert report.stats.retries_used == 1


class TestIncrementalUpdate:
    @pytest.mark.asyncio
    async def test_only_the_corrupted_file_is_fetched(self, make_config, content_root):
        _populate(content_root, FILES)
        (content_root / "data/ets2/map.scs").write_bytes(b"half-written")
        transport = FakeTransport(manifest=MANIFEST, files=FILES)

        report = await SyncOrchestrator(make_config(), transport).run()

        assert report.history == [
            S.PLANNING,
            S.VERIFYING,
            S.RETRY_DOWNLOAD,
            S.VERIFYING,
            S.DONE,
        ]
        assert transport.fetched_paths == ["data/ets2/map.scs"]
        assert (content_root / "data/ets2/map.scs").read_bytes() == FILES[
            "data/ets2/map.scs"
        ]

    @pytest.mark.asyncio
    async def test_up_to_date_directory_fetches_nothing(
        self, make_config, content_root
    ):
        _populate(content_root, FILES)
        transport = FakeTransport(manifest=MANIFEST, files=FILES)

        report = await SyncOrchestrator(make_config(), transport).run()

        assert report.history == [S.PLANNING, S.VERIFYING, S.DONE]
        assert transport.fetched == []

    @pytest.mark.asyncio
    async def test_corruption_in_transit_converges(self, make_config):
        transport = FakeTransport(
            manifest=MANIFEST, files=FILES, corrupt_times={"data/core.scs": 2}
        )

        report = await SyncOrchestrator(make_config(), transport).run()

        assert report.state is S.DONE
        assert report.history.count(S.RETRY_DOWNLOAD) == 2
        assert transport.fetched_paths.count("data/core.scs") == 3

    @pytest.mark.asyncio
    async def test_clean_removes_stray_files(self, make_config, content_root):
        _populate(content_root, FILES)
        _populate(content_root, {"leftover/old.scs": b"stale"})
        transport = FakeTransport(manifest=MANIFEST, files=FILES)

        report = await SyncOrchestrator(make_config(clean=True), transport).run()

        assert report.history[:2] == [S.PLANNING, S.FIRST_DOWNLOAD]
        assert not (content_root / "leftover").exists()
        assert sorted(transport.fetched_paths) == ["data/core.scs", "data/ets2/map.scs"]

    @pytest.mark.asyncio
    async def test_clean_refuses_home_directory(
        self, make_config, tmp_path, monkeypatch
    ):
        monkeypatch.setenv("HOME", str(tmp_path))
        (tmp_path / "keep.txt").write_bytes(b"keep")
        transport = FakeTransport(manifest=MANIFEST, files=FILES)
        orchestrator = SyncOrchestrator(
            make_config(clean=True, content_dir=str(tmp_path)), transport
        )

        with pytest.raises(ConfigurationError):
            await orchestrator.run()

        assert (tmp_path / "keep.txt").exists()
        assert orchestrator.state is S.FAILED
        assert transport.fetched == []


class TestFailures:
    @pytest.mark.asyncio
    async def test_retry_budget_bounds_the_number_of_cycles(self, make_config):
        remote = dict(FILES, **{"data/core.scs": b"not what the manifest says"})
        transport = FakeTransport(manifest=MANIFEST, files=remote)
        orchestrator = SyncOrchestrator(make_config(retry_count=3), transport)

        with pytest.raises(RetryBudgetExhaustedError) as exc_info:
            await orchestrator.run()

        history = orchestrator.report.history
        assert history.count(S.RETRY_DOWNLOAD) == 3
        assert history.count(S.VERIFYING) == 4
        assert history[-1] is S.FAILED
        assert exc_info.value.residual_paths == ["data/core.scs"]
        assert transport.fetched_paths.count("data/core.scs") == 4
        assert transport.fetched_paths.count("data/ets2/map.scs") == 1

    @pytest.mark.asyncio
    async def test_no_retry_reports_residual_without_redownloading(
        self, make_config, content_root
    ):
        _populate(content_root, FILES)
        (content_root / "data/core.scs").unlink()
        transport = FakeTransport(manifest=MANIFEST, files=FILES)
        orchestrator = SyncOrchestrator(make_config(retry_enabled=False), transport)

        with pytest.raises(SyncIncompleteError) as exc_info:
            await orchestrator.run()

        assert type(exc_info.value) is SyncIncompleteError
        assert exc_info.value.residual_paths == ["data/core.scs"]
        assert exc_info.value.report is orchestrator.report
        assert orchestrator.report.history == [S.PLANNING, S.VERIFYING, S.FAILED]
        assert transport.fetched == []

    @pytest.mark.asyncio
    async def test_zero_retry_count_still_verifies_once(
        self, make_config, content_root
    ):
        _populate(content_root, {"data/core.scs": b"bad"})
        transport = FakeTransport(manifest=MANIFEST, files=FILES)
        orchestrator = SyncOrchestrator(make_config(retry_count=0), transport)

        with pytest.raises(RetryBudgetExhaustedError):
            await orchestrator.run()

        assert orchestrator.report.history == [S.PLANNING, S.VERIFYING, S.FAILED]

    @pytest.mark.asyncio
    async def test_malformed_manifest_touches_nothing(self, make_config, content_root):
        bad = {"Files": [{"Md5": "not-a-hash", "Type": "ets2", "FilePath": "/a"}]}
        transport = FakeTransport(manifest=bad, files=FILES)
        orchestrator = SyncOrchestrator(make_config(), transport)

        with pytest.raises(MalformedManifestError):
            await orchestrator.run()

        assert not content_root.exists()
        assert orchestrator.report.history == [S.PLANNING, S.FAILED]
        assert transport.fetched == []

    @pytest.mark.asyncio
    async def test_unreadable_entry_is_fatal(self, make_config, content_root):
        _populate(content_root, FILES)
        (content_root / "data/core.scs").unlink()
        (content_root / "data/core.scs").mkdir()
        transport = FakeTransport(manifest=MANIFEST, files=FILES)
        orchestrator = SyncOrchestrator(make_config(), transport)

        with pytest.raises(VerificationIOError) as exc_info:
            await orchestrator.run()

        assert exc_info.value.paths == ["data/core.scs"]
        assert orchestrator.state is S.FAILED
        assert transport.fetched == []


class TestSlowLinks:
    @pytest.mark.asyncio
    async def test_slow_steady_download_converges_first_time(
        self, make_config, content_root
    ):
        body = b"x" * 10
        manifest = manifest_doc(("system", "data/big.scs", body))
        transport = FakeTransport(
            manifest=manifest, files={"data/big.scs": body}, chunk_delay=0.05
        )
        orchestrator = SyncOrchestrator(
            make_config(fetch_timeout=0.2, retry_count=2), transport
        )
        orchestrator.downloader.CHUNK_SIZE = 1

        report = await orchestrator.run()

        assert report.state is S.DONE
        assert transport.fetched_paths == ["data/big.scs"]
        assert report.stats.files_failed == 0
        assert (content_root / "data/big.scs").read_bytes() == body


class TestTerminalStates:
    @pytest.mark.asyncio
    async def test_content_root_that_is_a_file_fails_cleanly(
        self, make_config, content_root
    ):
        content_root.write_bytes(b"not a directory")
        transport = FakeTransport(manifest=MANIFEST, files=FILES)
        orchestrator = SyncOrchestrator(make_config(clean=True), transport)

        with pytest.raises(ConfigurationError, match="not a directory"):
            await orchestrator.run()

        assert orchestrator.report.history == [S.PLANNING, S.FAILED]
        assert content_root.read_bytes() == b"not a directory"
        assert transport.fetched == []

    @pytest.mark.asyncio
    async def test_unwritable_content_root_fails_cleanly(
        self, make_config, monkeypatch
    ):
        def deny(path):
            raise PermissionError(13, "Permission denied", str(path))

        monkeypatch.setattr(sync_manager_module, "create_dir", deny)
        orchestrator = SyncOrchestrator(
            make_config(), FakeTransport(manifest=MANIFEST, files=FILES)
        )

        with pytest.raises(ConfigurationError) as exc_info:
            await orchestrator.run()

        assert isinstance(exc_info.value.__cause__, PermissionError)
        assert orchestrator.state is S.FAILED

    @pytest.mark.asyncio
    async def test_unexpected_error_still_ends_failed(self, make_config):
        class BrokenTransport(FakeTransport):
            async def fetch_manifest(self):
                raise RuntimeError("boom")

        orchestrator = SyncOrchestrator(make_config(), BrokenTransport())

        with pytest.raises(RuntimeError):
            await orchestrator.run()

        assert orchestrator.report.history == [S.PLANNING, S.FAILED]

    @pytest.mark.asyncio
    async def test_admission_failure_ends_the_run(self, make_config, content_root):
        transport = FakeTransport(manifest=MANIFEST, files=FILES)
        orchestrator = SyncOrchestrator(make_config(), transport)
        orchestrator.gate._semaphore = FlakySemaphore(8, fail_on={1})

        with pytest.raises(ConcurrencyAdmissionError):
            await orchestrator.run()

        assert orchestrator.report.history == [
            S.PLANNING,
            S.FIRST_DOWNLOAD,
            S.FAILED,
        ]
        assert orchestrator.report.stats.files_failed == 0
        assert transport.fetched_paths == ["data/ets2/map.scs"]
