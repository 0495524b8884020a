"""
Tests for the RunTracker facade.
"""
import pytest
from conftest import FakeJobSource, RecordingNotifier, make_run

from run_tracker import RunTracker, parse_run_reference
from run_tracker.client import AgentRunAPIClient
from run_tracker.config import APIConfig, MonitorConfig, Settings, StoreConfig
from run_tracker.errors import InvalidRunReferenceError, OrchestrationError
from run_tracker.filtering import RunFilters, SortOptions
from run_tracker.storage import InMemoryStore
from run_tracker.types import SyncStatus


class TestParseRunReference:
    @pytest.mark.parametrize("reference,expected", [
        (42, 42),
        ("42", 42),
        (" #42 ", 42),
        ("https://codegen.com/agent/trace/42", 42),
        ("https://codegen.com/agent/trace/42/", 42),
        ("https://codegen.com/agent/trace/42?tab=logs", 42),
        ("https://codegen.com/orgs/7/runs/42", 42),
    ])
    def test_valid(self, reference, expected):
        assert parse_run_reference(reference) == expected

    @pytest.mark.parametrize("reference", [0, -3, "", "abc", "https://codegen.com/agent", "ftp://x/42"])
    def test_invalid(self, reference):
        with pytest.raises(InvalidRunReferenceError):
            parse_run_reference(reference)


@pytest.fixture
def settings():
    return Settings(
        api=APIConfig(api_token=None),
        store=StoreConfig(backend="memory"),
        monitor=MonitorConfig(poll_interval_seconds=30),
    )


@pytest.fixture
def tracker(settings, source, notifier, clock):
    return RunTracker(InMemoryStore(), lambda: source, notifier, settings=settings, clock=clock)


class TestRunTracker:
    """Tests for the assembled service."""

    async def test_track_then_detect(self, tracker, source, notifier):
        source.runs[42] = make_run(id=42, status="ACTIVE")

        tracked = await tracker.track_by_reference(7, "https://codegen.com/agent/trace/42")

        assert tracked.last_known_status == "ACTIVE"
        assert (await tracker.run_cache.get_run(7, 42)).status == "ACTIVE"
        assert notifier.sent == []

        source.set_status(42, "COMPLETE")
        result = await tracker.check()

        assert [c.new_status for c in result.changes] == ["COMPLETE"]
        assert notifier.titles == ["Agent Run #42 • Complete"]

    async def test_track_with_notification(self, tracker, source, notifier):
        source.runs[5] = make_run(id=5)
        await tracker.track_run(7, 5, notify=True)
        assert notifier.titles == ["Agent Run #5 • Started"]

    async def test_untrack(self, tracker, source):
        source.runs[5] = make_run(id=5)
        await tracker.track_run(7, 5)

        assert await tracker.untrack(7, 5)
        assert await tracker.tracked_runs(7) == []

    async def test_list_runs_with_filters(self, tracker):
        await tracker.run_cache.set_runs(7, [
            make_run(id=1, status="ACTIVE"),
            make_run(id=2, status="COMPLETE"),
            make_run(id=3, status="COMPLETE"),
        ])

        runs = await tracker.list_runs(
            7,
            RunFilters(statuses={"COMPLETE"}),
            SortOptions(field="status", descending=False),
        )
        assert sorted(r.id for r in runs) == [2, 3]

    async def test_sync_and_state(self, tracker, source):
        source.runs[1] = make_run(id=1, status="ACTIVE")
        await tracker.run_cache.set_runs(7, [source.runs[1]])
        source.set_status(1, "COMPLETE")

        state = await tracker.sync(7)

        assert state.status is SyncStatus.SUCCESS
        assert (await tracker.sync_state(7)).status is SyncStatus.SUCCESS
        assert (await tracker.list_runs(7))[0].status == "COMPLETE"

    async def test_clear_cache(self, tracker):
        await tracker.run_cache.set_runs(7, [make_run(id=1)])
        await tracker.clear_cache(7)
        assert await tracker.list_runs(7) == []

    async def test_create_run_requires_api_client(self, tracker):
        with pytest.raises(OrchestrationError):
            await tracker.create_run(7, "do things")

    async def test_create_run_tracks_and_notifies(self, settings, notifier, clock):
        class FakeAPIClient(AgentRunAPIClient):
            async def create_run(self, organization_id, prompt, images=None):
                return make_run(id=77, status="PENDING", organization_id=organization_id)

        client = FakeAPIClient(APIConfig(api_token="t"))
        tracker = RunTracker(InMemoryStore(), lambda: client, notifier, settings=settings, clock=clock)

        run = await tracker.create_run(7, "do things")

        assert run.id == 77
        assert [t.id for t in await tracker.tracked_runs(7)] == [77]
        assert notifier.titles == ["Agent Run #77 • Started"]

    async def test_start_and_stop(self, tracker, source):
        source.runs[1] = make_run(id=1)
        await tracker.track_run(7, 1)

        tracker.start()
        assert tracker.is_monitoring
        await tracker.stop()
        assert not tracker.is_monitoring

    async def test_context_manager_closes_store(self, settings, source, notifier):
        closed = []

        class ClosingStore(InMemoryStore):
            async def close(self):
                closed.append(True)

        async with RunTracker(ClosingStore(), lambda: source, notifier, settings=settings):
            pass

        assert closed == [True]


class TestFromSettings:
    async def test_missing_token_surfaces_as_sync_error(self, settings):
        """Without a token the client can't be built; sync reports it instead of raising."""
        store = InMemoryStore()
        tracker = RunTracker.from_settings(settings, notifier=RecordingNotifier(), store=store)
        await tracker.run_cache.set_runs(7, [make_run(id=1)])

        state = await tracker.sync(7)

        assert state.status is SyncStatus.ERROR
        assert "API token" in state.error

    async def test_missing_token_fails_only_the_organization(self, settings):
        tracker = RunTracker.from_settings(settings, notifier=RecordingNotifier(), store=InMemoryStore())
        await tracker.registry.track(7, make_run(id=1))

        result = await tracker.check()

        assert result.failed_organizations == [7]

    async def test_injected_source(self, settings):
        source = FakeJobSource(make_run(id=3, status="ACTIVE"))
        tracker = RunTracker.from_settings(
            settings, notifier=RecordingNotifier(), source_factory=lambda: source, store=InMemoryStore()
        )

        tracked = await tracker.track_run(7, 3)

        assert tracked.id == 3
        assert isinstance(tracker.store, InMemoryStore)
