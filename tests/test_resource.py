"""
Tests for SyncedResource: cache-first loading, batch failure, timeouts,
stale-response handling, the refresh subscription and mutations.
"""

import asyncio
from unittest.mock import AsyncMock

import pytest

from fintra.models.audit import AuditEventType
from fintra.services.remote import RemoteConnectionError, RemoteServiceError
from fintra.sync import BatchRead, MutationError, SyncedResource, without_item


ACCOUNTS = [{"id": "a1", "balance": "100"}, {"id": "a2", "balance": "50"}]


def make_resource(cache, refresh_signal, audit_logger, reads, **kwargs):
    return SyncedResource(
        "accounts_data",
        "ws1",
        reads,
        cache,
        refresh_signal,
        audit_logger=audit_logger,
        **kwargs,
    )


@pytest.fixture
def accounts_read():
    return AsyncMock(return_value=ACCOUNTS)


@pytest.fixture
def incomes_read():
    return AsyncMock(return_value=[])


@pytest.fixture
def resource(cache, refresh_signal, audit_logger, accounts_read, incomes_read):
    return make_resource(
        cache,
        refresh_signal,
        audit_logger,
        [
            BatchRead("accounts", accounts_read),
            BatchRead("recurring_incomes", incomes_read),
        ],
    )


class TestLoading:
    """Tests for the load contract."""

    @pytest.mark.asyncio
    async def test_initial_load_without_cache(self, resource, cache):
        """Test that a first load blocks, then commits to state and cache."""
        task = resource.mount()
        assert resource.state.loading
        assert resource.state.data is None

        await task

        assert not resource.state.loading
        assert resource.state.loaded
        assert resource.state.data == {"accounts": ACCOUNTS, "recurring_incomes": []}
        assert cache.read("accounts_data", "ws1") == resource.state.data

    @pytest.mark.asyncio
    async def test_cached_snapshot_paints_first(self, resource, cache, accounts_read):
        """Test that cached data shows immediately and is then replaced."""
        cache.write("accounts_data", "ws1", {"accounts": [{"id": "old"}], "recurring_incomes": []})

        task = resource.mount()
        assert resource.state.data["accounts"] == [{"id": "old"}]
        assert not resource.state.loading

        await task
        assert resource.state.data["accounts"] == ACCOUNTS
        accounts_read.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_cache_of_other_workspace_is_ignored(self, resource, cache):
        """Test that a snapshot cached for another workspace is never shown."""
        cache.write("accounts_data", "ws2", {"accounts": [{"id": "foreign"}]})
        resource.mount()
        assert resource.state.data is None
        await resource.settle()
        assert resource.state.data["accounts"] == ACCOUNTS

    @pytest.mark.asyncio
    async def test_failed_read_fails_the_batch(self, resource, incomes_read):
        """Test that one failing read leaves no data and a blocking error."""
        incomes_read.side_effect = RemoteServiceError("permission denied")

        await resource.load()

        assert resource.state.data is None
        assert resource.state.blocking_error == "Recurring Incomes: permission denied"
        assert resource.state.error_banner is None
        assert not resource.state.loading

    @pytest.mark.asyncio
    async def test_unexpected_read_error_is_a_page_error(self, resource, incomes_read, recent_events):
        """Test that a non-remote exception still ends the load with an error."""
        incomes_read.side_effect = ValueError("Expecting value")

        await resource.load()

        assert resource.state.data is None
        assert resource.state.blocking_error == "Recurring Incomes: unexpected error (ValueError)"
        assert resource.state.loaded
        assert not resource.state.loading
        assert recent_events.recent(1)[0].event_type == AuditEventType.FETCH_FAILED

    @pytest.mark.asyncio
    async def test_failure_keeps_cached_data(self, resource, cache, accounts_read, recent_events):
        """Test that a failed revalidation keeps stale data and shows a banner."""
        cached = {"accounts": [{"id": "old"}], "recurring_incomes": []}
        cache.write("accounts_data", "ws1", cached)
        accounts_read.side_effect = RemoteConnectionError("network error")

        await resource.load()

        assert resource.state.data == cached
        assert resource.state.error_banner == "Accounts: network error"
        assert resource.state.blocking_error is None
        assert cache.read("accounts_data", "ws1") == cached
        assert AuditEventType.FETCH_FAILED in [e.event_type for e in recent_events.recent()]

    @pytest.mark.asyncio
    async def test_timeout(self, cache, refresh_signal, audit_logger, recent_events):
        """Test that a slow batch fails with a timeout message."""

        async def never():
            await asyncio.sleep(10)

        resource = make_resource(
            cache, refresh_signal, audit_logger,
            [BatchRead("accounts", never)],
            fetch_timeout=0.05,
        )
        await resource.load()

        assert resource.state.error == "Request timed out after 0.05 seconds"
        assert not resource.state.loading
        assert recent_events.recent(1)[0].event_type == AuditEventType.FETCH_TIMED_OUT

    @pytest.mark.asyncio
    async def test_other_reads_cancelled_on_failure(self, cache, refresh_signal, audit_logger):
        """Test that sibling reads are cancelled when one read fails."""
        cancelled = asyncio.Event()

        async def slow():
            try:
                await asyncio.sleep(10)
            except asyncio.CancelledError:
                cancelled.set()
                raise

        async def failing():
            raise RemoteServiceError("boom")

        resource = make_resource(
            cache, refresh_signal, audit_logger,
            [BatchRead("goals", slow), BatchRead("accounts", failing)],
        )
        await resource.load()
        await asyncio.sleep(0)

        assert resource.state.error == "Accounts: boom"
        assert cancelled.is_set()

    @pytest.mark.asyncio
    async def test_forced_refresh_keeps_data_visible(self, resource, accounts_read):
        """Test that a forced fetch flips refreshing rather than clearing data."""
        await resource.load()
        seen = {}

        async def observe():
            seen["refreshing"] = resource.state.refreshing
            seen["data"] = resource.state.data
            return ACCOUNTS

        accounts_read.side_effect = observe
        await resource.refresh()

        assert seen["refreshing"] is True
        assert seen["data"] is not None
        assert not resource.state.refreshing

    @pytest.mark.asyncio
    async def test_stale_response_is_discarded(self, cache, refresh_signal, audit_logger, recent_events):
        """Test that an older fetch finishing last does not overwrite newer data."""
        gate = asyncio.Event()
        calls = 0

        async def accounts():
            nonlocal calls
            calls += 1
            if calls == 1:
                await gate.wait()
                return [{"id": "old"}]
            return [{"id": "new"}]

        resource = make_resource(cache, refresh_signal, audit_logger, [BatchRead("accounts", accounts)])
        first = asyncio.ensure_future(resource.load())
        for _ in range(5):
            await asyncio.sleep(0)

        await resource.refresh()
        gate.set()
        await first

        assert resource.state.data == {"accounts": [{"id": "new"}]}
        assert cache.read("accounts_data", "ws1") == {"accounts": [{"id": "new"}]}
        assert AuditEventType.STALE_RESPONSE_DISCARDED in [
            e.event_type for e in recent_events.recent()
        ]


class TestRefreshSubscription:
    """Tests for the refresh-signal contract."""

    @pytest.mark.asyncio
    async def test_increment_triggers_one_forced_fetch(self, resource, refresh_signal, accounts_read):
        """Test that each increment causes exactly one re-fetch."""
        await resource.mount()

        refresh_signal.increment()
        await resource.settle()
        assert accounts_read.await_count == 2

        refresh_signal.increment()
        await resource.settle()
        assert accounts_read.await_count == 3

    @pytest.mark.asyncio
    async def test_one_increment_refreshes_each_loaded_page_once(self, cache, refresh_signal, audit_logger):
        """Test that mounted, loaded pages re-fetch once and the others not at all."""
        gate = asyncio.Event()
        counts = {"dashboard": 0, "accounts_data": 0, "financial_goals": 0, "emis": 0}

        def build(feature, wait=False):
            async def fetch():
                counts[feature] += 1
                if wait:
                    await gate.wait()
                return []

            return SyncedResource(
                feature, "ws1", [BatchRead("items", fetch)], cache, refresh_signal,
                audit_logger=audit_logger,
            )

        dashboard = build("dashboard")
        accounts = build("accounts_data")
        goals = build("financial_goals")
        emis = build("emis", wait=True)

        await dashboard.mount()
        await accounts.mount()
        await goals.mount()
        goals.unmount()
        emis_task = emis.mount()
        await asyncio.sleep(0)
        assert emis.state.loading
        assert refresh_signal.subscriber_count == 3

        refresh_signal.increment()
        await dashboard.settle()
        await accounts.settle()
        gate.set()
        await emis_task
        await emis.settle()
        await goals.settle()

        assert counts == {"dashboard": 2, "accounts_data": 2, "financial_goals": 1, "emis": 1}

    @pytest.mark.asyncio
    async def test_mount_does_not_replay_earlier_increments(self, resource, refresh_signal, accounts_read):
        """Test that a counter already above zero does not force a fetch on mount."""
        refresh_signal.increment()
        refresh_signal.increment()

        await resource.mount()
        await resource.settle()
        assert accounts_read.await_count == 1

    @pytest.mark.asyncio
    async def test_increment_ignored_before_initial_load(self, cache, refresh_signal, audit_logger):
        """Test that a refresh during the initial load does not start a second fetch."""
        gate = asyncio.Event()
        calls = []

        async def fetch():
            calls.append(1)
            await gate.wait()
            return []

        resource = make_resource(cache, refresh_signal, audit_logger, [BatchRead("accounts", fetch)])

        task = resource.mount()
        await asyncio.sleep(0)
        refresh_signal.increment()
        gate.set()
        await task
        await resource.settle()

        assert len(calls) == 1

    @pytest.mark.asyncio
    async def test_unmount_cancels_and_unsubscribes(self, cache, refresh_signal, audit_logger):
        """Test that unmounting cancels the in-flight load and ignores later refreshes."""
        async def fetch():
            await asyncio.sleep(10)

        resource = make_resource(cache, refresh_signal, audit_logger, [BatchRead("accounts", fetch)])

        task = resource.mount()
        await asyncio.sleep(0)
        resource.unmount()

        with pytest.raises(asyncio.CancelledError):
            await task
        assert not resource.state.loading
        assert refresh_signal.subscriber_count == 0
        assert cache.read("accounts_data", "ws1") is None

    def test_without_running_loop_settle_performs_pending_loads(self, resource, refresh_signal, accounts_read):
        """Test the deferred path used by the Streamlit shell."""
        assert resource.mount() is None
        assert accounts_read.await_count == 0

        asyncio.run(resource.settle())
        assert resource.state.data["accounts"] == ACCOUNTS

        refresh_signal.increment()
        refresh_signal.increment()
        asyncio.run(resource.settle())
        assert accounts_read.await_count == 2

        asyncio.run(resource.settle())
        assert accounts_read.await_count == 2


class TestMutations:
    """Tests for mutate and submit."""

    @pytest.mark.asyncio
    async def test_mutate_before_load_raises(self, resource):
        """Test that nothing can be mutated before data is shown."""

        async def remote_call():
            return None

        with pytest.raises(RuntimeError):
            await resource.mutate(lambda s: s, remote_call, "noop")

    @pytest.mark.asyncio
    async def test_failed_mutation_rolls_back_and_never_caches(self, resource, cache, recent_events):
        """Test that the optimistic state is visible, then undone with the server message."""
        await resource.load()
        server_snapshot = resource.state.data
        seen = {}

        async def remote_call():
            seen["data"] = resource.state.data
            seen["cached"] = cache.read("accounts_data", "ws1")
            raise RemoteConnectionError("network error")

        result = await resource.mutate(
            lambda s: without_item(s, "accounts", "a2"),
            remote_call,
            "delete account a2",
        )

        assert [a["id"] for a in seen["data"]["accounts"]] == ["a1"]
        assert seen["cached"] == server_snapshot
        assert not result.applied
        assert resource.state.data == server_snapshot
        assert resource.state.mutation_error == "network error"
        assert not resource.state.mutating
        assert recent_events.recent(1)[0].event_type == AuditEventType.MUTATION_ROLLED_BACK

        resource.dismiss_mutation_error()
        assert resource.state.mutation_error is None

    @pytest.mark.asyncio
    async def test_confirmed_mutation_revalidates(self, resource, accounts_read, cache):
        """Test that success is followed by a forced fetch of server truth."""
        await resource.load()
        accounts_read.return_value = [{"id": "a1", "balance": "100"}]

        async def remote_call():
            return None

        result = await resource.mutate(
            lambda s: without_item(s, "accounts", "a2"),
            remote_call,
            "delete account a2",
        )

        assert result.applied
        assert accounts_read.await_count == 2
        assert resource.state.data["accounts"] == [{"id": "a1", "balance": "100"}]
        assert cache.read("accounts_data", "ws1")["accounts"] == [{"id": "a1", "balance": "100"}]

    @pytest.mark.asyncio
    async def test_mutation_timeout(self, cache, refresh_signal, audit_logger, accounts_read):
        """Test that a hanging write is rolled back with a timeout message."""
        resource = make_resource(
            cache, refresh_signal, audit_logger,
            [BatchRead("accounts", accounts_read)],
            mutation_timeout=0.05,
        )
        await resource.load()

        async def remote_call():
            await asyncio.sleep(10)

        result = await resource.mutate(lambda s: {}, remote_call, "hang")

        assert not result.applied
        assert resource.state.mutation_error == "Request timed out after 0.05 seconds"
        assert resource.state.data == {"accounts": ACCOUNTS}

    @pytest.mark.asyncio
    async def test_submit_failure_raises_with_server_message(self, resource, accounts_read):
        """Test that a failed create surfaces the server's message."""
        await resource.load()

        async def remote_call():
            raise RemoteServiceError("Account name already exists")

        with pytest.raises(MutationError, match="Account name already exists"):
            await resource.submit(remote_call, "add account")
        assert accounts_read.await_count == 1
        assert not resource.state.mutating

    @pytest.mark.asyncio
    async def test_submit_success_revalidates(self, resource, accounts_read):
        """Test that a create is followed by a forced fetch."""
        await resource.load()

        async def remote_call():
            return "new-id"

        assert await resource.submit(remote_call, "add account") == "new-id"
        assert accounts_read.await_count == 2
