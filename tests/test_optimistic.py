"""Tests for optimistic mutations and the snapshot transforms they apply."""

import asyncio

import pytest

from fintra.services.remote import NotFoundError, RemoteConnectionError
from fintra.sync import (
    add_money,
    optimistic_mutate,
    with_balance_adjusted,
    with_collection,
    with_item_replaced,
    with_nested_item_removed,
    without_item,
    without_related,
)


def accounts_snapshot():
    return {
        "accounts": [
            {"id": "a1", "name": "Checking", "balance": "100.00"},
            {"id": "a2", "name": "Savings", "balance": "250.00"},
        ],
        "recurring_incomes": [
            {"id": "r1", "account_id": "a2", "amount": "50"},
            {"id": "r2", "account_id": "a1", "amount": "10"},
        ],
    }


class TestOptimisticMutate:
    """Tests for optimistic_mutate."""

    @pytest.mark.asyncio
    async def test_success_keeps_applied_state(self):
        """Test that a confirmed change stays published."""
        published = []

        async def remote_call():
            return None

        result = await optimistic_mutate(
            accounts_snapshot(),
            lambda s: without_item(s, "accounts", "a2"),
            remote_call,
            published.append,
        )

        assert result.applied
        assert result.error is None
        assert len(published) == 1
        assert [a["id"] for a in published[0]["accounts"]] == ["a1"]

    @pytest.mark.asyncio
    async def test_failure_restores_exact_snapshot(self):
        """Test the delete-account rollback: a2 vanishes, then returns with its incomes."""
        before = accounts_snapshot()
        published = []

        async def remote_call():
            raise RemoteConnectionError("network error")

        def apply(snapshot):
            snapshot = without_item(snapshot, "accounts", "a2")
            return without_related(snapshot, "recurring_incomes", "account_id", "a2")

        result = await optimistic_mutate(before, apply, remote_call, published.append)

        assert not result.applied
        assert result.error == "network error"
        assert [a["id"] for a in published[0]["accounts"]] == ["a1"]
        assert [r["id"] for r in published[0]["recurring_incomes"]] == ["r2"]
        assert published[-1] == accounts_snapshot()

    @pytest.mark.asyncio
    async def test_restored_snapshot_is_a_copy(self):
        """Test that an apply function mutating its input cannot corrupt the rollback."""
        published = []

        def destructive_apply(snapshot):
            snapshot["accounts"].clear()
            return snapshot

        async def remote_call():
            raise NotFoundError("gone")

        await optimistic_mutate(accounts_snapshot(), destructive_apply, remote_call, published.append)
        assert published[-1] == accounts_snapshot()

    @pytest.mark.asyncio
    async def test_cancellation_restores_and_propagates(self):
        """Test that a cancelled remote call rolls back and re-raises."""
        published = []

        async def remote_call():
            raise asyncio.CancelledError()

        with pytest.raises(asyncio.CancelledError):
            await optimistic_mutate(
                accounts_snapshot(),
                lambda s: without_item(s, "accounts", "a1"),
                remote_call,
                published.append,
            )
        assert published[-1] == accounts_snapshot()

    @pytest.mark.asyncio
    async def test_unexpected_error_propagates(self):
        """Test that programming errors are not turned into banners."""
        published = []

        async def remote_call():
            raise KeyError("boom")

        with pytest.raises(KeyError):
            await optimistic_mutate({"x": []}, lambda s: {"x": [1]}, remote_call, published.append)
        assert published == [{"x": [1]}, {"x": []}]


class TestTransforms:
    """Tests for snapshot transforms."""

    def test_without_item_leaves_input_untouched(self):
        """Test that transforms return a new snapshot."""
        snapshot = accounts_snapshot()
        updated = without_item(snapshot, "accounts", "a1")

        assert [a["id"] for a in updated["accounts"]] == ["a2"]
        assert len(snapshot["accounts"]) == 2
        assert updated["recurring_incomes"] is snapshot["recurring_incomes"]

    def test_without_item_missing_collection(self):
        """Test that removing from an absent collection yields an empty one."""
        assert without_item({}, "goals", "g1") == {"goals": []}

    def test_with_item_replaced_merges_in_place(self):
        """Test that replacement keeps position and unspecified fields."""
        updated = with_item_replaced(accounts_snapshot(), "accounts", {"id": "a1", "name": "Main"})
        assert updated["accounts"][0] == {"id": "a1", "name": "Main", "balance": "100.00"}
        assert updated["accounts"][1]["id"] == "a2"

    def test_with_collection(self):
        """Test that a collection is replaced wholesale."""
        updated = with_collection(accounts_snapshot(), "budgets", ({"category": "Dining"},))
        assert updated["budgets"] == [{"category": "Dining"}]

    def test_balance_adjusted_keeps_string_money(self):
        """Test that decimal strings stay decimal strings."""
        updated = with_balance_adjusted(accounts_snapshot(), "a1", "25.50")
        assert updated["accounts"][0]["balance"] == "125.50"
        assert updated["accounts"][1]["balance"] == "250.00"

    def test_add_money_numbers(self):
        """Test that numeric balances stay numeric."""
        assert add_money(10, "2.5") == 12.5
        assert add_money(None, 3) == 3.0

    def test_nested_item_removed(self):
        """Test removal of a payment from its goal."""
        snapshot = {
            "goals": [
                {"id": "g1", "goal_payments": [{"id": "p1"}, {"id": "p2"}]},
                {"id": "g2", "goal_payments": [{"id": "p1"}]},
            ]
        }
        updated = with_nested_item_removed(snapshot, "goals", "g1", "goal_payments", "p1")

        assert updated["goals"][0]["goal_payments"] == [{"id": "p2"}]
        assert updated["goals"][1]["goal_payments"] == [{"id": "p1"}]
        assert len(snapshot["goals"][0]["goal_payments"]) == 2
