"""
Shared fixtures.

No real network calls are made: the remote data service is an AsyncMock
restricted to the interface, and every read returns an empty list
unless a test says otherwise.
"""

from unittest.mock import AsyncMock

import pytest

from fintra.audit import AuditLogger, RecentEventsSink
from fintra.services.remote import RemoteDataService
from fintra.sync import RefreshSignal, SyncService, WorkspaceCache


LIST_READS = (
    "get_workspaces",
    "get_workspace_members",
    "get_accounts",
    "get_accounts_in_workspaces",
    "get_account_workspaces",
    "get_expenses",
    "get_expenses_between",
    "get_topups",
    "get_recurring_incomes",
    "get_goals",
    "get_emis",
    "get_category_budgets",
    "get_predicted_budgets",
    "get_net_worth_history",
)


@pytest.fixture
def recent_events():
    return RecentEventsSink()


@pytest.fixture
def audit_logger(recent_events):
    return AuditLogger([recent_events])


@pytest.fixture
def storage():
    return {}


@pytest.fixture
def cache(storage, audit_logger):
    return WorkspaceCache(storage, audit_logger=audit_logger)


@pytest.fixture
def refresh_signal(audit_logger):
    return RefreshSignal(audit_logger)


@pytest.fixture
def sync(cache, refresh_signal, audit_logger):
    return SyncService(
        cache,
        refresh_signal,
        fetch_timeout=1.0,
        mutation_timeout=1.0,
        audit_logger=audit_logger,
    )


@pytest.fixture
def remote():
    service = AsyncMock(spec=RemoteDataService)
    for name in LIST_READS:
        getattr(service, name).return_value = []
    service.get_user_profile.return_value = None
    return service

