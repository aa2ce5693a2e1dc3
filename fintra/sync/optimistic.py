"""
Optimistic mutation helper.

Every optimistic write in the app goes through `optimistic_mutate`:

1. Keep an exact copy of the current snapshot
2. Publish `apply(current)` immediately
3. Await the remote call
4. On a remote failure publish the kept copy and report the message

Concurrent mutations are not serialized here; the forced revalidation that
follows a success is what re-establishes server truth.
"""

import copy
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Optional

from fintra.services.remote import RemoteServiceError


Snapshot = Any
ApplyFn = Callable[[Snapshot], Snapshot]
RemoteCall = Callable[[], Awaitable[Any]]


@dataclass(frozen=True)
class MutationResult:
    """Outcome of an optimistic mutation as the user sees it."""

    applied: bool
    error: Optional[str] = None


async def optimistic_mutate(
    current: Snapshot,
    apply: ApplyFn,
    remote_call: RemoteCall,
    publish: Callable[[Snapshot], None],
) -> MutationResult:
    """
    Apply a change locally, confirm it remotely, roll back on failure.

    Remote failures are returned, not raised. Any other exception (including
    cancellation) restores the snapshot and propagates.
    """
    before = copy.deepcopy(current)
    publish(apply(current))

    try:
        await remote_call()
    except RemoteServiceError as e:
        publish(before)
        return MutationResult(applied=False, error=str(e))
    except BaseException:
        publish(before)
        raise

    return MutationResult(applied=True)
