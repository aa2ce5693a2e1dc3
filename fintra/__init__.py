"""
Fintra - Source Package

Client-side data synchronization for a personal and organization finance
tracker. Business logic (balances, budget prediction, net-worth history,
membership) runs in the remote data service; this package renders state
from a workspace-scoped session cache, revalidates it, and applies
user mutations optimistically with exact rollback.

DESIGN PRINCIPLES:
1. A cached snapshot is always a real server response
2. One workspace's data never shows up under another workspace
3. The newest fetch wins
4. Optimistic changes are reconciled against the server, never trusted
5. Remote error messages reach the user verbatim
"""

__version__ = "1.0.0"
__author__ = "Fintra Team"
