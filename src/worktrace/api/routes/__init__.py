"""
API routes for WorkTrace.
"""

from worktrace.api.routes import activity, allocations, work_items, workspaces

__all__ = [
    "activity",
    "allocations",
    "work_items",
    "workspaces",
]
