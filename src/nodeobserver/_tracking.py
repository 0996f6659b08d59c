"""Dependency tracking engine — the heart of nodeobserver.

A Dependencies map is shared by every wrapper created while one watcher
traverses its node tree. Reads only land in it while it is active (the
recording window opened by observe() and closed by stop_observe()).

Re-runs triggered by node events go through dispatch(): once
set_scheduler() has been called, triggers fired from a background thread
are marshaled onto the scheduler thread.
"""

from __future__ import annotations

import threading
from typing import TYPE_CHECKING, Callable

if TYPE_CHECKING:
    from nodeobserver.node import Node

DiffPair = tuple["Dependencies", "Dependencies"]


class Dependencies(dict):
    """Mapping of node -> set of event names, plus a recording flag."""

    def __init__(self, *args, active: bool = False, **kwargs) -> None:
        super().__init__(*args, **kwargs)
        self.active = active

    def record(self, node: Node, event: str) -> None:
        """Add (node, event). Does nothing outside a recording window."""
        if not self.active:
            return
        self.setdefault(node, set()).add(event)

    def snapshot(self) -> Dependencies:
        """Inactive copy whose event sets are independent of ours."""
        return Dependencies({node: set(events) for node, events in self.items()})

    def __repr__(self) -> str:
        state = "active" if self.active else "inactive"
        return f"Dependencies({dict.__repr__(self)}, {state})"


def diff_deps(previous: dict, current: dict) -> DiffPair:
    """Split the change between two dependency maps into (to_add, to_remove).

    Nodes present in both maps always get an entry on both sides, possibly
    an empty set. Neither input is mutated.
    """
    to_add = Dependencies()
    to_remove = Dependencies()
    for node, events in current.items():
        if node not in previous:
            to_add[node] = set(events)
        else:
            to_add[node] = events - previous[node]
    for node, events in previous.items():
        if node not in current:
            to_remove[node] = set(events)
        else:
            to_remove[node] = events - current[node]
    return to_add, to_remove


# ─── Thread marshaling ───────────────────────────────────────────────────────
_scheduler: Callable[[Callable[[], None]], object] | None = None
_scheduler_thread: threading.Thread | None = None


def set_scheduler(scheduler) -> None:
    """Set the global thread scheduler for cross-thread re-runs.

    Call once from the thread that owns the watched nodes:
        nodeobserver.set_scheduler(loop.call_soon_threadsafe)

    After this, a node event fired from another thread re-runs its watcher
    through the scheduler. Same-thread triggers stay synchronous.
    """
    global _scheduler, _scheduler_thread
    _scheduler = scheduler
    _scheduler_thread = threading.current_thread()


def dispatch(fn: Callable[[], None]) -> None:
    if _scheduler is not None and threading.current_thread() != _scheduler_thread:
        _scheduler(fn)
    else:
        fn()
