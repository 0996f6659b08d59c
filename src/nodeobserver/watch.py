"""watch() — run a block against an observed node and re-run it on change.

Each cycle opens a recording window, runs the block, closes the window
once the block's result has settled, then diffs the recorded dependencies
against the previous cycle's and moves listeners by exactly that diff.
Any listener firing starts a fresh cycle from an empty dependency set.

Blocks may return an awaitable. The recording window then stays open until
it settles, so reads made after a suspension point are still tracked.

Triggers that arrive while a cycle is in flight are coalesced: the cycle
finishes (including `after`) and then exactly one new cycle runs.
"""

from __future__ import annotations

import asyncio
import inspect
import logging
from typing import Any, Callable

from nodeobserver._tracking import Dependencies, diff_deps, dispatch
from nodeobserver.listeners import apply_listeners
from nodeobserver.observer import ObservedNode, create_observer, is_killed

logger = logging.getLogger("nodeobserver.watch")


class Watcher:
    """Scheduler loop for one watched block. Lives until its observer is killed."""

    __slots__ = ("_observed", "_block", "_after", "_running", "_pending")

    def __init__(
        self,
        observed: ObservedNode,
        block: Callable[[ObservedNode], Any],
        after: Callable[[Any], None] | None = None,
    ) -> None:
        self._observed = observed
        self._block = block
        self._after = after
        self._running = False
        self._pending = False

    def run(self) -> Any:
        """Run one cycle (plus any coalesced re-runs).

        Returns the block's result, or for an awaitable block a future that
        resolves to it once listeners are reconciled and `after` has run.
        """
        return self._cycle(detached=False)

    def trigger(self, *_event) -> None:
        """Event listener installed on every dependency."""
        dispatch(self._fire)

    def _fire(self) -> None:
        if is_killed(self._observed):
            return
        if self._running:
            self._pending = True
            return
        logger.debug("Re-running watcher for %r", self._observed)
        self._cycle(detached=True)

    def _cycle(self, detached: bool) -> Any:
        while True:
            old_deps = self._observed.observe()
            self._running = True
            try:
                result = self._block(self._observed)
                if inspect.isawaitable(result):
                    return self._defer(old_deps, result, detached)
            except BaseException:
                self._settle(old_deps)
                self._done()
                raise
            try:
                if self._settle(old_deps) and self._after is not None:
                    self._after(result)
            except BaseException:
                self._done()
                raise
            if not self._done():
                return result

    def _settle(self, old_deps: Dependencies) -> bool:
        """Close the recording window and reconcile listeners.

        Returns False if the observer was killed; the window is still closed
        so a dependency set shared with live wrappers stops recording.
        """
        if is_killed(self._observed):
            self._observed._deps.active = False
            return False
        new_deps = self._observed.stop_observe()
        apply_listeners(self._observed, diff_deps(old_deps, new_deps), self.trigger)
        return True

    def _done(self) -> bool:
        """End the cycle. Returns whether a coalesced re-run is owed."""
        self._running = False
        rerun, self._pending = self._pending, False
        return rerun and not is_killed(self._observed)

    def _defer(self, old_deps: Dependencies, result: Any, detached: bool) -> asyncio.Future:
        future = asyncio.ensure_future(result)
        outcome = future.get_loop().create_future()

        def on_settled(done: asyncio.Future) -> None:
            try:
                alive = self._settle(old_deps)
                self._deliver(done, outcome, alive)
            finally:
                rerun = self._done()
            if rerun:
                self._fire()

        future.add_done_callback(on_settled)
        if detached:
            outcome.add_done_callback(self._report)
        return outcome

    def _deliver(self, done: asyncio.Future, outcome: asyncio.Future, alive: bool) -> None:
        if done.cancelled():
            outcome.cancel()
            return
        exc = done.exception()
        if exc is None and alive and self._after is not None:
            try:
                self._after(done.result())
            except Exception as after_exc:
                exc = after_exc
        if exc is not None:
            _resolve(outcome, exc=exc)
        else:
            _resolve(outcome, done.result())

    def _report(self, outcome: asyncio.Future) -> None:
        # Re-runs started by a listener have no caller to hand a failure to.
        if outcome.cancelled():
            return
        exc = outcome.exception()
        if exc is not None:
            logger.error("Watched block failed for %r", self._observed, exc_info=exc)

    def __repr__(self) -> str:
        state = "running" if self._running else "idle"
        return f"Watcher({self._observed!r}, {state})"


def _resolve(outcome: asyncio.Future, value: Any = None, exc: BaseException | None = None) -> None:
    if outcome.done():
        return
    if exc is not None:
        outcome.set_exception(exc)
    else:
        outcome.set_result(value)


def watch(
    observed: ObservedNode,
    block: Callable[[ObservedNode], Any],
    after: Callable[[Any], None] | None = None,
) -> Any:
    """Run block(observed) now, then again whenever a dependency it read changes.

    `after`, if given, receives each cycle's (resolved) result once
    listeners have been reconciled. Stop watching with observed.kill().

    Returns the result of the last cycle run before control comes back
    (coalesced re-runs included); for a block returning an awaitable, an
    asyncio.Future carrying the first cycle's result or its exception.

    Usage:
        observed = create_observer(node)
        seen = []
        observed.watch(lambda n: n.value, seen.append)
        # seen == [node.value]; a commit on node appends the new value
        observed.kill()
    """
    if not isinstance(observed, ObservedNode):
        observed = create_observer(observed)
    return Watcher(observed, block, after).run()
