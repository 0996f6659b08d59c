"""Observed nodes — wrappers that record which parts of a node were read.

An ObservedNode stands in for a node inside a watched block. Reads of
the committed value, the uncommitted value, named props and named ledger
counters are recorded as (node, event) dependencies in a Dependencies map
shared by the whole tree of wrappers a watcher creates. Child nodes are
wrapped lazily, on first read, into wrappers sharing that same map.

All wrapper state is fixed at construction; kill() revokes the wrapper's
token in _anchor and every later use raises RevokedAccess.
"""

from __future__ import annotations

import functools
import logging
from typing import TYPE_CHECKING, Any, Callable, Iterator

from nodeobserver import _anchor
from nodeobserver._tracking import Dependencies
from nodeobserver.listeners import Receipts, remove_listeners
from nodeobserver.node import is_node

if TYPE_CHECKING:
    from nodeobserver.node import Node

logger = logging.getLogger("nodeobserver.observer")


class RevokedAccess(RuntimeError):
    """An observed node was used after kill()."""


class ObservedNode:
    """A node wrapper that records its reads as dependencies."""

    __slots__ = ("_id", "_node", "_deps", "_owns_deps", "_receipts")

    def __init__(self, node: Node, dependencies: Dependencies | None = None) -> None:
        object.__setattr__(self, "_id", _anchor.new_id())
        object.__setattr__(self, "_node", node)
        object.__setattr__(self, "_owns_deps", dependencies is None)
        object.__setattr__(
            self, "_deps", dependencies if dependencies is not None else Dependencies()
        )
        object.__setattr__(self, "_receipts", {})

    def _check(self) -> None:
        if self._id in _anchor.revoked:
            raise RevokedAccess(f"observer for {self._node!r} was killed")

    def _record(self, event: str) -> None:
        self._deps.record(self._node, event)

    def _classify(self, value: Any, name: str) -> Any:
        """Route a value read under `name` through dependency recording."""
        if is_node(value):
            return ObservedNode(value, self._deps)
        if name == "value":
            self._record("commit")
        elif name == "input_value":
            self._record("input")
        elif name == "props":
            return ObservedProps(self, value)
        elif name == "ledger":
            return ObservedLedger(self, value)
        return value

    # --- Tracked node surface ---

    @property
    def value(self) -> Any:
        """The committed value. Records ``commit``."""
        self._check()
        return self._classify(self._node.value, "value")

    @property
    def input_value(self) -> Any:
        """The uncommitted value. Records ``input``."""
        self._check()
        return self._classify(self._node.input_value, "input_value")

    @property
    def props(self) -> ObservedProps:
        self._check()
        return self._classify(self._node.props, "props")

    @property
    def ledger(self) -> ObservedLedger:
        self._check()
        return self._classify(self._node.ledger, "ledger")

    def __getattr__(self, name: str) -> Any:
        # Only reached for members not defined on the wrapper itself.
        if name.startswith("__") or name in ObservedNode.__slots__:
            raise AttributeError(name)
        self._check()
        member = getattr(self._node, name)
        if callable(member) and not is_node(member):

            @functools.wraps(member)
            def call(*args, **kwargs):
                self._check()
                return self._classify(member(*args, **kwargs), name)

            return call
        return self._classify(member, name)

    def __setattr__(self, name: str, value: Any) -> None:
        self._check()
        setattr(self._node, name, value)

    # --- Observer surface ---

    @property
    def raw_node(self) -> Node:
        self._check()
        return self._node

    @property
    def dependencies(self) -> Dependencies:
        self._check()
        return self._deps

    @property
    def receipts(self) -> Receipts:
        self._check()
        return self._receipts

    def observe(self) -> Dependencies:
        """Open a recording window. Returns what the last window recorded."""
        self._check()
        old = self._deps.snapshot()
        self._deps.clear()
        self._deps.active = True
        return old

    def stop_observe(self) -> Dependencies:
        """Close the recording window. Returns what it recorded."""
        self._check()
        recorded = self._deps.snapshot()
        self._deps.active = False
        return recorded

    def watch(
        self,
        block: Callable[[ObservedNode], Any],
        after: Callable[[Any], None] | None = None,
    ) -> Any:
        """Run block now and again whenever something it read changes.

        See nodeobserver.watch.watch for the return value.
        """
        self._check()
        from nodeobserver.watch import watch

        return watch(self, block, after)

    def kill(self) -> None:
        """Drop every listener and revoke this wrapper. Safe to repeat."""
        remove_listeners(self._receipts)
        if self._owns_deps:
            self._deps.active = False
        if self._id not in _anchor.revoked:
            _anchor.revoked.add(self._id)
            logger.debug("Killed observer %d for %r", self._id, self._node)
        return None

    def __repr__(self) -> str:
        state = "killed" if self._id in _anchor.revoked else "live"
        return f"ObservedNode({self._node!r}, {state})"


class ObservedProps:
    """A node's props bag. Reading name `k` records ``prop:k`` on the owner."""

    __slots__ = ("_owner", "_props")

    def __init__(self, owner: ObservedNode, props: Any) -> None:
        object.__setattr__(self, "_owner", owner)
        object.__setattr__(self, "_props", props)

    def _read(self, key: str) -> None:
        self._owner._check()
        self._owner._record(f"prop:{key}")

    def __getattr__(self, name: str) -> Any:
        if name.startswith("__") or name in ObservedProps.__slots__:
            raise AttributeError(name)
        self._read(name)
        return getattr(self._props, name)

    def __getitem__(self, key: str) -> Any:
        self._read(key)
        return self._props[key]

    def get(self, key: str, default: Any = None) -> Any:
        self._read(key)
        return self._props.get(key, default)

    def __contains__(self, key: str) -> bool:
        self._read(key)
        return key in self._props

    # Whole-bag reads record every key they expose.

    def __iter__(self) -> Iterator[str]:
        self._owner._check()
        for key in list(self._props):
            self._read(key)
            yield key

    def __len__(self) -> int:
        return len(self.keys())

    def keys(self) -> list[str]:
        return [key for key in self]

    def values(self) -> list[Any]:
        return [self._props[key] for key in self]

    def items(self) -> list[tuple[str, Any]]:
        return [(key, self._props[key]) for key in self]

    def __setattr__(self, name: str, value: Any) -> None:
        self._owner._check()
        setattr(self._props, name, value)

    def __setitem__(self, key: str, value: Any) -> None:
        self._owner._check()
        self._props[key] = value

    def __repr__(self) -> str:
        return f"ObservedProps({self._props!r})"


class ObservedLedger:
    """A node's counter ledger. value(k) records ``count:k`` on the owner."""

    __slots__ = ("_owner", "_ledger")

    def __init__(self, owner: ObservedNode, ledger: Any) -> None:
        self._owner = owner
        self._ledger = ledger

    def value(self, key: str) -> int:
        self._owner._check()
        self._owner._record(f"count:{key}")
        return self._ledger.value(key)

    def __getattr__(self, name: str) -> Any:
        if name.startswith("__"):
            raise AttributeError(name)
        self._owner._check()
        return getattr(self._ledger, name)

    def __repr__(self) -> str:
        return f"ObservedLedger({self._ledger!r})"


def create_observer(node: Node, dependencies: Dependencies | None = None) -> ObservedNode:
    """Wrap node in an ObservedNode.

    Pass `dependencies` to join an existing tracking tree; otherwise the
    new wrapper owns a fresh, inactive Dependencies map.
    """
    if isinstance(node, ObservedNode):
        node = node.raw_node
    return ObservedNode(node, dependencies)


def is_killed(target: ObservedNode | int) -> bool:
    """Whether an observer (or its token) has been killed."""
    token = target if isinstance(target, int) else target._id
    return token in _anchor.revoked
