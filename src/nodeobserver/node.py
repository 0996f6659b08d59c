"""Protocols for the state node an observer wraps.

nodeobserver does not ship a node implementation. Anything matching Node
can be observed: it must hash by identity, expose a committed and an
uncommitted value, a props bag, a counter ledger, and an event bus that
emits at least ``commit``, ``input``, ``prop:<name>`` and ``count:<key>``.
"""

from __future__ import annotations

from typing import Any, Callable, Hashable, Protocol, runtime_checkable


class Ledger(Protocol):
    def value(self, key: str) -> int: ...


@runtime_checkable
class Node(Protocol):
    value: Any
    input_value: Any
    props: Any
    ledger: Ledger

    def on(self, event: str, listener: Callable[..., Any]) -> Hashable: ...

    def off(self, receipt: Hashable) -> None: ...


def is_node(value: object) -> bool:
    """True for raw nodes. Observed wrappers are not nodes."""
    from nodeobserver.observer import ObservedNode

    if isinstance(value, ObservedNode):
        return False
    return isinstance(value, Node)
