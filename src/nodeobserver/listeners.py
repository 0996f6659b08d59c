"""Listener reconciliation — keep live subscriptions in step with dependencies.

Every ObservedNode owns a Receipts registry: node -> {event: receipt},
holding the receipt its event bus returned for each live subscription.
apply_listeners() moves the registry by one diff; remove_listeners() tears
it down entirely.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any, Callable, Hashable

if TYPE_CHECKING:
    from nodeobserver._tracking import DiffPair
    from nodeobserver.node import Node
    from nodeobserver.observer import ObservedNode

logger = logging.getLogger("nodeobserver.listeners")

Receipts = dict["Node", dict[str, Hashable]]

_MISSING = object()


def apply_listeners(
    observed: ObservedNode,
    diff: DiffPair,
    callback: Callable[..., Any],
) -> None:
    """Subscribe callback to every pair in to_add, unsubscribe every pair in to_remove.

    A pair already holding a receipt is unsubscribed before being replaced.
    Removing a pair with no receipt does nothing.
    """
    to_add, to_remove = diff
    receipts = observed.receipts
    added = removed = 0

    for node, events in to_add.items():
        for event in events:
            node_receipts = receipts.setdefault(node, {})
            stale = node_receipts.get(event, _MISSING)
            if stale is not _MISSING:
                node.off(stale)
            node_receipts[event] = node.on(event, callback)
            added += 1

    for node, events in to_remove.items():
        node_receipts = receipts.get(node)
        if node_receipts is None:
            continue
        for event in events:
            receipt = node_receipts.pop(event, _MISSING)
            if receipt is not _MISSING:
                node.off(receipt)
                removed += 1
        if not node_receipts:
            del receipts[node]

    if added or removed:
        logger.debug("Reconciled: +%d -%d listeners", added, removed)


def remove_listeners(receipts: Receipts) -> None:
    """Unsubscribe every receipt and empty the registry."""
    for node, events in receipts.items():
        for receipt in events.values():
            node.off(receipt)
    receipts.clear()
