"""nodeobserver: dependency-tracking observers for tree-shaped state nodes."""

from importlib.metadata import version as _version

__version__ = _version("nodeobserver")

from nodeobserver._tracking import Dependencies, diff_deps, set_scheduler
from nodeobserver.node import Node, is_node
from nodeobserver.listeners import Receipts, apply_listeners, remove_listeners
from nodeobserver.observer import (
    ObservedLedger,
    ObservedNode,
    ObservedProps,
    RevokedAccess,
    create_observer,
    is_killed,
)
from nodeobserver.watch import Watcher, watch

__all__ = [
    "Dependencies",
    "diff_deps",
    "set_scheduler",
    "Node",
    "is_node",
    "Receipts",
    "apply_listeners",
    "remove_listeners",
    "ObservedNode",
    "ObservedProps",
    "ObservedLedger",
    "RevokedAccess",
    "create_observer",
    "is_killed",
    "Watcher",
    "watch",
]
