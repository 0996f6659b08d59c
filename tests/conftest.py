"""Shared fixtures: a minimal state node with a dict-based event bus."""

import itertools

import pytest

from nodeobserver import _tracking


class Props(dict):
    """Props bag supporting both props.name and props["name"]."""

    def __getattr__(self, name):
        try:
            return self[name]
        except KeyError:
            raise AttributeError(name) from None

    def __setattr__(self, name, value):
        self[name] = value


class Ledger:
    def __init__(self):
        self.counts = {}

    def value(self, key):
        return self.counts.get(key, 0)


class FakeNode:
    def __init__(self, name, value=None, parent=None):
        self.name = name
        self.value = value
        self.input_value = value
        self.props = Props()
        self.ledger = Ledger()
        self.parent = parent
        self.children = []
        self.listeners = {}  # receipt -> (event, listener)
        self._receipt_ids = itertools.count(1)
        if parent is not None:
            parent.children.append(self)

    def on(self, event, listener):
        receipt = f"{self.name}:{next(self._receipt_ids)}"
        self.listeners[receipt] = (event, listener)
        return receipt

    def off(self, receipt):
        self.listeners.pop(receipt, None)

    def emit(self, event, payload=None):
        for receipt, (name, listener) in list(self.listeners.items()):
            if name == event and receipt in self.listeners:
                listener(payload)

    def listener_count(self, event=None):
        return sum(1 for name, _ in self.listeners.values() if event in (None, name))

    # --- Mutations ---

    def commit(self, value):
        self.value = value
        self.input_value = value
        self.emit("commit", value)

    def input(self, value):
        self.input_value = value
        self.emit("input", value)

    def set_prop(self, name, value):
        self.props[name] = value
        self.emit(f"prop:{name}", value)

    def count(self, key, amount=1):
        self.ledger.counts[key] = self.ledger.value(key) + amount
        self.emit(f"count:{key}", self.ledger.counts[key])

    def at(self, name):
        for child in self.children:
            if child.name == name:
                return child
        return None

    def __repr__(self):
        return f"FakeNode({self.name!r})"


@pytest.fixture
def node():
    return FakeNode("root", 1)


@pytest.fixture
def tree():
    """root -> (email, address -> city)"""
    root = FakeNode("root", {})
    email = FakeNode("email", "a@b.c", parent=root)
    address = FakeNode("address", {}, parent=root)
    city = FakeNode("city", "Oslo", parent=address)
    return root, email, address, city


@pytest.fixture(autouse=True)
def _reset_tracking():
    old_sched, old_thread = _tracking._scheduler, _tracking._scheduler_thread
    yield
    _tracking._scheduler = old_sched
    _tracking._scheduler_thread = old_thread
