"""Side tables shared by every observer in the process.

Wrappers hold an integer token rather than being stored here directly, so
nothing in this module keeps a node or a wrapper alive.
"""

import itertools

# Tokens of killed wrappers. Append-only: a token never leaves this set.
revoked: set[int] = set()

# ID generation — itertools.count is thread-safe (C-level GIL atomic)
_id_counter = itertools.count(1)


def new_id() -> int:
    return next(_id_counter)
