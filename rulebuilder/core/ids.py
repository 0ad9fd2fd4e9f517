"""ID generators for ephemeral node addressing.

Callers inject a generator wherever fresh ids are needed (hydration, view state)
so tests can use deterministic ids.
"""

import itertools
import uuid
from typing import Protocol


class IdGenerator(Protocol):
    def __call__(self) -> str: ...


class UuidIdGenerator:
    """Random UUID4 ids; the default in production."""

    def __call__(self) -> str:
        return str(uuid.uuid4())


class SequentialIdGenerator:
    """
    Deterministic ids ``<prefix>-1``, ``<prefix>-2``, ...

    Example:
        >>> gen = SequentialIdGenerator("node")
        >>> gen(), gen()
        ('node-1', 'node-2')
    """

    def __init__(self, prefix: str = "node", start: int = 1):
        self.prefix = prefix
        self._counter = itertools.count(start)

    def __call__(self) -> str:
        return f"{self.prefix}-{next(self._counter)}"


default_id_generator: IdGenerator = UuidIdGenerator()
