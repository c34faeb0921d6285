"""
Identity generators.

Repositories never call uuid directly; they are handed an IdGenerator so tests
(and demo boards) can use predictable ids such as ISS-001.
"""
import uuid
from typing import Dict


class IdGenerator:
    """Produces unique identity tokens."""

    def new_id(self, kind: str = "") -> str:
        raise NotImplementedError


class UUIDIds(IdGenerator):
    """Random UUID4 ids (the default)."""

    def new_id(self, kind: str = "") -> str:
        return str(uuid.uuid4())


class SequentialIds(IdGenerator):
    """
    Deterministic ids: "<PREFIX>-<kind>-001", counted per kind.

    With an empty kind the id is just "<PREFIX>-001".
    """

    def __init__(self, prefix: str = "ID"):
        self.prefix = prefix
        self._counters: Dict[str, int] = {}

    def new_id(self, kind: str = "") -> str:
        num = self._counters.get(kind, 0) + 1
        self._counters[kind] = num
        if kind:
            return f"{self.prefix}-{kind}-{num:03d}"
        return f"{self.prefix}-{num:03d}"
