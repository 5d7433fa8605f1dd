"""
Identity & Clock - the only non-pure inputs of compilation.
Flow ids, button ids and metadata timestamps are minted here so callers
(and tests) can inject a deterministic provider.
"""

import uuid
from datetime import datetime, timezone
from typing import Protocol


class IdentityProvider(Protocol):
    """Capability interface used by the compiler for ids and timestamps."""

    def new_id(self) -> str: ...

    def now(self) -> datetime: ...


class UUIDIdentityProvider:
    """Default provider: random UUID4 ids and the current UTC time."""

    def new_id(self) -> str:
        return str(uuid.uuid4())

    def now(self) -> datetime:
        return datetime.now(timezone.utc)
