from __future__ import annotations

from dataclasses import dataclass, field


@dataclass(frozen=True, slots=True)
class RequestContext:
    """Caller identity handed to every core operation.

    The core trusts this value; authentication and authorisation happen before
    it is built.
    """

    store_id: str
    user_id: str
    permissions: frozenset[str] = field(default_factory=frozenset)

    def allows(self, permission: str) -> bool:
        return permission in self.permissions
