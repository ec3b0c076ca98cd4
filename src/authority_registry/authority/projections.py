"""
Authority Projections - The authorization set rebuilt from events

Two structures are kept in step by every applied event:
- flags: principal -> bool, for O(1) membership checks
- touched_history: every principal ever granted, in grant order,
  duplicates included (a revoke followed by a re-grant appends again)

Enumeration walks the history and filters by the flags, so a principal
that cycled through revoke/re-grant is listed once per grant that is
still in effect. Consumers that need a unique set deduplicate themselves.
"""

from typing import Any

from authority_registry.authority.models import Principal
from authority_registry.kernel.events import Event


class AuthorizationSet:
    """
    Projection: current authorization flags plus grant history

    version is the last stream version applied; 0 means uninitialized.
    """

    def __init__(self) -> None:
        self.flags: dict[Principal, bool] = {}
        self.touched_history: list[Principal] = []
        self.version: int = 0

    def apply_event(self, event: Event) -> None:
        """Apply an event to update projection state"""
        if event.event_type == "AuthorityGranted":
            subject = event.payload["subject"]
            self.flags[subject] = True
            self.touched_history.append(subject)

        elif event.event_type == "AuthorityRevoked":
            self.flags[event.payload["subject"]] = False

        else:
            return

        self.version = event.version

    def is_authorized(self, principal: Principal) -> bool:
        """Current flag for principal; never-granted principals are unauthorized"""
        return self.flags.get(principal, False)

    def list_authorized(self) -> list[Principal]:
        """Touched history filtered to authorized principals (may repeat)"""
        return [p for p in self.touched_history if self.flags.get(p, False)]

    def authorized_count(self) -> int:
        """Number of distinct authorized principals"""
        return sum(1 for authorized in self.flags.values() if authorized)

    def is_initialized(self) -> bool:
        return self.version > 0

    def is_locked_out(self) -> bool:
        """Initialized, but nobody left who could grant or revoke"""
        return self.is_initialized() and self.authorized_count() == 0

    def to_dict(self) -> dict[str, Any]:
        """Serialize to dict for snapshot storage"""
        return {
            "flags": dict(self.flags),
            "touched_history": list(self.touched_history),
            "version": self.version,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "AuthorizationSet":
        """Deserialize from dict"""
        projection = cls()
        projection.flags = dict(data.get("flags", {}))
        projection.touched_history = list(data.get("touched_history", []))
        projection.version = data.get("version", 0)
        return projection
