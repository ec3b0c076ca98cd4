"""
Registry Policy - Configuration for an authority registry instance

The policy names the stream the registry lives in and sets the few
operational knobs the registry has. It deliberately has no knob that
changes authorization semantics: there is no "protect last principal"
switch, because the registry does not offer that protection.
"""

from pydantic import BaseModel, Field


class RegistryPolicy(BaseModel):
    """
    Operational parameters for an AuthorityRegistry

    Defaults suit a single registry per database file.
    """

    policy_version: str = Field(
        default="1.0",
        description="Policy version for tracking changes over time",
    )

    stream_id: str = Field(
        default="authority-registry",
        min_length=1,
        max_length=200,
        description="Event stream holding this registry's audit events",
    )

    principal_max_length: int = Field(
        default=256,
        ge=1,
        le=4096,
        description="Maximum length of a principal identifier",
    )

    snapshot_enabled: bool = Field(
        default=True,
        description="Persist a projection snapshot after each mutation",
    )

    warn_on_lockout: bool = Field(
        default=True,
        description="Log a warning when a revoke leaves no authorized principal",
    )

    model_config = {
        "frozen": True,
        "json_schema_extra": {
            "examples": [
                {
                    "policy_version": "1.0",
                    "stream_id": "authority-registry",
                    "principal_max_length": 256,
                    "snapshot_enabled": True,
                    "warn_on_lockout": True,
                }
            ]
        },
    }

    @property
    def snapshot_name(self) -> str:
        """Projection store key for this registry's snapshot"""
        return f"authorization_set:{self.stream_id}"
