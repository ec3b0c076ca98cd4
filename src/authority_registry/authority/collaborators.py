"""
Keyed configuration collaborator

A host system may pair the registry with a component that files named
configuration values under keys. The registry does not implement that
component; it only gates it. file_value is the embedding: check the
caller, then hand the write to the store.
"""

from typing import TYPE_CHECKING, Protocol

from pydantic import BaseModel

if TYPE_CHECKING:
    from authority_registry.registry import AuthorityRegistry


class Filed(BaseModel):
    """A value was filed under a key"""

    key: str
    value: str

    model_config = {"frozen": True}


class KeyedValueStore(Protocol):
    """
    Write side of a keyed configuration component

    set_value raises InvalidKey or InvalidValueForKey (from
    authority_registry.kernel.errors) for rejected input.
    """

    def set_value(self, key: str, value: str) -> None:
        ...


def file_value(
    registry: "AuthorityRegistry",
    store: KeyedValueStore,
    caller: str,
    key: str,
    value: str,
) -> Filed:
    """
    File value under key on behalf of caller

    Raises:
        NotAuthorized: If caller is not currently authorized (store untouched)
        InvalidKey, InvalidValueForKey: As raised by the store
    """
    registry.require_authorized(caller, "file a value")
    store.set_value(key, value)
    return Filed(key=key, value=value)
