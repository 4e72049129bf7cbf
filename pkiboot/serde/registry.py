from typing import Dict

from ..ir import IdentitySet


class VersionAdapter:
    """Turns one schema version of an identities document into IR."""
    def to_ir_identities(self, doc: dict) -> IdentitySet:
        raise NotImplementedError


_ADAPTERS: Dict[str, VersionAdapter] = {}


def register(version: str, adapter: VersionAdapter) -> None:
    _ADAPTERS[version] = adapter


def get(version: str) -> VersionAdapter:
    try:
        return _ADAPTERS[version]
    except KeyError:
        raise ValueError(f"unsupported schema version {version!r}") from None
