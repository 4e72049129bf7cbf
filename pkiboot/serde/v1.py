from __future__ import annotations

from datetime import timedelta

from .registry import VersionAdapter, register
from ..errors import PolicyMismatchError
from ..ir import IdentityRequest, IdentitySet
from ..policy import match_subject
from ..utils import DNS_NAME, format_subject, join_subject, now_utc, parse_rfc3339, parse_subject, split_names

DEFAULT_KEY_SIZE = 4096
DEFAULT_CA_DAYS = 3650
DEFAULT_LEAF_DAYS = 825


class V1Adapter(VersionAdapter):
    def _window(self, entry: dict, default_days: int, now):
        nb = parse_rfc3339(entry["not_before"]) if entry.get("not_before") else now
        if entry.get("not_after"):
            na = parse_rfc3339(entry["not_after"])
        else:
            na = nb + timedelta(days=int(entry.get("days", default_days)))
        if na <= nb:
            raise ValueError(f"{entry.get('name', 'ca')}: not_after must be later than not_before")
        return nb, na

    def _san(self, leaf: dict):
        names = split_names(leaf.get("san"))
        for n in names:
            if not DNS_NAME.fullmatch(n):
                raise ValueError(f"{leaf['name']}: invalid DNS name {n!r} in san")
        return tuple(names)

    def _issued_subject(self, req: IdentityRequest, ca_pairs) -> str:
        # DN as the signing policy would issue it
        try:
            pairs = parse_subject(req.subject)
            return format_subject(match_subject(pairs, ca_pairs if ca_pairs is not None else pairs))
        except (ValueError, PolicyMismatchError) as e:
            raise ValueError(f"{req.name}: {e}") from e

    def to_ir_identities(self, doc: dict) -> IdentitySet:
        now = now_utc()
        base = doc["base_subject"]
        ca = doc["ca"]
        nb, na = self._window(ca, DEFAULT_CA_DAYS, now)
        ca_req = IdentityRequest(
            name=ca.get("name", "ca"),
            subject=join_subject(base, ca["common_name"]),
            not_before=nb,
            not_after=na,
        )
        leaves = []
        for leaf in doc.get("leaves", []) or []:
            nb, na = self._window(leaf, DEFAULT_LEAF_DAYS, now)
            leaves.append(IdentityRequest(
                name=leaf["name"],
                subject=leaf.get("subject") or join_subject(base, leaf["common_name"]),
                not_before=nb,
                not_after=na,
                san=self._san(leaf),
            ))
        names = [ca_req.name] + [l.name for l in leaves]
        dupes = sorted({n for n in names if names.count(n) > 1})
        if dupes:
            raise ValueError(f"duplicate identity names: {', '.join(dupes)}")

        ca_pairs = parse_subject(self._issued_subject(ca_req, None))
        subjects = [format_subject(ca_pairs)] + [self._issued_subject(l, ca_pairs) for l in leaves]
        dupes = sorted({s for s in subjects if subjects.count(s) > 1})
        if dupes:
            raise ValueError(f"duplicate subjects: {', '.join(dupes)}")
        return IdentitySet(
            version="v1",
            base_subject=base,
            key_size=int(doc.get("key_size", DEFAULT_KEY_SIZE)),
            ca=ca_req,
            bundle=ca.get("bundle", f"{ca_req.name}.p12"),
            leaves=leaves,
        )


# register adapter on import
register("v1", V1Adapter())
