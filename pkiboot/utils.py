# utils.py
# Common helpers used across the CLI.
# All timestamps are UTC; RFC3339 for documents and output, ASN.1 time strings
# for the openssl command line and the registry index.

import re
from datetime import datetime, timezone
from typing import List, Tuple
from dateutil import parser as dtp

# short DN attribute names as used in "/C=../CN=.." subject strings
SHORT_TO_LONG = {
    "C": "countryName",
    "ST": "stateOrProvinceName",
    "L": "localityName",
    "O": "organizationName",
    "OU": "organizationalUnitName",
    "CN": "commonName",
    "emailAddress": "emailAddress",
}
LONG_TO_SHORT = {v: k for k, v in SHORT_TO_LONG.items()}

_SUBJECT_SPLIT = re.compile(r"(?<!\\)/")

# DNS host name, optionally with a leading wildcard label
DNS_NAME = re.compile(r"^(\*\.)?[A-Za-z0-9]([A-Za-z0-9-]*[A-Za-z0-9])?(\.[A-Za-z0-9]([A-Za-z0-9-]*[A-Za-z0-9])?)*$")


def parse_rfc3339(s: str) -> datetime:
    """Parse RFC3339/ISO8601 into aware UTC datetime."""
    dt = dtp.isoparse(s)
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def now_utc() -> datetime:
    return datetime.now(timezone.utc).replace(microsecond=0)


def rfc3339(dt: datetime) -> str:
    """Return dt as RFC3339 string, e.g. 2025-10-04T12:34:56Z."""
    return dt.astimezone(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")


def asn1_time(dt: datetime) -> str:
    """UTCTime (YYMMDDHHMMSSZ) before 2050, GeneralizedTime after, as openssl expects."""
    dt = dt.astimezone(timezone.utc)
    if dt.year < 2050:
        return dt.strftime("%y%m%d%H%M%SZ")
    return dt.strftime("%Y%m%d%H%M%SZ")


def parse_subject(subject: str) -> List[Tuple[str, str]]:
    """Split an openssl-style subject ("/C=US/O=Example/CN=host") into
    (short name, value) pairs, keeping order. Escaped slashes are kept."""
    s = (subject or "").strip()
    if not s.startswith("/"):
        raise ValueError(f"subject must start with '/': {subject!r}")
    pairs = []
    for part in _SUBJECT_SPLIT.split(s[1:]):
        if not part:
            continue
        if "=" not in part:
            raise ValueError(f"malformed subject component {part!r}")
        k, v = part.split("=", 1)
        k = k.strip()
        if k not in SHORT_TO_LONG:
            raise ValueError(f"unsupported subject attribute {k!r}")
        pairs.append((k, v.replace("\\/", "/")))
    return pairs


def format_subject(pairs) -> str:
    escaped = [(k, v.replace("/", "\\/")) for k, v in pairs]
    return "".join(f"/{k}={v}" for k, v in escaped)


def join_subject(base: str, common_name: str) -> str:
    return base.rstrip("/") + "/CN=" + common_name


def split_names(names) -> List[str]:
    """Accept either a comma separated string or an iterable of names."""
    if not names:
        return []
    if isinstance(names, str):
        names = names.split(",")
    return [n.strip() for n in names if n and n.strip()]
