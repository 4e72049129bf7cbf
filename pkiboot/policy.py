# policy.py
# Signing policy: match rules and extension profiles, rendered as an
# openssl ca configuration and evaluated in process by the native toolkit.

import logging
from dataclasses import dataclass, field
from typing import List, Tuple

from .errors import PkiBootError, PolicyMismatchError
from .store import CAStore
from .utils import LONG_TO_SHORT, SHORT_TO_LONG, split_names

log = logging.getLogger(__name__)

CA_PROFILE = "v3_ca"
SERVER_PROFILE = "server_cert"

# policy order is also the order of the issued subject DN
MATCH_POLICY = (
    ("countryName", "match"),
    ("stateOrProvinceName", "match"),
    ("localityName", "match"),
    ("organizationName", "match"),
    ("organizationalUnitName", "optional"),
    ("commonName", "supplied"),
    ("emailAddress", "optional"),
)

# characters openssl.cnf treats specially inside a value
_CNF_SPECIAL = ("\\", "$", "#", '"', "'")


def cnf_value(value: str) -> str:
    """Escape a value for openssl.cnf; line breaks cannot be represented."""
    if "\n" in value or "\r" in value:
        raise PkiBootError(f"line break in signing policy value {value!r}")
    for ch in _CNF_SPECIAL:
        value = value.replace(ch, "\\" + ch)
    return value


def match_subject(request: List[Tuple[str, str]], ca: List[Tuple[str, str]]) -> List[Tuple[str, str]]:
    """
    Check a request subject against the CA subject and return the DN
    that gets issued: policy fields only, in policy order.
    """
    req = {SHORT_TO_LONG[k]: v for k, v in request}
    base = {SHORT_TO_LONG[k]: v for k, v in ca}
    issued = []
    for attr, rule in MATCH_POLICY:
        value = req.get(attr)
        if rule == "match":
            if value is None:
                raise PolicyMismatchError(f"{attr} field needed to be the same in the CA certificate ({base.get(attr)}) and the request (missing)")
            if value != base.get(attr):
                raise PolicyMismatchError(f"{attr} field needed to be the same in the CA certificate ({base.get(attr)}) and the request ({value})")
        elif rule == "supplied" and not value:
            raise PolicyMismatchError(f"{attr} field needed to be supplied and was missing")
        if value is not None:
            issued.append((LONG_TO_SHORT[attr], value))
    return issued


@dataclass(frozen=True)
class SigningPolicy:
    store: CAStore
    san: Tuple[str, ...] = field(default_factory=tuple)
    default_md: str = "sha256"

    @classmethod
    def for_names(cls, store: CAStore, names=None) -> "SigningPolicy":
        return cls(store=store, san=tuple(split_names(names)))

    def render(self) -> str:
        s = self.store
        lines = [
            "[ ca ]",
            "default_ca = CA_default",
            "",
            "[ CA_default ]",
            f"dir = {cnf_value(s.dir)}",
            "certs = $dir/certs",
            "new_certs_dir = $dir/newcerts",
            "database = $dir/index.txt",
            "serial = $dir/serial",
            f"private_key = $dir/private/{cnf_value(s.name)}.key",
            f"certificate = $dir/certs/{cnf_value(s.name)}.crt",
            f"default_md = {self.default_md}",
            "policy = policy_match",
            # one valid certificate per subject; index.txt.attr starts empty
            "unique_subject = yes",
            "",
            "[ policy_match ]",
        ]
        lines += [f"{k} = {rule}" for k, rule in MATCH_POLICY]
        lines += [
            "",
            "[ req ]",
            "distinguished_name = req_distinguished_name",
            "string_mask = utf8only",
            "",
            "[ req_distinguished_name ]",
            "",
            f"[ {CA_PROFILE} ]",
            "subjectKeyIdentifier = hash",
            "authorityKeyIdentifier = keyid:always,issuer",
            "basicConstraints = critical, CA:true",
            "keyUsage = critical, keyCertSign, cRLSign",
            "",
            f"[ {SERVER_PROFILE} ]",
            "keyUsage = critical, digitalSignature, keyEncipherment",
            "basicConstraints = critical, CA:false",
            "extendedKeyUsage = serverAuth",
            "authorityKeyIdentifier = keyid,issuer",
        ]
        if self.san:
            lines.append("subjectAltName = @alt_names")
            lines += ["", "[ alt_names ]"]
            for i, name in enumerate(self.san, start=1):
                lines.append(f"DNS.{i} = {cnf_value(name)}")
        return "\n".join(lines) + "\n"

    def apply(self, request: List[Tuple[str, str]], ca: List[Tuple[str, str]]) -> List[Tuple[str, str]]:
        return match_subject(request, ca)


def materialize(policy: SigningPolicy, path: str = None) -> str:
    """(Re)write the policy configuration; returns the path written."""
    path = path or policy.store.config
    with open(path, "w") as f:
        f.write(policy.render())
    log.debug("wrote signing policy %s (san=%s)", path, ",".join(policy.san) or "-")
    return path
