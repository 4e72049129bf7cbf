# inventory.py
# Read-side of the CA state: registry index rows and certificate summaries.

from datetime import timezone
from typing import Any, Dict, List

from cryptography import x509
from cryptography.hazmat.primitives import hashes
from cryptography.x509.oid import NameOID

from .ir import X509Meta
from .store import CAStore
from .utils import rfc3339

STATUS = {"V": "valid", "R": "revoked", "E": "expired"}


def _cn(name: x509.Name):
    attrs = name.get_attributes_for_oid(NameOID.COMMON_NAME)
    return attrs[0].value if attrs else None


def _utc(cert, attr):
    # *_utc accessors appeared in cryptography 42
    value = getattr(cert, attr + "_utc", None)
    if value is None:
        value = getattr(cert, attr).replace(tzinfo=timezone.utc)
    return value


def x509_meta(crt_path: str) -> X509Meta:
    with open(crt_path, "rb") as f:
        cert = x509.load_pem_x509_certificate(f.read())
    try:
        san = cert.extensions.get_extension_for_class(x509.SubjectAlternativeName).value
        san = san.get_values_for_type(x509.DNSName)
    except x509.ExtensionNotFound:
        san = None
    try:
        is_ca = cert.extensions.get_extension_for_class(x509.BasicConstraints).value.ca
    except x509.ExtensionNotFound:
        is_ca = False
    return X509Meta(
        not_before=rfc3339(_utc(cert, "not_valid_before")),
        not_after=rfc3339(_utc(cert, "not_valid_after")),
        serial="%X" % cert.serial_number,
        sha256=cert.fingerprint(hashes.SHA256()).hex().upper(),
        sig_alg=cert.signature_hash_algorithm.name,
        pubkey_bits=cert.public_key().key_size,
        is_ca=is_ca,
        subject=cert.subject.rfc4514_string(),
        issuer=cert.issuer.rfc4514_string(),
        subject_cn=_cn(cert.subject),
        issuer_cn=_cn(cert.issuer),
        san=san,
    )


def read_index(store: CAStore) -> List[Dict[str, Any]]:
    """
    Parse the openssl ca database. Each line is tab separated:
    status, expiry, revocation date, serial, filename, subject.
    """
    rows = []
    for line in store.index_lines():
        cols = line.split("\t")
        if len(cols) < 6:
            continue
        rows.append({
            "status": STATUS.get(cols[0], cols[0]),
            "expires": cols[1],
            "serial": cols[3],
            "subject": cols[5],
        })
    return rows
