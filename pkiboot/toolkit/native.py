# toolkit/native.py
# Toolkit backed by the cryptography library. It applies the signing policy
# itself and keeps the registry (index.txt, newcerts/, serial) the way
# `openssl ca` would, so both toolkits leave the same state behind.

import logging

from cryptography import x509
from cryptography.exceptions import UnsupportedAlgorithm
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import rsa
from cryptography.hazmat.primitives.serialization import pkcs12
from cryptography.x509.oid import ExtendedKeyUsageOID, NameOID

from ..errors import PolicyMismatchError, ToolkitError
from ..policy import SERVER_PROFILE
from ..store import write_private
from ..utils import asn1_time, format_subject, parse_subject
from .base import Toolkit

log = logging.getLogger(__name__)

SHORT_TO_OID = {
    "C": NameOID.COUNTRY_NAME,
    "ST": NameOID.STATE_OR_PROVINCE_NAME,
    "L": NameOID.LOCALITY_NAME,
    "O": NameOID.ORGANIZATION_NAME,
    "OU": NameOID.ORGANIZATIONAL_UNIT_NAME,
    "CN": NameOID.COMMON_NAME,
    "emailAddress": NameOID.EMAIL_ADDRESS,
}
OID_TO_SHORT = {v: k for k, v in SHORT_TO_OID.items()}

DIGESTS = {
    "sha256": hashes.SHA256,
    "sha384": hashes.SHA384,
    "sha512": hashes.SHA512,
}


def x509_name(pairs) -> x509.Name:
    return x509.Name([x509.NameAttribute(SHORT_TO_OID[k], v) for k, v in pairs])


def name_pairs(name: x509.Name):
    pairs = []
    for attr in name:
        short = OID_TO_SHORT.get(attr.oid)
        if short is None:
            raise ToolkitError(f"unsupported subject attribute {attr.oid.dotted_string}")
        pairs.append((short, attr.value))
    return pairs


def _read(path: str) -> bytes:
    with open(path, "rb") as f:
        return f.read()


def _load_key(path: str, passphrase=None):
    try:
        return serialization.load_pem_private_key(
            _read(path), password=passphrase.encode() if passphrase else None)
    except (ValueError, TypeError, UnsupportedAlgorithm) as e:
        raise ToolkitError(f"unable to load private key {path}: {e}") from e


def _load_csr(path: str) -> x509.CertificateSigningRequest:
    csr = x509.load_pem_x509_csr(_read(path))
    if not csr.is_signature_valid:
        raise ToolkitError(f"signature on {path} does not verify")
    return csr


def _same_key(a, b) -> bool:
    fmt = (serialization.Encoding.DER, serialization.PublicFormat.SubjectPublicKeyInfo)
    return a.public_bytes(*fmt) == b.public_bytes(*fmt)


class NativeToolkit(Toolkit):
    name = "native"

    def _digest(self, policy):
        try:
            return DIGESTS[policy.default_md]()
        except KeyError:
            raise ToolkitError(f"unsupported digest {policy.default_md}") from None

    def generate_key_pair(self, key_path, key_size, passphrase=None):
        key = rsa.generate_private_key(public_exponent=65537, key_size=key_size)
        if passphrase:
            pem = key.private_bytes(
                encoding=serialization.Encoding.PEM,
                format=serialization.PrivateFormat.PKCS8,
                encryption_algorithm=serialization.BestAvailableEncryption(passphrase.encode()),
            )
        else:
            pem = key.private_bytes(
                encoding=serialization.Encoding.PEM,
                format=serialization.PrivateFormat.TraditionalOpenSSL,
                encryption_algorithm=serialization.NoEncryption(),
            )
        write_private(key_path, pem)

    def create_signing_request(self, policy, key_path, csr_path, subject, passphrase=None):
        key = _load_key(key_path, passphrase)
        try:
            name = x509_name(parse_subject(subject))
        except ValueError as e:
            raise ToolkitError(str(e)) from e
        csr = (
            x509.CertificateSigningRequestBuilder()
            .subject_name(name)
            .sign(key, self._digest(policy))
        )
        with open(csr_path, "wb") as f:
            f.write(csr.public_bytes(serialization.Encoding.PEM))

    def _issue(self, policy, serial, csr, issued, issuer_name, signing_key, not_before, not_after,
               extensions, cert_path):
        if not_after <= not_before:
            raise ToolkitError("start date is after end date")
        subject = format_subject(issued)
        if policy.store.subject_registered(subject):
            raise PolicyMismatchError(f"there is already a valid certificate for {subject}")
        builder = (
            x509.CertificateBuilder()
            .subject_name(x509_name(issued))
            .issuer_name(issuer_name)
            .public_key(csr.public_key())
            .serial_number(serial.value)
            .not_valid_before(not_before)
            .not_valid_after(not_after)
        )
        for ext, critical in extensions:
            builder = builder.add_extension(ext, critical=critical)
        cert = builder.sign(signing_key, self._digest(policy))
        pem = cert.public_bytes(serialization.Encoding.PEM)
        with open(cert_path, "wb") as f:
            f.write(pem)
        policy.store.record_issued(serial, asn1_time(not_after), subject, pem)
        log.debug("issued serial %s to %s", serial.index_form, subject)
        return cert

    def self_sign(self, policy, serial, csr_path, cert_path, key_path, passphrase, not_before, not_after):
        csr = _load_csr(csr_path)
        key = _load_key(key_path, passphrase)
        if not _same_key(csr.public_key(), key.public_key()):
            raise ToolkitError("certificate request and private key do not match")
        requested = name_pairs(csr.subject)
        issued = policy.apply(requested, requested)
        extensions = [
            (x509.SubjectKeyIdentifier.from_public_key(key.public_key()), False),
            (x509.AuthorityKeyIdentifier.from_issuer_public_key(key.public_key()), False),
            (x509.BasicConstraints(ca=True, path_length=None), True),
            (x509.KeyUsage(digital_signature=False, content_commitment=False, key_encipherment=False,
                           data_encipherment=False, key_agreement=False, key_cert_sign=True,
                           crl_sign=True, encipher_only=False, decipher_only=False), True),
        ]
        self._issue(policy, serial, csr, issued, x509_name(issued), key, not_before, not_after,
                    extensions, cert_path)

    def sign_with_issuer(self, policy, serial, csr_path, cert_path, passphrase, not_before, not_after,
                         profile=SERVER_PROFILE):
        if profile != SERVER_PROFILE:
            raise ToolkitError(f"profile {profile} cannot be used to sign with an issuer")
        csr = _load_csr(csr_path)
        ca_cert = x509.load_pem_x509_certificate(_read(policy.store.ca_cert))
        ca_key = _load_key(policy.store.ca_key, passphrase)
        if not _same_key(ca_cert.public_key(), ca_key.public_key()):
            raise ToolkitError("CA certificate and private key do not match")
        issued = policy.apply(name_pairs(csr.subject), name_pairs(ca_cert.subject))
        try:
            ski = ca_cert.extensions.get_extension_for_class(x509.SubjectKeyIdentifier).value
            aki = x509.AuthorityKeyIdentifier.from_issuer_subject_key_identifier(ski)
        except x509.ExtensionNotFound:
            aki = x509.AuthorityKeyIdentifier.from_issuer_public_key(ca_key.public_key())
        extensions = [
            (x509.KeyUsage(digital_signature=True, content_commitment=False, key_encipherment=True,
                           data_encipherment=False, key_agreement=False, key_cert_sign=False,
                           crl_sign=False, encipher_only=False, decipher_only=False), True),
            (x509.BasicConstraints(ca=False, path_length=None), True),
            (x509.ExtendedKeyUsage([ExtendedKeyUsageOID.SERVER_AUTH]), False),
            (aki, False),
        ]
        if policy.san:
            extensions.append((x509.SubjectAlternativeName([x509.DNSName(n) for n in policy.san]), False))
        self._issue(policy, serial, csr, issued, ca_cert.subject, ca_key, not_before, not_after,
                    extensions, cert_path)

    def export_bundle(self, cert_path, bundle_path, friendly_name=""):
        cert = x509.load_pem_x509_certificate(_read(cert_path))
        data = pkcs12.serialize_key_and_certificates(
            name=friendly_name.encode() if friendly_name else None,
            key=None,
            cert=cert,
            cas=None,
            encryption_algorithm=serialization.NoEncryption(),
        )
        with open(bundle_path, "wb") as f:
            f.write(data)


