import os
import stat
from datetime import timedelta

import pytest
from cryptography import x509
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import padding
from cryptography.hazmat.primitives.serialization import pkcs12
from cryptography.x509.oid import ExtendedKeyUsageOID, NameOID

from conftest import BASE, identities_doc
from pkiboot.cert_ops import cert_issue
from pkiboot.errors import PassphraseError, PolicyMismatchError, StoreExistsError
from pkiboot.inventory import read_index, x509_meta
from pkiboot.ir import IdentityRequest
from pkiboot.passphrase import check_passphrase
from pkiboot.serde import load_identities
from pkiboot.store import CAStore
from pkiboot.toolkit import NativeToolkit
from pkiboot.utils import now_utc
from pkiboot.workflow import bootstrap

PASSPHRASE = "s3cret"


def _cert(path):
    with open(path, "rb") as f:
        return x509.load_pem_x509_certificate(f.read())


def _verify(cert, issuer):
    issuer.public_key().verify(cert.signature, cert.tbs_certificate_bytes,
                               padding.PKCS1v15(), cert.signature_hash_algorithm)


def _mode(path):
    return stat.S_IMODE(os.stat(path).st_mode)


@pytest.fixture
def issued(tmp_path, identities):
    root = str(tmp_path / "pki")
    result = bootstrap(root, identities, NativeToolkit(), get_passphrase=lambda: PASSPHRASE)
    return root, result


def test_ca_certificate_is_self_signed(issued):
    root, result = issued
    assert result[0].kind == "ca"
    assert os.path.islink(os.path.join(root, "ca.crt"))
    ca = _cert(os.path.join(root, "ca.crt"))
    assert ca.issuer == ca.subject
    assert ca.subject.get_attributes_for_oid(NameOID.COMMON_NAME)[0].value == "Test Root CA"
    _verify(ca, ca)
    bc = ca.extensions.get_extension_for_class(x509.BasicConstraints)
    assert bc.critical and bc.value.ca
    assert ca.extensions.get_extension_for_class(x509.KeyUsage).value.key_cert_sign


def test_ca_key_is_encrypted_and_private(issued):
    root, _ = issued
    key_path = CAStore(root).ca_key
    assert _mode(key_path) == 0o600
    with open(key_path, "rb") as f:
        data = f.read()
    with pytest.raises(TypeError):
        serialization.load_pem_private_key(data, password=None)
    serialization.load_pem_private_key(data, password=PASSPHRASE.encode())


def test_leaf_certificates_are_signed_by_ca(issued):
    root, result = issued
    ca = _cert(os.path.join(root, "ca.crt"))
    assert [c.name for c in result[1:]] == ["localhost", "www", "mail"]
    for c in result[1:]:
        cert = _cert(c.crt_path)
        assert cert.issuer == ca.subject
        _verify(cert, ca)
        serial = format(cert.serial_number, "x")
        assert len(serial) == 16 and not serial.startswith("0")
        assert _mode(c.key_path) == 0o600
        with open(c.key_path, "rb") as f:
            serialization.load_pem_private_key(f.read(), password=None)
        assert os.path.exists(os.path.join(root, f"{c.name}.csr"))


def test_server_profile_marks_leaf_non_ca(issued):
    root, _ = issued
    cert = _cert(os.path.join(root, "www.crt"))
    assert cert.subject.get_attributes_for_oid(NameOID.COMMON_NAME)[0].value == "www.example.com"
    bc = cert.extensions.get_extension_for_class(x509.BasicConstraints)
    assert bc.critical and bc.value.ca is False
    eku = cert.extensions.get_extension_for_class(x509.ExtendedKeyUsage).value
    assert list(eku) == [ExtendedKeyUsageOID.SERVER_AUTH]
    ku = cert.extensions.get_extension_for_class(x509.KeyUsage)
    assert ku.critical
    assert ku.value.digital_signature and ku.value.key_encipherment
    assert not ku.value.key_cert_sign
    san = cert.extensions.get_extension_for_class(x509.SubjectAlternativeName).value
    assert san.get_values_for_type(x509.DNSName) == ["example.com", "www.example.com"]


def test_leaf_without_names_has_no_san(issued):
    root, _ = issued
    cert = _cert(os.path.join(root, "mail.crt"))
    with pytest.raises(x509.ExtensionNotFound):
        cert.extensions.get_extension_for_class(x509.SubjectAlternativeName)
    with open(os.path.join(root, "openssl.cnf")) as f:
        assert "alt_names" not in f.read()


def test_bundle_holds_ca_certificate_only(issued):
    root, result = issued
    assert result[0].bundle_path == os.path.join(root, "ca.p12")
    with open(result[0].bundle_path, "rb") as f:
        bundle = pkcs12.load_pkcs12(f.read(), None)
    assert bundle.key is None
    # a key-less bundle may report the certificate as the main one or as an extra
    certs = [c.certificate for c in bundle.additional_certs]
    if bundle.cert is not None:
        certs.insert(0, bundle.cert.certificate)
    assert certs == [_cert(os.path.join(root, "ca.crt"))]


def test_registry_records_every_issued_certificate(issued):
    root, result = issued
    store = CAStore(root)
    rows = read_index(store)
    assert [r["status"] for r in rows] == ["valid"] * 4
    assert [r["serial"] for r in rows] == [c.metadata.serial for c in result]
    assert rows[2]["subject"] == BASE + "/CN=www.example.com"
    for r in rows:
        assert os.path.exists(os.path.join(store.new_certs_dir, r["serial"] + ".pem"))


def test_x509_meta_summary(issued):
    root, _ = issued
    meta = x509_meta(os.path.join(root, "www.crt"))
    assert meta.issuer_cn == "Test Root CA"
    assert meta.subject_cn == "www.example.com"
    assert meta.san == ["example.com", "www.example.com"]
    assert meta.is_ca is False
    assert meta.pubkey_bits == 2048
    assert meta.sig_alg == "sha256"


def test_second_run_refuses_existing_state(issued, identities):
    root, _ = issued
    before = sorted(os.listdir(root))

    def no_prompt():
        raise AssertionError("passphrase must not be requested")

    with pytest.raises(StoreExistsError):
        bootstrap(root, identities, NativeToolkit(), get_passphrase=no_prompt)
    assert sorted(os.listdir(root)) == before


def test_rejected_passphrase_writes_nothing(tmp_path, identities):
    root = str(tmp_path / "pki")
    with pytest.raises(PassphraseError):
        bootstrap(root, identities, NativeToolkit(), get_passphrase=lambda: check_passphrase("abc", "abc"))
    assert not os.path.exists(os.path.join(root, "ca"))


def _request(name, subject):
    now = now_utc()
    return IdentityRequest(name=name, subject=subject, not_before=now, not_after=now + timedelta(days=1))


@pytest.fixture
def ca_only(tmp_path):
    root = str(tmp_path / "pki")
    bootstrap(root, load_identities(identities_doc(leaves=[])), NativeToolkit(),
              get_passphrase=lambda: PASSPHRASE)
    return root


def test_policy_mismatch_aborts_leaf(ca_only):
    req = _request("evil", "/C=US/ST=California/L=San Francisco/O=Other Org/CN=evil.example.com")
    with pytest.raises(PolicyMismatchError, match="organizationName"):
        cert_issue(CAStore(ca_only), NativeToolkit(), req, PASSPHRASE, key_size=2048)
    assert not os.path.exists(os.path.join(ca_only, "evil.crt"))
    assert len(read_index(CAStore(ca_only))) == 1


def test_duplicate_subject_is_refused(ca_only):
    store = CAStore(ca_only)
    cert_issue(store, NativeToolkit(), _request("same1", BASE + "/CN=same.example.com"), PASSPHRASE, key_size=2048)
    with pytest.raises(PolicyMismatchError, match="already a valid certificate"):
        cert_issue(store, NativeToolkit(), _request("same2", BASE + "/CN=same.example.com"), PASSPHRASE,
                   key_size=2048)
    assert not os.path.exists(os.path.join(ca_only, "same2.crt"))
    assert len(read_index(store)) == 2
    with open(store.path("index.txt.attr")) as f:
        assert f.read() == "unique_subject = yes\n"
