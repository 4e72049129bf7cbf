import logging

from .inventory import x509_meta
from .ir import IdentityRequest, IssuedCert
from .policy import SERVER_PROFILE, SigningPolicy, materialize
from .serial import allocate_serial
from .store import CAStore
from .toolkit import Toolkit

log = logging.getLogger(__name__)


def cert_issue(
    store: CAStore,
    toolkit: Toolkit,
    identity: IdentityRequest,
    passphrase: str,
    key_size: int = 4096,
    randbytes=None,
) -> IssuedCert:
    """Issue one server certificate signed by the store's CA. Failures propagate; nothing is rolled back."""
    policy = SigningPolicy.for_names(store, identity.san)
    materialize(policy)

    serial = allocate_serial(randbytes)
    store.write_serial(serial)

    key_path = store.artifact(f"{identity.name}.key")
    csr_path = store.artifact(f"{identity.name}.csr")
    crt_path = store.artifact(f"{identity.name}.crt")

    log.info("generating %d-bit key %s", key_size, key_path)
    toolkit.generate_key_pair(key_path, key_size)
    toolkit.create_signing_request(policy, key_path, csr_path, identity.subject)
    toolkit.sign_with_issuer(policy, serial, csr_path, crt_path, passphrase,
                             identity.not_before, identity.not_after, profile=SERVER_PROFILE)
    log.info("issued %s (serial %s, san=%s)", crt_path, serial.index_form, ",".join(identity.san) or "-")

    return IssuedCert(
        name=identity.name,
        kind="server",
        crt_path=crt_path,
        key_path=key_path,
        csr_path=csr_path,
        metadata=x509_meta(crt_path),
    )
