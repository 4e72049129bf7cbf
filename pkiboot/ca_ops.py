import logging
import os

from .inventory import x509_meta
from .ir import IdentityRequest, IssuedCert
from .policy import SigningPolicy, materialize
from .serial import allocate_serial
from .store import CAStore
from .toolkit import Toolkit

log = logging.getLogger(__name__)


def _link(target: str, link_path: str) -> None:
    rel = os.path.relpath(target, os.path.dirname(link_path))
    if os.path.lexists(link_path):
        os.unlink(link_path)
    os.symlink(rel, link_path)


def ca_init(
    store: CAStore,
    toolkit: Toolkit,
    identity: IdentityRequest,
    passphrase: str,
    key_size: int = 4096,
    bundle_name: str = "ca.p12",
    randbytes=None,
) -> IssuedCert:
    """
    Issue the self-signed CA certificate into an initialized store.
    The passphrase must already be validated; it encrypts the CA key.
    """
    policy = SigningPolicy.for_names(store)
    materialize(policy)

    log.info("generating %d-bit CA key %s", key_size, store.ca_key)
    toolkit.generate_key_pair(store.ca_key, key_size, passphrase=passphrase)

    serial = allocate_serial(randbytes)
    store.write_serial(serial)

    toolkit.create_signing_request(policy, store.ca_key, store.ca_csr, identity.subject, passphrase=passphrase)
    toolkit.self_sign(policy, serial, store.ca_csr, store.ca_cert, store.ca_key, passphrase,
                      identity.not_before, identity.not_after)
    log.info("self-signed CA certificate %s (serial %s)", store.ca_cert, serial.index_form)

    link = store.artifact(f"{identity.name}.crt")
    _link(store.ca_cert, link)

    bundle = store.artifact(bundle_name)
    toolkit.export_bundle(store.ca_cert, bundle, friendly_name=identity.name)
    log.info("exported CA bundle %s", bundle)

    return IssuedCert(
        name=identity.name,
        kind="ca",
        crt_path=link,
        key_path=store.ca_key,
        csr_path=store.ca_csr,
        metadata=x509_meta(store.ca_cert),
        bundle_path=bundle,
    )
