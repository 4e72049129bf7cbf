# toolkit/openssl.py
# Toolkit backed by the openssl command. Passphrases travel through the
# child environment (-passin/-passout env:), never on argv.

import logging
import os
import subprocess
from typing import Optional

from ..errors import ToolkitError
from ..policy import CA_PROFILE, SERVER_PROFILE
from ..store import write_private
from ..utils import asn1_time
from .base import Toolkit

log = logging.getLogger(__name__)

PASS_VAR = "PKIBOOT_PASSPHRASE"


def _openssl(*args: str, passphrase: Optional[str] = None) -> str:
    env = None
    if passphrase is not None:
        env = dict(os.environ)
        env[PASS_VAR] = passphrase
    log.debug("openssl %s", " ".join(args))
    try:
        r = subprocess.run(["openssl", *args], check=True, stdout=subprocess.PIPE,
                           stderr=subprocess.PIPE, text=True, env=env)
    except subprocess.CalledProcessError as e:
        raise ToolkitError.from_called_process(e) from e
    except FileNotFoundError as e:
        raise ToolkitError("openssl executable not found on PATH") from e
    return r.stdout


class OpenSSLToolkit(Toolkit):
    name = "openssl"

    def generate_key_pair(self, key_path, key_size, passphrase=None):
        # pre-create so the key never exists with umask permissions
        write_private(key_path, b"")
        if passphrase:
            _openssl("genrsa", "-aes256", "-passout", f"env:{PASS_VAR}",
                     "-out", key_path, str(key_size), passphrase=passphrase)
        else:
            _openssl("genrsa", "-out", key_path, str(key_size))
        os.chmod(key_path, 0o600)

    def create_signing_request(self, policy, key_path, csr_path, subject, passphrase=None):
        args = ["req", "-new", "-config", policy.store.config, f"-{policy.default_md}",
                "-key", key_path, "-subj", subject, "-out", csr_path]
        if passphrase:
            args += ["-passin", f"env:{PASS_VAR}"]
        _openssl(*args, passphrase=passphrase)

    def _check_serial(self, policy, serial):
        on_disk = policy.store.read_serial()
        if on_disk.lower() != serial.hex.lower():
            raise ToolkitError(f"serial file holds {on_disk!r}, expected {serial.hex!r}")

    def self_sign(self, policy, serial, csr_path, cert_path, key_path, passphrase, not_before, not_after):
        self._check_serial(policy, serial)
        _openssl("ca", "-batch", "-selfsign", "-notext",
                 "-config", policy.store.config,
                 "-keyfile", key_path, "-passin", f"env:{PASS_VAR}",
                 "-startdate", asn1_time(not_before), "-enddate", asn1_time(not_after),
                 "-extensions", CA_PROFILE,
                 "-in", csr_path, "-out", cert_path,
                 passphrase=passphrase)

    def sign_with_issuer(self, policy, serial, csr_path, cert_path, passphrase, not_before, not_after,
                         profile=SERVER_PROFILE):
        self._check_serial(policy, serial)
        _openssl("ca", "-batch", "-notext",
                 "-config", policy.store.config,
                 "-passin", f"env:{PASS_VAR}",
                 "-startdate", asn1_time(not_before), "-enddate", asn1_time(not_after),
                 "-extensions", profile,
                 "-in", csr_path, "-out", cert_path,
                 passphrase=passphrase)

    def export_bundle(self, cert_path, bundle_path, friendly_name=""):
        args = ["pkcs12", "-export", "-nokeys", "-in", cert_path, "-out", bundle_path, "-passout", "pass:"]
        if friendly_name:
            args += ["-name", friendly_name]
        _openssl(*args)
