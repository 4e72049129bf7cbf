from abc import ABC, abstractmethod
from datetime import datetime
from typing import Optional

from ..ir import SerialAllocation
from ..policy import SERVER_PROFILE, SigningPolicy


class Toolkit(ABC):
    """
    Cryptographic operations needed to bootstrap a CA. Every call reads and
    writes files; nothing is kept in memory between calls.
    """
    name = ""

    @abstractmethod
    def generate_key_pair(self, key_path: str, key_size: int, passphrase: Optional[str] = None) -> None:
        """RSA key at key_path, mode 0600, AES-256 encrypted when a passphrase is given."""

    @abstractmethod
    def create_signing_request(self, policy: SigningPolicy, key_path: str, csr_path: str,
                               subject: str, passphrase: Optional[str] = None) -> None:
        ...

    @abstractmethod
    def self_sign(self, policy: SigningPolicy, serial: SerialAllocation, csr_path: str, cert_path: str,
                  key_path: str, passphrase: str, not_before: datetime, not_after: datetime) -> None:
        ...

    @abstractmethod
    def sign_with_issuer(self, policy: SigningPolicy, serial: SerialAllocation, csr_path: str, cert_path: str,
                         passphrase: str, not_before: datetime, not_after: datetime,
                         profile: str = SERVER_PROFILE) -> None:
        """Sign csr_path with the store's CA key and certificate."""

    @abstractmethod
    def export_bundle(self, cert_path: str, bundle_path: str, friendly_name: str = "") -> None:
        """Password-less PKCS#12 holding the certificate only."""
