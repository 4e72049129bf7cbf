from dataclasses import dataclass, field
from datetime import datetime
from typing import List, Optional, Tuple


@dataclass(frozen=True)
class SerialAllocation:
    hex: str

    @property
    def value(self) -> int:
        return int(self.hex, 16)

    @property
    def index_form(self) -> str:
        # openssl ca writes serials upper-case in index.txt and newcerts/
        return self.hex.upper()


@dataclass(frozen=True)
class IdentityRequest:
    name: str                       # filename base, e.g. "www" -> www.key/www.csr/www.crt
    subject: str                    # "/C=US/ST=../O=../CN=www.example.com"
    not_before: datetime
    not_after: datetime
    san: Tuple[str, ...] = ()


@dataclass
class IdentitySet:
    version: str
    base_subject: str
    key_size: int
    ca: IdentityRequest
    bundle: str = "ca.p12"
    leaves: List[IdentityRequest] = field(default_factory=list)


@dataclass
class X509Meta:
    not_before: str
    not_after: str
    serial: str
    sha256: str
    sig_alg: str
    pubkey_bits: int
    is_ca: bool = False
    subject: str = ""
    issuer: str = ""
    subject_cn: Optional[str] = None
    issuer_cn: Optional[str] = None
    san: Optional[List[str]] = None


@dataclass
class IssuedCert:
    name: str
    kind: str                       # "ca" | "server"
    crt_path: str
    key_path: str
    csr_path: str
    metadata: X509Meta = None
    bundle_path: Optional[str] = None
