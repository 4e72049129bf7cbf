# store.py
# On-disk CA state: key store, issued-certificate store, registry index and
# serial counter, laid out the way `openssl ca` expects them.

import logging
import os
import shutil
from typing import List

from .errors import StoreExistsError
from .ir import SerialAllocation

log = logging.getLogger(__name__)

REGISTRY_FILES = (
    "index.txt", "index.txt.old",
    "index.txt.attr", "index.txt.attr.old",
    "serial", "serial.old",
)


class CAStore:
    """
    Paths of one CA state directory (<root>/ca) and the artifacts kept next
    to it at the root.
    """
    def __init__(self, root: str, name: str = "ca"):
        self.root = os.path.abspath(root)
        self.name = name
        self.dir = os.path.join(self.root, "ca")

    def path(self, *parts: str) -> str:
        return os.path.join(self.dir, *parts)

    @property
    def private_dir(self) -> str:
        return self.path("private")

    @property
    def certs_dir(self) -> str:
        return self.path("certs")

    @property
    def new_certs_dir(self) -> str:
        return self.path("newcerts")

    @property
    def database(self) -> str:
        return self.path("index.txt")

    @property
    def serial_file(self) -> str:
        return self.path("serial")

    @property
    def ca_key(self) -> str:
        return os.path.join(self.private_dir, f"{self.name}.key")

    @property
    def ca_csr(self) -> str:
        return os.path.join(self.certs_dir, f"{self.name}.csr")

    @property
    def ca_cert(self) -> str:
        return os.path.join(self.certs_dir, f"{self.name}.crt")

    @property
    def config(self) -> str:
        return os.path.join(self.root, "openssl.cnf")

    def artifact(self, filename: str) -> str:
        return os.path.join(self.root, filename)

    def exists(self) -> bool:
        return os.path.lexists(self.dir)

    # ---- serial / registry ----

    def write_serial(self, allocation: SerialAllocation) -> None:
        with open(self.serial_file, "w") as f:
            f.write(allocation.hex + "\n")

    def read_serial(self) -> str:
        with open(self.serial_file) as f:
            return f.read().strip()

    def record_issued(self, serial: SerialAllocation, expiry: str, subject: str, pem: bytes) -> None:
        """
        Register an issued certificate as `openssl ca` does: back up the
        database and serial, append a 'V' line, store newcerts/<SERIAL>.pem
        and advance the serial counter. index.txt.attr records the
        unique_subject setting the way openssl writes it back.
        """
        for name in ("index.txt", "index.txt.attr", "serial"):
            shutil.copyfile(self.path(name), self.path(name + ".old"))
        with open(self.database, "a") as f:
            f.write("\t".join(["V", expiry, "", serial.index_form, "unknown", subject]) + "\n")
        with open(os.path.join(self.new_certs_dir, f"{serial.index_form}.pem"), "wb") as f:
            f.write(pem)
        nxt = "%0*X" % (len(serial.hex), serial.value + 1)
        with open(self.serial_file, "w") as f:
            f.write(nxt + "\n")
        with open(self.path("index.txt.attr"), "w") as f:
            f.write("unique_subject = yes\n")

    def index_lines(self) -> List[str]:
        with open(self.database) as f:
            return [ln.rstrip("\n") for ln in f if ln.strip()]

    def subject_registered(self, subject: str) -> bool:
        """True when a valid certificate with this subject is already in the index."""
        for ln in self.index_lines():
            fields = ln.split("\t")
            if fields[0] == "V" and fields[-1] == subject:
                return True
        return False


def init_store(root: str, name: str = "ca") -> CAStore:
    """Create the CA state skeleton under root. Refuses to touch an existing one."""
    store = CAStore(root, name)
    if store.exists():
        raise StoreExistsError(store.dir)
    os.makedirs(store.root, exist_ok=True)
    os.mkdir(store.dir, 0o750)
    os.mkdir(store.private_dir, 0o700)
    os.mkdir(store.certs_dir, 0o750)
    os.mkdir(store.new_certs_dir, 0o750)
    # mkdir modes are filtered by umask
    for d in (store.dir, store.certs_dir, store.new_certs_dir):
        os.chmod(d, 0o750)
    os.chmod(store.private_dir, 0o700)
    for name in REGISTRY_FILES:
        open(store.path(name), "w").close()
    log.info("initialized CA state in %s", store.dir)
    return store


def write_private(path: str, data: bytes) -> None:
    """Write key material readable by the owner only."""
    fd = os.open(path, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, 0o600)
    with os.fdopen(fd, "wb") as f:
        f.write(data)
    os.chmod(path, 0o600)
