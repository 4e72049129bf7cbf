# errors.py
# Exception hierarchy; the CLI turns any PkiBootError into a non-zero exit.

import subprocess


class PkiBootError(Exception):
    """Base class for every failure reported by pkiboot."""


class StoreExistsError(PkiBootError):
    def __init__(self, path: str):
        super().__init__(f"{path} already exists")
        self.path = path


class PassphraseError(PkiBootError):
    pass


class SerialAllocationError(PkiBootError):
    pass


class PolicyMismatchError(PkiBootError):
    pass


class IdentityConfigError(PkiBootError):
    pass


class ToolkitError(PkiBootError):
    """A cryptographic toolkit operation failed."""

    def __init__(self, message: str, stderr: str = ""):
        super().__init__(message)
        self.stderr = stderr

    @classmethod
    def from_called_process(cls, e: subprocess.CalledProcessError) -> "ToolkitError":
        cmd = e.cmd[:2] if isinstance(e.cmd, (list, tuple)) else [str(e.cmd)]
        stderr = e.stderr or ""
        if isinstance(stderr, bytes):
            stderr = stderr.decode("utf-8", "replace")
        msg = f"{' '.join(str(c) for c in cmd)} exited with status {e.returncode}"
        if stderr.strip():
            msg += f": {stderr.strip().splitlines()[-1]}"
        return cls(msg, stderr=stderr)
