import pytest

from pkiboot.serde import load_identities
from pkiboot.store import CAStore

BASE = "/C=US/ST=California/L=San Francisco/O=Example Org"


def identities_doc(leaves=None, key_size=2048):
    return {
        "version": "v1",
        "base_subject": BASE,
        "key_size": key_size,
        "ca": {"name": "ca", "common_name": "Test Root CA", "days": 30},
        "leaves": leaves if leaves is not None else [
            {"name": "localhost", "common_name": "localhost", "days": 10},
            {"name": "www", "common_name": "www.example.com", "days": 10,
             "san": ["example.com", "www.example.com"]},
            {"name": "mail", "common_name": "mail.example.com", "days": 10},
        ],
    }


@pytest.fixture
def identities():
    return load_identities(identities_doc())


@pytest.fixture
def store(tmp_path):
    return CAStore(str(tmp_path / "pki"))
