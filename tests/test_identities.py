import json
from datetime import datetime, timedelta, timezone

import pytest

from conftest import identities_doc
from pkiboot.errors import IdentityConfigError
from pkiboot.serde import load_identities, read_identities


def test_packaged_defaults_describe_ca_and_three_servers():
    ids = read_identities()
    assert ids.key_size == 4096
    assert ids.ca.subject == "/C=US/ST=California/L=San Francisco/O=Example Org/CN=Example Org Root CA"
    assert ids.bundle == "ca.p12"
    assert [l.name for l in ids.leaves] == ["localhost", "www", "mail"]
    www = ids.leaves[1]
    assert www.san == ("example.com", "www.example.com")
    assert www.not_after - www.not_before == timedelta(days=825)
    assert ids.leaves[2].san == ("mail.example.com",)
    assert ids.ca.not_after - ids.ca.not_before == timedelta(days=3650)


def test_explicit_window_and_full_subject():
    doc = identities_doc(leaves=[{
        "name": "api",
        "subject": "/C=US/ST=California/L=San Francisco/O=Example Org/OU=Ops/CN=api.example.com",
        "not_before": "2025-01-01T00:00:00Z",
        "not_after": "2026-01-01T00:00:00Z",
        "san": "api.example.com,api2.example.com",
    }])
    leaf = load_identities(doc).leaves[0]
    assert leaf.subject.endswith("/OU=Ops/CN=api.example.com")
    assert leaf.not_before == datetime(2025, 1, 1, tzinfo=timezone.utc)
    assert leaf.not_after == datetime(2026, 1, 1, tzinfo=timezone.utc)
    assert leaf.san == ("api.example.com", "api2.example.com")


def test_json_identities_file(tmp_path):
    path = tmp_path / "ids.json"
    path.write_text(json.dumps(identities_doc(leaves=[])))
    ids = read_identities(str(path))
    assert ids.leaves == []
    assert ids.ca.name == "ca"


def test_yaml_identities_file(tmp_path):
    path = tmp_path / "ids.yaml"
    path.write_text(
        "version: v1\n"
        "base_subject: /C=US/ST=CA/L=SF/O=Acme\n"
        "ca: {common_name: Acme Root}\n"
        "leaves:\n"
        "  - {name: web, common_name: web.acme.test, san: [web.acme.test]}\n"
    )
    ids = read_identities(str(path))
    assert ids.key_size == 4096
    assert ids.leaves[0].subject == "/C=US/ST=CA/L=SF/O=Acme/CN=web.acme.test"


@pytest.mark.parametrize("mutate, message", [
    (lambda d: d.pop("ca"), "'ca' is a required property"),
    (lambda d: d["leaves"][0].update(name="../evil"), "leaves/0/name"),
    (lambda d: d["leaves"][0].pop("common_name"), "leaves/0"),
    (lambda d: d.update(key_size=1024), "key_size"),
    (lambda d: d["ca"].update(not_before="2030-01-01T00:00:00Z", not_after="2029-01-01T00:00:00Z"),
     "not_after must be later"),
    (lambda d: d["leaves"].append({"name": "www", "common_name": "dup.example.com"}), "duplicate"),
    (lambda d: d.update(base_subject="/C=US/O=Acme"), "ca: stateOrProvinceName field needed"),
    (lambda d: d.update(base_subject="/C=US/ST=California/X=1/O=Example Org"), "unsupported subject attribute"),
    (lambda d: d["leaves"][0].update(subject="/C=US/ST=California/L=San Francisco/O=Other Org/CN=x"),
     "localhost: organizationName field needed"),
    (lambda d: d["leaves"].append({"name": "www2", "common_name": "www.example.com"}), "duplicate subjects"),
    (lambda d: d["leaves"][1].update(san=["ok.example.com", "x\n[ v3_ca ]"]), "leaves/1/san"),
    (lambda d: d["leaves"][1].update(san="ok.example.com,bad$name"), "leaves/1/san"),
    (lambda d: d["leaves"][1].update(san="ok.example.com, -bad.example.com"), "invalid DNS name"),
])
def test_invalid_identities_are_rejected(mutate, message):
    doc = identities_doc()
    mutate(doc)
    with pytest.raises(IdentityConfigError, match=message):
        load_identities(doc)


def test_unknown_schema_version():
    doc = identities_doc()
    doc["version"] = "v9"
    with pytest.raises(IdentityConfigError, match="unsupported schema version"):
        load_identities(doc)


def test_unreadable_identities_file(tmp_path):
    with pytest.raises(IdentityConfigError):
        read_identities(str(tmp_path / "missing.yaml"))
    bad = tmp_path / "bad.yaml"
    bad.write_text("version: [unclosed\n")
    with pytest.raises(IdentityConfigError):
        read_identities(str(bad))
