# cli.py
# Argument parser and entrypoints wired to the bootstrap workflow.

import argparse
import logging
import os
import sys
from dataclasses import asdict
from functools import partial

from .errors import PkiBootError
from .inventory import read_index
from .passphrase import passphrase_from_env, prompt_passphrase
from .render import output
from .serde import read_identities
from .store import CAStore
from .toolkit import TOOLKITS, get_toolkit
from .workflow import bootstrap

log = logging.getLogger(__name__)


def build_parser():
    p = argparse.ArgumentParser(
        prog="pkiboot",
        description="Bootstrap a local CA and a set of server certificates"
    )
    p.add_argument("--root", default=".", help="Directory holding the CA state and issued files (default: '.')")
    p.add_argument("--toolkit", choices=sorted(TOOLKITS), default="openssl",
                   help="Cryptographic toolkit: the openssl command or the cryptography library")
    p.add_argument("--output", choices=["json","table","yaml"], default="table", help="Output format")
    p.add_argument("-v", "--verbose", action="store_true", help="Log every toolkit step")
    sub = p.add_subparsers(dest="cmd", required=True)

    b = sub.add_parser("bootstrap", help="Create the CA and issue all configured certificates")
    b.add_argument("--identities", default=None,
                   help="YAML/JSON identities file (default: packaged CA + three server identities)")
    b.add_argument("--passphrase-env", default=None, metavar="VAR",
                   help="Read the CA passphrase from this environment variable instead of prompting")
    b.set_defaults(func=cmd_bootstrap)

    inv = sub.add_parser("inventory", help="List certificates registered in the CA index")
    inv.set_defaults(func=cmd_inventory)

    return p


def cmd_bootstrap(args):
    identities = read_identities(args.identities)
    if args.passphrase_env:
        get_passphrase = partial(passphrase_from_env, args.passphrase_env)
    else:
        get_passphrase = prompt_passphrase
    issued = bootstrap(args.root, identities, get_toolkit(args.toolkit), get_passphrase)

    rows = [["NAME","KIND","SERIAL","NOT_AFTER","CERTIFICATE","SAN"]]
    for c in issued:
        m = c.metadata
        rows.append([c.name, c.kind, m.serial, m.not_after, os.path.relpath(c.crt_path, args.root),
                     ",".join(m.san or [])])
    output([asdict(c) for c in issued], args.output, rows)


def cmd_inventory(args):
    store = CAStore(args.root)
    if not store.exists():
        raise PkiBootError(f"no CA state in {store.dir}")
    entries = read_index(store)
    if args.output == "table" and not entries:
        print("No certificates issued.")
        return
    rows = [["STATUS","EXPIRES","SERIAL","SUBJECT"]]
    rows += [[e["status"], e["expires"], e["serial"], e["subject"]] for e in entries]
    output(entries, args.output, rows)


def main(argv=None):
    parser = build_parser()
    args = parser.parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(levelname)s %(name)s: %(message)s",
        stream=sys.stderr,
    )
    try:
        args.func(args)
    except PkiBootError as e:
        log.debug("aborted", exc_info=True)
        raise SystemExit(f"pkiboot: {e}") from e


if __name__ == "__main__":
    main()
