# passphrase.py
# Operator passphrase for the CA key, validated before any key is generated.

import getpass
import os

from .errors import PassphraseError

MIN_LENGTH = 4


def check_passphrase(passphrase: str, confirmation: str) -> str:
    if len(passphrase) < MIN_LENGTH:
        raise PassphraseError(f"passphrase must be at least {MIN_LENGTH} characters")
    if passphrase != confirmation:
        raise PassphraseError("passphrases do not match")
    return passphrase


def prompt_passphrase(prompt=getpass.getpass) -> str:
    """Ask twice with echo suppressed."""
    first = prompt("Enter CA passphrase: ")
    if len(first) < MIN_LENGTH:
        raise PassphraseError(f"passphrase must be at least {MIN_LENGTH} characters")
    second = prompt("Verify CA passphrase: ")
    return check_passphrase(first, second)


def passphrase_from_env(var: str) -> str:
    value = os.environ.get(var)
    if value is None:
        raise PassphraseError(f"environment variable {var} is not set")
    return check_passphrase(value, value)
