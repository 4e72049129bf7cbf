import json
import importlib.resources as pkg
from typing import Optional

import yaml
from jsonschema import ValidationError

from . import v1  # noqa: F401  (registers the v1 adapter)
from .registry import get as get_adapter
from .validate import validate_doc
from ..errors import IdentityConfigError
from ..ir import IdentitySet


def _detect_version(doc: dict) -> str:
    v = doc.get("version") if isinstance(doc, dict) else None
    if not v:
        raise IdentityConfigError("Missing 'version' field in document")
    return v


def _parse(text: str, source: str) -> dict:
    try:
        if source.endswith(".json"):
            return json.loads(text)
        return yaml.safe_load(text)
    except (ValueError, yaml.YAMLError) as e:
        raise IdentityConfigError(f"{source}: {e}") from e


def load_identities(doc: dict, source: str = "<identities>") -> IdentitySet:
    v = _detect_version(doc)
    try:
        validate_doc(doc, v, "identities")
        return get_adapter(v).to_ir_identities(doc)
    except (ModuleNotFoundError, FileNotFoundError) as e:
        raise IdentityConfigError(f"{source}: unsupported schema version {v!r}") from e
    except ValidationError as e:
        where = "/".join(str(p) for p in e.absolute_path) or "document"
        raise IdentityConfigError(f"{source}: {where}: {e.message}") from e
    except ValueError as e:
        raise IdentityConfigError(f"{source}: {e}") from e


def read_identities(path: Optional[str] = None) -> IdentitySet:
    """Read an identities file (YAML or JSON); the packaged defaults when path is None."""
    if path is None:
        source = "default identities"
        text = pkg.files("pkiboot.defaults").joinpath("identities.yaml").read_text(encoding="utf-8")
    else:
        source = path
        try:
            with open(path, encoding="utf-8") as f:
                text = f.read()
        except OSError as e:
            raise IdentityConfigError(f"{path}: {e.strerror}") from e
    return load_identities(_parse(text, source), source)
