from .base import Toolkit
from .native import NativeToolkit
from .openssl import OpenSSLToolkit

TOOLKITS = {
    OpenSSLToolkit.name: OpenSSLToolkit,
    NativeToolkit.name: NativeToolkit,
}


def get_toolkit(name: str) -> Toolkit:
    try:
        return TOOLKITS[name]()
    except KeyError:
        raise ValueError(f"unknown toolkit {name!r} (choose from {', '.join(sorted(TOOLKITS))})") from None
