import logging
from typing import Callable, List

from .ca_ops import ca_init
from .cert_ops import cert_issue
from .errors import StoreExistsError
from .ir import IdentitySet, IssuedCert
from .passphrase import prompt_passphrase
from .store import CAStore, init_store
from .toolkit import Toolkit

log = logging.getLogger(__name__)


def bootstrap(
    root: str,
    identities: IdentitySet,
    toolkit: Toolkit,
    get_passphrase: Callable[[], str] = prompt_passphrase,
    randbytes=None,
) -> List[IssuedCert]:
    """
    Create the CA state under root, issue the CA, then every leaf in order.
    An existing state directory or a rejected passphrase stops the run
    before anything is written.
    """
    store = CAStore(root, identities.ca.name)
    if store.exists():
        raise StoreExistsError(store.dir)
    passphrase = get_passphrase()

    store = init_store(root, identities.ca.name)
    log.info("using %s toolkit", toolkit.name)
    issued = [ca_init(store, toolkit, identities.ca, passphrase,
                      key_size=identities.key_size, bundle_name=identities.bundle, randbytes=randbytes)]
    for leaf in identities.leaves:
        issued.append(cert_issue(store, toolkit, leaf, passphrase,
                                 key_size=identities.key_size, randbytes=randbytes))
    return issued
