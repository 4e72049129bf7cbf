from .io import load_identities, read_identities
