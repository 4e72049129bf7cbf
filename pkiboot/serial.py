# serial.py
# Random certificate serials whose hex form never starts with '0'.

import logging
import secrets

from .errors import SerialAllocationError
from .ir import SerialAllocation

log = logging.getLogger(__name__)

SERIAL_BYTES = 8
MAX_ATTEMPTS = 64


def allocate_serial(randbytes=None, max_attempts: int = MAX_ATTEMPTS) -> SerialAllocation:
    """
    Draw SERIAL_BYTES random bytes until the hex encoding does not begin with
    '0'. Each draw fails with probability 1/16, so max_attempts is only hit
    by a broken randomness source.
    """
    randbytes = randbytes or secrets.token_bytes
    for attempt in range(1, max_attempts + 1):
        value = randbytes(SERIAL_BYTES).hex()
        if len(value) != SERIAL_BYTES * 2:
            raise SerialAllocationError(f"random source returned {len(value) // 2} bytes, wanted {SERIAL_BYTES}")
        if not value.startswith("0"):
            if attempt > 1:
                log.debug("serial allocated after %d attempts", attempt)
            return SerialAllocation(hex=value)
    raise SerialAllocationError(f"no serial without a leading zero after {max_attempts} attempts")
