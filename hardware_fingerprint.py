import uuid
import hashlib
import platform
from functools import lru_cache

import psutil

def _mac_address() -> str:
    node = uuid.getnode()
    return ':'.join(f"{(node >> shift) & 0xff:02x}" for shift in range(40, -8, -8))

@lru_cache(maxsize=1)
def get_hardware_fingerprint() -> str:
    """
    Stable identifier for this device, sent with every signature request
    so the server can bind the issued signature to one machine.
    """
    parts = [
        _mac_address(),
        str(psutil.cpu_count(logical=True)),
        platform.system(),
        platform.machine(),
    ]
    return hashlib.sha256("|".join(parts).encode()).hexdigest()
