"""
Lookup of the externally owned SDKs the signature is installed into.

Both SDKs are opaque to this service. A video SDK is anything exposing
``set_signature(app_id, signature)``; a messaging SDK only has to be present.
"""

import importlib
import logging
from typing import Any, Optional, Protocol, runtime_checkable

logger = logging.getLogger(__name__)

@runtime_checkable
class VideoSdk(Protocol):
    def set_signature(self, app_id: str, signature: str) -> None:
        ...

def _import_optional(module_name: str) -> Optional[Any]:
    if not module_name:
        return None
    try:
        return importlib.import_module(module_name)
    except ImportError as e:
        logger.warning("SDK module %s is not available: %s", module_name, e)
        return None
    except Exception:
        logger.exception("SDK module %s failed to import, treating as not linked", module_name)
        return None

def load_video_sdk(module_name: str) -> Optional[VideoSdk]:
    module = _import_optional(module_name)
    if module is None:
        return None
    if not callable(getattr(module, "set_signature", None)):
        logger.warning("SDK module %s has no set_signature(), treating as not linked", module_name)
        return None
    return module

def load_messaging_sdk(module_name: str) -> Optional[Any]:
    return _import_optional(module_name)
