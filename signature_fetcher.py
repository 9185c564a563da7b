import logging
from typing import Optional, Protocol

import httpx
from pydantic import ValidationError
from sqlalchemy.orm import sessionmaker

from config import settings
from database import get_installation_id
from hardware_fingerprint import get_hardware_fingerprint
from models import SignaturePayload

logger = logging.getLogger(__name__)

class SignatureFetchError(Exception):
    """Raised when no signature could be obtained from the signature server."""

class SignatureFetcher(Protocol):
    def fetch_signature(self) -> SignaturePayload:
        ...

class HttpSignatureFetcher:
    """Fetches the signature from the remote signature server over HTTP."""

    def __init__(
        self,
        session_factory: sessionmaker,
        api_url: Optional[str] = None,
        timeout: Optional[float] = None,
        transport: Optional[httpx.BaseTransport] = None,
    ):
        self.session_factory = session_factory
        self.api_url = (api_url or settings.SIGNATURE_API_URL).rstrip("/")
        self.timeout = timeout if timeout is not None else settings.SIGNATURE_API_TIMEOUT
        self.transport = transport

    def fetch_signature(self) -> SignaturePayload:
        with self.session_factory() as db:
            installation_id = get_installation_id(db)

        try:
            with httpx.Client(timeout=self.timeout, transport=self.transport) as client:
                response = client.post(
                    f"{self.api_url}/signatures/fetch",
                    json={
                        "installationId": installation_id,
                        "hardwareId": get_hardware_fingerprint(),
                        "installationName": settings.INSTALLATION_NAME,
                        "appVersion": settings.APP_VERSION
                    },
                    headers={
                        "Content-Type": "application/json",
                        "X-Installation-ID": installation_id
                    }
                )
                response.raise_for_status()
                data = response.json()
        except httpx.TimeoutException as e:
            raise SignatureFetchError(f"Signature request timed out: {e}") from e
        except httpx.HTTPError as e:
            raise SignatureFetchError(f"HTTP error during signature fetch: {e}") from e
        except ValueError as e:
            raise SignatureFetchError(f"Signature server returned invalid JSON: {e}") from e

        if not isinstance(data, dict) or not data.get("success"):
            error = data.get("error") if isinstance(data, dict) else None
            if isinstance(error, dict) and error.get("message"):
                raise SignatureFetchError(error["message"])
            raise SignatureFetchError("Signature fetch failed")

        try:
            payload = SignaturePayload.model_validate(data.get("data") or {})
        except ValidationError as e:
            raise SignatureFetchError(f"Malformed signature payload: {e}") from e

        logger.debug("Fetched signature for installation %s", installation_id)
        return payload
