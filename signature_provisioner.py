"""
Fetch-and-install logic for the video SDK signature.

The provisioner keeps the most recently fetched signature and the result of
the most recent install attempt. Updates run on a background scheduler so
callers are never blocked; install and result queries are synchronous.
"""

import logging
import threading
from concurrent.futures import Future
from datetime import datetime, timezone
from typing import Any, Dict, Optional, Tuple

from apscheduler.schedulers.background import BackgroundScheduler
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import sessionmaker

from config import settings
from database import SessionLocal, LocalSignatureCache, LocalSignatureInstallAttempt, init_db
from models import SignaturePayload, SignatureResult
from sdk_bridge import VideoSdk, load_video_sdk, load_messaging_sdk
from signature_fetcher import HttpSignatureFetcher, SignatureFetcher, SignatureFetchError

logger = logging.getLogger(__name__)

class SignatureProvisioner:
    def __init__(
        self,
        session_factory: sessionmaker,
        fetcher: SignatureFetcher,
        video_sdk: Optional[VideoSdk] = None,
        messaging_sdk: Optional[Any] = None,
        scheduler: Optional[BackgroundScheduler] = None,
    ):
        self.session_factory = session_factory
        self.fetcher = fetcher
        self.video_sdk = video_sdk
        self.messaging_sdk = messaging_sdk
        self.scheduler = scheduler or BackgroundScheduler()

        self._lock = threading.Lock()
        self._start_lock = threading.Lock()
        self._signature: Optional[str] = None
        self._fetched_at: Optional[datetime] = None
        self._expires_at: Optional[datetime] = None
        self._last_result = SignatureResult.NO_SIGNATURE
        self._last_fetch_error: Optional[str] = None
        self._pending: Optional[Future] = None

    def start(self, refresh_interval_hours: Optional[int] = None):
        """
        Load the persisted signature and start the background scheduler.
        Safe to call more than once.
        """
        with self._start_lock:
            if self.scheduler.running:
                return

            self._load_cached_signature()

            if refresh_interval_hours is None:
                refresh_interval_hours = settings.SIGNATURE_REFRESH_INTERVAL_HOURS
            if refresh_interval_hours > 0:
                self.scheduler.add_job(
                    self.start_update_signature,
                    'interval',
                    hours=refresh_interval_hours,
                    id='signature_refresh',
                    replace_existing=True
                )
            self.scheduler.start()

    def shutdown(self, wait: bool = False):
        if self.scheduler.running:
            self.scheduler.shutdown(wait=wait)

    def start_update_signature(self) -> Future:
        """
        Begin fetching a fresh signature without blocking the caller.

        The returned future resolves to True once a signature has been stored
        and False if the fetch failed. While a fetch is in flight, further
        calls return the same future.
        """
        # Errors from start() reach the caller before any update is pending.
        self.start()

        with self._lock:
            if self._pending is not None and not self._pending.done():
                return self._pending
            future = Future()
            self._pending = future

        try:
            self.scheduler.add_job(
                self._run_update,
                'date',
                args=[future],
                misfire_grace_time=None
            )
        except Exception as e:
            future.set_exception(e)
            raise

        logger.info("Signature update scheduled")
        return future

    def _run_update(self, future: Future):
        try:
            payload = self.fetcher.fetch_signature()
            self._store_signature(payload)
        except SignatureFetchError as e:
            logger.warning("Signature update failed: %s", e)
            with self._lock:
                self._last_fetch_error = str(e)
            future.set_result(False)
            return
        except Exception as e:
            with self._lock:
                self._last_fetch_error = str(e)
            future.set_exception(e)
            raise

        logger.info("Signature updated, expires at %s", payload.expiresAt or "never")
        future.set_result(True)

    def set_signature_to_sdk(self, app_id: Optional[str]) -> bool:
        """
        Install the current signature into the video SDK for ``app_id``.

        Returns True only when the signature was handed to the SDK. The
        reason for a failure is available from get_set_signature_result().
        """
        with self._lock:
            result, signature = self._check_install(app_id)

        if result is SignatureResult.SUCCESS:
            # The SDK is external code; never call it with self._lock held.
            try:
                self.video_sdk.set_signature(app_id, signature)
            except Exception:
                logger.exception("Video SDK rejected the signature for app_id:%s", app_id)
                result = SignatureResult.NO_VIDEO_SDK

        with self._lock:
            self._last_result = result

        logger.info("Set signature to SDK. app_id:%s result:%d", app_id, result)
        self._log_install_attempt(app_id, result)
        return result is SignatureResult.SUCCESS

    def _check_install(self, app_id: Optional[str]) -> Tuple[SignatureResult, Optional[str]]:
        # caller holds self._lock
        if not app_id:
            return SignatureResult.APP_ID_EMPTY, None
        if self.video_sdk is None:
            return SignatureResult.NO_VIDEO_SDK, None
        if self.messaging_sdk is None:
            return SignatureResult.NO_MESSAGING_SDK, None

        signature = self._usable_signature()
        if signature is None:
            return SignatureResult.NO_SIGNATURE, None
        return SignatureResult.SUCCESS, signature

    def _usable_signature(self) -> Optional[str]:
        if self._signature is None:
            return None
        if self._expires_at is not None and self._expires_at <= datetime.utcnow():
            return None
        return self._signature

    def get_set_signature_result(self) -> SignatureResult:
        with self._lock:
            return self._last_result

    def get_status(self) -> Dict[str, Any]:
        """
        Get current signature status for display.
        """
        with self._lock:
            return {
                "hasSignature": self._usable_signature() is not None,
                "fetchedAt": self._fetched_at.isoformat() if self._fetched_at else None,
                "expiresAt": self._expires_at.isoformat() if self._expires_at else None,
                "updating": self._pending is not None and not self._pending.done(),
                "lastResult": self._last_result.name,
                "lastResultCode": int(self._last_result),
                "lastFetchError": self._last_fetch_error
            }

    def _store_signature(self, payload: SignaturePayload):
        now = datetime.utcnow()
        expires_at = _naive_utc(payload.expiresAt)

        with self.session_factory() as db:
            cached = db.query(LocalSignatureCache).first()
            if cached:
                cached.signature = payload.signature
                cached.payload = payload.model_dump(mode="json")
                cached.fetched_at = now
                cached.expires_at = expires_at
            else:
                db.add(LocalSignatureCache(
                    signature=payload.signature,
                    payload=payload.model_dump(mode="json"),
                    fetched_at=now,
                    expires_at=expires_at
                ))
            db.commit()

        with self._lock:
            self._signature = payload.signature
            self._fetched_at = now
            self._expires_at = expires_at
            self._last_fetch_error = None

    def _load_cached_signature(self):
        with self.session_factory() as db:
            cached = db.query(LocalSignatureCache).first()
            if not cached:
                return
            signature, fetched_at, expires_at = cached.signature, cached.fetched_at, cached.expires_at

        with self._lock:
            self._signature = signature
            self._fetched_at = fetched_at
            self._expires_at = expires_at
        logger.info("Loaded cached signature fetched at %s", fetched_at)

    def _log_install_attempt(self, app_id: Optional[str], result: SignatureResult):
        """
        Record the attempt. Failures are logged only; the result code stays
        the caller's answer.
        """
        try:
            with self.session_factory() as db:
                db.add(LocalSignatureInstallAttempt(
                    app_id=app_id,
                    result_code=int(result),
                    result=result.name
                ))
                db.commit()
        except SQLAlchemyError as e:
            logger.warning("Could not record install attempt for app_id:%s: %s", app_id, e)

def _naive_utc(value: Optional[datetime]) -> Optional[datetime]:
    if value is None or value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)

_shared_instance: Optional[SignatureProvisioner] = None
_shared_lock = threading.Lock()

def get_shared_instance() -> SignatureProvisioner:
    """Return the process-wide provisioner, building it from settings on first use."""
    global _shared_instance
    with _shared_lock:
        if _shared_instance is None:
            init_db()
            _shared_instance = SignatureProvisioner(
                session_factory=SessionLocal,
                fetcher=HttpSignatureFetcher(SessionLocal),
                video_sdk=load_video_sdk(settings.VIDEO_SDK_MODULE),
                messaging_sdk=load_messaging_sdk(settings.MESSAGING_SDK_MODULE)
            )
        return _shared_instance

def initialize() -> SignatureProvisioner:
    provisioner = get_shared_instance()
    provisioner.start()
    return provisioner

def shutdown():
    global _shared_instance
    with _shared_lock:
        if _shared_instance is not None:
            _shared_instance.shutdown()
            _shared_instance = None
