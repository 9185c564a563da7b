"""Pytest configuration and fixtures."""

import os

# Keep the module-level engine off disk; must run before config is imported.
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["VIDEO_SDK_MODULE"] = ""
os.environ["MESSAGING_SDK_MODULE"] = ""

from datetime import datetime, timedelta

import pytest
from sqlalchemy.orm import sessionmaker

from database import Base, build_engine
from models import SignaturePayload
from signature_fetcher import SignatureFetchError
from signature_provisioner import SignatureProvisioner


class FakeFetcher:
    """Returns a fixed payload, or raises the configured error."""

    def __init__(self, payload=None, error=None):
        self.payload = payload
        self.error = error
        self.calls = 0

    def fetch_signature(self):
        self.calls += 1
        if self.error is not None:
            raise self.error
        return self.payload


class FakeVideoSdk:
    def __init__(self):
        self.installed = []

    def set_signature(self, app_id, signature):
        self.installed.append((app_id, signature))


@pytest.fixture
def session_factory():
    """Fresh in-memory database per test."""
    engine = build_engine("sqlite://")
    Base.metadata.create_all(bind=engine)
    yield sessionmaker(autocommit=False, autoflush=False, bind=engine)
    engine.dispose()


@pytest.fixture
def payload():
    return SignaturePayload(
        signature="sig-abc123",
        expiresAt=datetime.utcnow() + timedelta(days=1),
    )


@pytest.fixture
def fetcher(payload):
    return FakeFetcher(payload=payload)


@pytest.fixture
def failing_fetcher():
    return FakeFetcher(error=SignatureFetchError("server unreachable"))


@pytest.fixture
def video_sdk():
    return FakeVideoSdk()


@pytest.fixture
def messaging_sdk():
    return object()


@pytest.fixture
def make_provisioner(session_factory, fetcher, video_sdk, messaging_sdk):
    """Build provisioners and shut their schedulers down after the test."""
    created = []

    def _make(**overrides):
        kwargs = {
            "session_factory": session_factory,
            "fetcher": fetcher,
            "video_sdk": video_sdk,
            "messaging_sdk": messaging_sdk,
        }
        kwargs.update(overrides)
        provisioner = SignatureProvisioner(**kwargs)
        created.append(provisioner)
        return provisioner

    yield _make

    for provisioner in created:
        provisioner.shutdown(wait=True)


@pytest.fixture
def provisioner(make_provisioner):
    return make_provisioner()
