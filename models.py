from enum import IntEnum
from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field

class SignatureResult(IntEnum):
    """Outcome of the most recent attempt to install a signature into the video SDK."""

    SUCCESS = 0
    NO_VIDEO_SDK = -7
    NO_MESSAGING_SDK = -8
    APP_ID_EMPTY = -9
    NO_SIGNATURE = -10

class SignaturePayload(BaseModel):
    signature: str = Field(min_length=1)
    expiresAt: Optional[datetime] = None

class SignatureInstallRequest(BaseModel):
    appId: Optional[str] = None

class SignatureInstallResponse(BaseModel):
    success: bool
    resultCode: int
    result: str

class SignatureUpdateResponse(BaseModel):
    accepted: bool
    message: str

class SignatureResultResponse(BaseModel):
    resultCode: int
    result: str

class SignatureStatusResponse(BaseModel):
    hasSignature: bool
    fetchedAt: Optional[str] = None
    expiresAt: Optional[str] = None
    updating: bool = False
    lastResult: str
    lastResultCode: int
    lastFetchError: Optional[str] = None

class HealthCheckResponse(BaseModel):
    status: str
    service: str
    version: str
    installationId: Optional[str] = None
    hardwareId: Optional[str] = None
    videoSdkLinked: bool
    messagingSdkLinked: bool
