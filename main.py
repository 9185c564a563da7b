import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Depends
from fastapi.middleware.cors import CORSMiddleware

from config import settings, __version__
from database import get_installation_id
from hardware_fingerprint import get_hardware_fingerprint
from signature_provisioner import SignatureProvisioner, get_shared_instance, initialize, shutdown
from models import (
    SignatureInstallRequest,
    SignatureInstallResponse,
    SignatureUpdateResponse,
    SignatureResultResponse,
    SignatureStatusResponse,
    HealthCheckResponse
)

@asynccontextmanager
async def lifespan(app: FastAPI):
    logging.basicConfig(
        level=settings.LOG_LEVEL,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s"
    )
    provisioner = initialize()
    if settings.UPDATE_ON_STARTUP:
        provisioner.start_update_signature()
    yield
    shutdown()

app = FastAPI(
    title="SDK Signature Client Service",
    description="Fetches the video SDK signature and installs it into the linked SDK",
    version=__version__,
    lifespan=lifespan
)

# CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

def get_provisioner() -> SignatureProvisioner:
    return get_shared_instance()

# API Endpoints
@app.post("/api/signature/update", response_model=SignatureUpdateResponse)
def start_update(provisioner: SignatureProvisioner = Depends(get_provisioner)):
    """
    Start fetching a fresh signature from the signature server.

    Returns immediately; poll /api/signature/status to see when the
    update has finished.
    """
    provisioner.start_update_signature()
    return {"accepted": True, "message": "Signature update started"}

@app.post("/api/signature/install", response_model=SignatureInstallResponse)
def install_signature(
    request: SignatureInstallRequest,
    provisioner: SignatureProvisioner = Depends(get_provisioner)
):
    """
    Install the cached signature into the video SDK for the given app id.

    Failures are reported through resultCode, not HTTP status:
    -7 no video SDK, -8 no messaging SDK, -9 empty app id, -10 no signature.
    """
    success = provisioner.set_signature_to_sdk(request.appId)
    result = provisioner.get_set_signature_result()
    return {"success": success, "resultCode": int(result), "result": result.name}

@app.get("/api/signature/result", response_model=SignatureResultResponse)
def get_result(provisioner: SignatureProvisioner = Depends(get_provisioner)):
    result = provisioner.get_set_signature_result()
    return {"resultCode": int(result), "result": result.name}

@app.get("/api/signature/status", response_model=SignatureStatusResponse)
def get_status(provisioner: SignatureProvisioner = Depends(get_provisioner)):
    return provisioner.get_status()

@app.get("/health", response_model=HealthCheckResponse)
def health_check(provisioner: SignatureProvisioner = Depends(get_provisioner)):
    """
    Health check endpoint for container orchestration.
    """
    with provisioner.session_factory() as db:
        installation_id = get_installation_id(db)

    return {
        "status": "healthy",
        "service": "signature-client",
        "version": __version__,
        "installationId": installation_id,
        "hardwareId": get_hardware_fingerprint(),
        "videoSdkLinked": provisioner.video_sdk is not None,
        "messagingSdkLinked": provisioner.messaging_sdk is not None
    }

if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
