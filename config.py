"""
Signature Client Service for video SDK activation

This service fetches the signed credential a third-party video SDK needs
at runtime, caches it locally, and installs it into the SDK for a given
application id. Install outcomes are reported as integer result codes.
"""

from pydantic_settings import BaseSettings

__version__ = "1.0.0"

class Settings(BaseSettings):
    # Signature Server Configuration
    SIGNATURE_API_URL: str = "http://localhost:4000/api"
    SIGNATURE_API_TIMEOUT: int = 30

    # Installation Info
    INSTALLATION_NAME: str = "Video SDK Host"
    APP_VERSION: str = "1.0.0"

    # Database
    DATABASE_URL: str = "sqlite:///./signature_client.db"

    # Dependent SDKs (importable module names, empty means not linked)
    VIDEO_SDK_MODULE: str = ""
    MESSAGING_SDK_MODULE: str = ""

    # Update Configuration
    SIGNATURE_REFRESH_INTERVAL_HOURS: int = 0  # 0 disables periodic refresh
    UPDATE_ON_STARTUP: bool = True

    # Logging
    LOG_LEVEL: str = "INFO"

    class Config:
        env_file = ".env"

settings = Settings()
