import uuid
from datetime import datetime

from sqlalchemy import create_engine, Column, Integer, String, DateTime, Text, JSON
from sqlalchemy.orm import declarative_base, sessionmaker, Session
from sqlalchemy.pool import StaticPool

from config import settings

def build_engine(database_url: str):
    """
    Create an engine usable from the scheduler's worker threads.
    In-memory SQLite shares one connection so every thread sees the same data.
    """
    if not database_url.startswith("sqlite"):
        return create_engine(database_url)

    kwargs = {"connect_args": {"check_same_thread": False}}
    if database_url in ("sqlite://", "sqlite:///:memory:"):
        kwargs["poolclass"] = StaticPool
    return create_engine(database_url, **kwargs)

engine = build_engine(settings.DATABASE_URL)
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)
Base = declarative_base()

# Database Models
class LocalSignatureCache(Base):
    __tablename__ = "local_signature_cache"

    id = Column(Integer, primary_key=True, index=True)
    signature = Column(Text, nullable=False)
    payload = Column(JSON)  # Raw data object from the signature server

    fetched_at = Column(DateTime, default=datetime.utcnow)
    expires_at = Column(DateTime)  # None means no expiry

class LocalSignatureInstallAttempt(Base):
    __tablename__ = "local_signature_install_attempts"

    id = Column(Integer, primary_key=True, index=True)
    app_id = Column(String(255))

    # Attempt Result
    result_code = Column(Integer, nullable=False)
    result = Column(String(32), nullable=False)

    attempted_at = Column(DateTime, default=datetime.utcnow, index=True)

class SystemConfig(Base):
    __tablename__ = "system_config"

    id = Column(Integer, primary_key=True, index=True)
    key = Column(String(100), unique=True, nullable=False, index=True)
    value = Column(Text, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

def init_db(bind=None):
    """Create tables. Called from the host's startup sequence."""
    Base.metadata.create_all(bind=bind or engine)

def get_installation_id(db: Session) -> str:
    """Get or generate unique installation ID."""
    config = db.query(SystemConfig).filter(
        SystemConfig.key == "installation_id"
    ).first()

    if config:
        return config.value

    new_id = str(uuid.uuid4())
    db.add(SystemConfig(key="installation_id", value=new_id))
    db.commit()

    return new_id
