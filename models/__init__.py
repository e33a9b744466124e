from sqlalchemy import create_engine, Column, Integer, String, DateTime, Boolean, Enum
from sqlalchemy.orm import declarative_base, sessionmaker
from sqlalchemy.sql import func
import enum
import time
from config.settings import settings
import structlog

logger = structlog.get_logger()

Base = declarative_base()

class DeployStatus(enum.Enum):
    PENDING = "pending"
    SUCCESS = "success"
    FAILED = "failed"
    UNKNOWN = "unknown"

    @property
    def terminal(self) -> bool:
        return self in (DeployStatus.SUCCESS, DeployStatus.FAILED)

class Settlement(Base):
    __tablename__ = "settlements"
    id = Column(Integer, primary_key=True)
    call_id = Column(Integer, nullable=False, unique=True, index=True)
    token_address = Column(String, nullable=False)
    pair_id = Column(String, nullable=False)
    outcome = Column(Boolean, nullable=False)
    # u256, stored as a decimal string
    final_price = Column(String, nullable=False)
    price_fresh = Column(Boolean, nullable=False, default=True)
    outcome_timestamp = Column(Integer, nullable=False)
    signature = Column(String, nullable=False)
    deploy_hash = Column(String, nullable=False, index=True)
    status = Column(Enum(DeployStatus), nullable=False, default=DeployStatus.PENDING)
    created_at = Column(DateTime, server_default=func.now(), index=True)
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

engine = create_engine(settings.DATABASE_URL, pool_pre_ping=True)
SessionLocal = sessionmaker(bind=engine)

def init_db(retries=15, delay=2, bind=None):
    bind = bind or engine
    for i in range(retries):
        try:
            Base.metadata.create_all(bind=bind)
            logger.info("Database tables created successfully")
            return
        except Exception as e:
            logger.warning(f"DB not ready yet (attempt {i+1}/{retries})", error=str(e))
            time.sleep(delay)
    raise Exception("Failed to connect to database after retries")
