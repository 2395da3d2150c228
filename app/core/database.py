import logging
from pathlib import Path

from sqlalchemy import create_engine
from sqlalchemy.engine import make_url
from sqlalchemy.orm import declarative_base, sessionmaker

from app.core.config import settings

# -----------------------
# Logging setup
# -----------------------
logger = logging.getLogger(__name__)

# -----------------------
# Database URL
# -----------------------
DATABASE_URL = settings.database_url
url = make_url(DATABASE_URL)

connect_args = {}
if url.get_backend_name() == "sqlite":
    # FastAPI serves sync endpoints from a threadpool
    connect_args["check_same_thread"] = False
    if url.database and url.database != ":memory:":
        Path(url.database).parent.mkdir(parents=True, exist_ok=True)

logger.info(f"Connecting to database: {url.render_as_string(hide_password=True)}")

# -----------------------
# SQLAlchemy engine
# -----------------------
engine = create_engine(
    DATABASE_URL,
    echo=settings.debug and not settings.production,
    pool_pre_ping=True,
    connect_args=connect_args,
)

# -----------------------
# Test connection
# -----------------------
try:
    with engine.connect() as conn:
        logger.info("Database connection successful ✅")
except Exception as e:
    logger.error(f"Failed to connect to database ❌: {str(e)}")
    raise

# -----------------------
# Session and Base
# -----------------------
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)
Base = declarative_base()


# -----------------------
# Dependency for FastAPI
# -----------------------
def get_db():
    db = SessionLocal()
    try:
        yield db
    except Exception as e:
        logger.error(f"Database error occurred: {str(e)}")
        db.rollback()
        raise
    finally:
        db.close()
