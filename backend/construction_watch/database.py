from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker, DeclarativeBase
from .settings import settings, DB_PATH

if settings.app_db_url.startswith("sqlite:///" + str(DB_PATH)):
    DB_PATH.parent.mkdir(parents=True, exist_ok=True)

engine = create_engine(
    settings.app_db_url,
    connect_args={"check_same_thread": False} if settings.app_db_url.startswith("sqlite") else {},
    pool_pre_ping=True,
    pool_recycle=1800,  # recycle connections every 30 mins to avoid stale links
)

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

class Base(DeclarativeBase):
    pass

def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
