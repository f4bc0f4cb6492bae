from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from solarpunklist.core.config import DATABASE_URL


engine = create_engine(
    DATABASE_URL,
    pool_pre_ping=True,
)

SessionLocal = sessionmaker(
    autocommit=False,
    autoflush=False,
    bind=engine,
)
