from sqlalchemy import create_engine
from sqlalchemy.engine import make_url
from sqlalchemy.orm import DeclarativeBase, sessionmaker

from app.config import settings


class Base(DeclarativeBase):
    pass


def get_engine(database_url: str | None = None):
    url = make_url(database_url or settings.database_url)
    if url.get_backend_name() == "sqlite":
        # Local runs only; the overlap exclusion constraint needs PostgreSQL.
        return create_engine(url, connect_args={"check_same_thread": False})
    return create_engine(
        url,
        pool_pre_ping=True,
        pool_size=settings.db_pool_size,
        max_overflow=settings.db_max_overflow,
        pool_timeout=settings.db_pool_timeout,
        pool_recycle=settings.db_pool_recycle,
        connect_args={"application_name": "ispnet-ipam"},
    )


SessionLocal = sessionmaker(bind=get_engine(), autoflush=False, autocommit=False)


def get_db():
    """Request-scoped database session for FastAPI routes.

    Services commit their own transactions; the session is always closed
    after the request, which returns its connection to the pool.

    Example:
        @router.get("/subnets")
        def list_subnets(db: Session = Depends(get_db)):
            return db.query(Subnet).all()
    """
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
