import os
import sqlite3
import uuid

import pytest
from sqlalchemy import create_engine, event
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from app.db import Base

# Register UUID adapter for SQLite - store as string
sqlite3.register_adapter(uuid.UUID, lambda u: str(u))


# Monkey-patch SQLAlchemy's UUID type for SQLite compatibility
# This must happen before any models are imported
from sqlalchemy.sql import sqltypes

_original_uuid_bind_processor = sqltypes.Uuid.bind_processor
_original_uuid_result_processor = sqltypes.Uuid.result_processor


def _sqlite_uuid_bind_processor(self, dialect):
    if dialect.name == "sqlite":
        def process(value):
            if value is not None:
                if isinstance(value, uuid.UUID):
                    return str(value)
                return str(uuid.UUID(value)) if value else None
            return None
        return process
    return _original_uuid_bind_processor(self, dialect)


def _sqlite_uuid_result_processor(self, dialect, coltype):
    if dialect.name == "sqlite":
        def process(value):
            if value is not None:
                if isinstance(value, uuid.UUID):
                    return value
                return uuid.UUID(value) if value else None
            return None
        return process
    return _original_uuid_result_processor(self, dialect, coltype)


setattr(sqltypes.Uuid, "bind_processor", _sqlite_uuid_bind_processor)
setattr(sqltypes.Uuid, "result_processor", _sqlite_uuid_result_processor)


# Monkey-patch PostgreSQL JSONB type for SQLite compatibility
# SQLite uses JSON instead of JSONB
def _patch_jsonb_for_sqlite():
    """Make JSONB compile as JSON for SQLite dialect."""
    from sqlalchemy.dialects.sqlite.base import SQLiteTypeCompiler

    if not hasattr(SQLiteTypeCompiler, "_original_visit_JSONB"):
        if hasattr(SQLiteTypeCompiler, "visit_JSONB"):
            SQLiteTypeCompiler._original_visit_JSONB = SQLiteTypeCompiler.visit_JSONB

        def visit_JSONB(self, type_, **kw):
            return self.visit_JSON(type_, **kw)

        SQLiteTypeCompiler.visit_JSONB = visit_JSONB


_patch_jsonb_for_sqlite()

from app import models  # noqa: E402,F401
from app.models.customer import Customer, CustomerService  # noqa: E402
from app.models.network import Router  # noqa: E402
from app.schemas.network import SubnetCreate  # noqa: E402
from app.services import network as network_service  # noqa: E402


@pytest.fixture(scope="session")
def engine():
    database_url = os.getenv("TEST_DATABASE_URL")
    if database_url:
        # PostgreSQL also exercises the overlap exclusion constraint
        engine = create_engine(database_url)
    else:
        engine = create_engine(
            "sqlite+pysqlite://",
            connect_args={
                "check_same_thread": False,
            },
            poolclass=StaticPool,
        )

        @event.listens_for(engine, "connect")
        def _enable_foreign_keys(dbapi_connection, _connection_record):
            cursor = dbapi_connection.cursor()
            cursor.execute("PRAGMA foreign_keys=ON")
            cursor.close()

    Base.metadata.create_all(engine)

    return engine


@pytest.fixture()
def db_session(engine):
    connection = engine.connect()
    transaction = connection.begin()
    SessionLocal = sessionmaker(bind=connection, autoflush=False, autocommit=False)
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()
        transaction.rollback()
        connection.close()


@pytest.fixture()
def router(db_session):
    router = Router(id=1, name="Core-RTR-01", ip_address="10.255.0.1", location="Lagos POP")
    db_session.add(router)
    db_session.commit()
    return router


@pytest.fixture()
def customer(db_session):
    customer = Customer(
        id=42,
        first_name="Ada",
        last_name="Okafor",
        email=f"ada-{uuid.uuid4().hex}@example.com",
    )
    db_session.add(customer)
    db_session.commit()
    return customer


@pytest.fixture()
def business_customer(db_session):
    customer = Customer(id=43, business_name="Harbor Logistics Ltd")
    db_session.add(customer)
    db_session.commit()
    return customer


@pytest.fixture()
def service(db_session, customer):
    service = CustomerService(id=7, customer_id=customer.id, status="active")
    db_session.add(service)
    db_session.commit()
    return service


@pytest.fixture()
def subnet(db_session, router):
    return network_service.subnets.create(
        db_session,
        SubnetCreate(router_id=router.id, cidr="192.168.1.0/24", name="LAN-A"),
    )


@pytest.fixture()
def pooled_subnet(db_session, subnet):
    network_service.ip_pools.generate(db_session, subnet.id)
    return subnet


@pytest.fixture()
def client(db_session):
    from fastapi.testclient import TestClient

    from app.db import get_db
    from app.main import app

    def _override_get_db():
        yield db_session

    app.dependency_overrides[get_db] = _override_get_db
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.pop(get_db, None)
