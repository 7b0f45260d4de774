"""Shared fixtures: an in-memory database and a shop with the default checklist."""
import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from launchcheck.database import Base
from launchcheck.models import db_models  # noqa: F401
from launchcheck.services.shop_service import get_or_create_shop

from fakes import FakeCatalog, FakeGenerator, FakeLedger, make_listing


@pytest.fixture
def db_session():
    """Fresh in-memory SQLite database per test."""
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    Session = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    db = Session()
    try:
        yield db
    finally:
        db.close()
        engine.dispose()


@pytest.fixture
def shop(db_session):
    """A Pro shop with the default checklist."""
    shop = get_or_create_shop(db_session, "northwind.myshopify.com")
    shop.plan = "pro"
    shop.default_tags = ["new-arrival"]
    shop.default_collection_id = "gid://shopify/Collection/99"
    db_session.commit()
    return shop


@pytest.fixture
def listing():
    return make_listing()


@pytest.fixture
def catalog(listing):
    return FakeCatalog(listing)


@pytest.fixture
def generator():
    return FakeGenerator()


@pytest.fixture
def ledger():
    return FakeLedger()
