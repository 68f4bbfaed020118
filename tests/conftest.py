import os
import tempfile
from decimal import Decimal

# Settings are read at import time
os.environ.setdefault("SECRET_KEY", "test-secret-key")
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("UPLOAD_DIR", tempfile.mkdtemp(prefix="storefront-uploads-"))

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402
from sqlalchemy.orm import sessionmaker  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402

from config.database import Base, build_engine, get_db  # noqa: E402
from common.security import create_token  # noqa: E402
from main import app  # noqa: E402
from modules.catalog.models import Product  # noqa: E402
from modules.user.models import User, UserRole  # noqa: E402

engine = build_engine("sqlite://", poolclass=StaticPool)

TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture(autouse=True)
def schema():
    Base.metadata.create_all(bind=engine)
    yield
    Base.metadata.drop_all(bind=engine)


@pytest.fixture()
def db():
    session = TestingSessionLocal()
    yield session
    session.close()


@pytest.fixture()
def second_db():
    """Another session on the same database, e.g. a concurrent request."""
    session = TestingSessionLocal()
    yield session
    session.close()


@pytest.fixture()
def client(db):
    def _override_get_db():
        yield db

    app.dependency_overrides[get_db] = _override_get_db
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture()
def make_user(db):
    counter = {"n": 0}

    def _make(name=None, role=UserRole.USER.value, **extra):
        counter["n"] += 1
        n = counter["n"]
        user = User(
            name=name or f"User {n}",
            email=f"user{n}-{role}@example.com",
            role=role,
            **extra,
        )
        db.add(user)
        db.commit()
        return user

    return _make


@pytest.fixture()
def user(make_user):
    return make_user("Alice")


@pytest.fixture()
def other_user(make_user):
    return make_user("Bob")


@pytest.fixture()
def admin(make_user):
    return make_user("Admin", role=UserRole.ADMIN.value)


@pytest.fixture()
def make_product(db):
    counter = {"n": 0}

    def _make(name=None, price="10.00", stock=10, category="general"):
        counter["n"] += 1
        product = Product(
            name=name or f"Product {counter['n']}",
            price=Decimal(str(price)),
            stock=stock,
            category=category,
        )
        db.add(product)
        db.commit()
        return product

    return _make


def auth_headers(user) -> dict:
    return {"Authorization": f"Bearer {create_token({'sub': str(user.id)})}"}


@pytest.fixture()
def headers_for():
    return auth_headers
