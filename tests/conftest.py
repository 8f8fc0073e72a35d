"""
Shared fixtures.

Integration tests run the real app over a throwaway SQLite file (aiosqlite)
and real RS256 tokens signed with a key pair generated per test session.
Only the session dependency is overridden; the RLS tenant context is a
no-op off PostgreSQL.
"""

import uuid

import pytest
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import rsa
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from erp.config import settings
from erp.database import Base, get_db
from erp.main import app
from erp.models.tenant import Tenant
from erp.models.user import User
from erp.services.auth_service import create_access_token, reset_key_cache

TENANT_ID = uuid.UUID("a0000000-0000-0000-0000-000000000001")


@pytest.fixture(scope="session", autouse=True)
def jwt_keys(tmp_path_factory):
    key = rsa.generate_private_key(public_exponent=65537, key_size=2048)
    key_dir = tmp_path_factory.mktemp("keys")
    private_path = key_dir / "private.pem"
    public_path = key_dir / "public.pem"
    private_path.write_bytes(
        key.private_bytes(
            encoding=serialization.Encoding.PEM,
            format=serialization.PrivateFormat.PKCS8,
            encryption_algorithm=serialization.NoEncryption(),
        )
    )
    public_path.write_bytes(
        key.public_key().public_bytes(
            encoding=serialization.Encoding.PEM,
            format=serialization.PublicFormat.SubjectPublicKeyInfo,
        )
    )

    old = (settings.JWT_PRIVATE_KEY_PATH, settings.JWT_PUBLIC_KEY_PATH)
    settings.JWT_PRIVATE_KEY_PATH = str(private_path)
    settings.JWT_PUBLIC_KEY_PATH = str(public_path)
    reset_key_cache()
    yield
    settings.JWT_PRIVATE_KEY_PATH, settings.JWT_PUBLIC_KEY_PATH = old
    reset_key_cache()


def auth_headers(user: User) -> dict:
    token = create_access_token(
        user_id=str(user.id),
        tenant_id=str(user.tenant_id),
        role=user.role,
        email=user.email,
    )
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
async def db_engine(tmp_path):
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'erp.db'}")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(db_engine):
    return async_sessionmaker(db_engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture
async def users(session_factory) -> dict[str, User]:
    """One tenant plus the people who submit, approve and audit."""
    people = {
        "admin": ("admin@acme.com", "Ada", "Admin", "admin"),
        "sales": ("sales@acme.com", "Sam", "Seller", "sales"),
        "lead": ("lead@acme.com", "Lee", "Lead", "manager"),
        "head": ("head@acme.com", "Hana", "Head", "manager"),
        "ceo": ("ceo@acme.com", "Chris", "Chief", "executive"),
        "finance": ("finance@acme.com", "Fran", "Finance", "finance"),
    }
    async with session_factory() as session:
        session.add(Tenant(id=TENANT_ID, name="Acme", slug="acme", status="ACTIVE", settings={}))
        await session.flush()
        created = {
            key: User(
                id=uuid.uuid4(),
                tenant_id=TENANT_ID,
                email=email,
                first_name=first,
                last_name=last,
                role=role,
                is_active=True,
            )
            for key, (email, first, last, role) in people.items()
        }
        session.add_all(created.values())
        await session.commit()
    return created


@pytest.fixture
async def client(session_factory):
    async def _sqlite_db():
        async with session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    app.dependency_overrides[get_db] = _sqlite_db
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as c:
        yield c
    app.dependency_overrides.clear()
