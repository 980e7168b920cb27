import pytest
from fastapi.testclient import TestClient
from sqlalchemy.pool import StaticPool
from sqlmodel import Session, create_engine

from grafica.db.session import create_db_and_tables, set_engine
from grafica.services.store import AppStore, MemoryPersistence


@pytest.fixture
def engine():
    eng = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    set_engine(eng)
    create_db_and_tables(eng)
    yield eng
    set_engine(None)
    eng.dispose()


@pytest.fixture
def session(engine):
    with Session(engine, expire_on_commit=False) as s:
        yield s


@pytest.fixture
def store():
    return AppStore(persistence=MemoryPersistence())


@pytest.fixture
def user(store):
    return store.register_user("Ana", "ana@example.com", "(11) 98888-7777", "segredo1")


@pytest.fixture
def owner(user):
    def provider():
        return user["id"]
    return provider


@pytest.fixture
def client(engine, store):
    from grafica.main import create_app

    with TestClient(create_app(store=store)) as c:
        yield c


@pytest.fixture
def auth_client(client):
    resp = client.post("/auth/register", json={
        "name": "Bruno",
        "email": "bruno@example.com",
        "phone": "11987654321",
        "password": "senha123",
    })
    assert resp.status_code == 201
    return client
