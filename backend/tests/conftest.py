import json
import re

import httpx
import pytest
from argon2 import PasswordHasher
from fastapi.testclient import TestClient
from sqlalchemy import create_engine, event
from sqlalchemy.orm import sessionmaker

from marketplace.config import settings
from marketplace.database import get_db, init_db
from marketplace.dependencies import get_gateway, get_notifier
from marketplace.main import app
from marketplace.services.account_service import account_service
from marketplace.services.gateway import PaymentGateway
from marketplace.utils import security

PASSWORD = "secret123"


def _set_sqlite_pragmas(dbapi_conn, connection_record):
    cursor = dbapi_conn.cursor()
    cursor.execute("PRAGMA journal_mode=WAL")
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.execute("PRAGMA busy_timeout=5000")
    cursor.close()


class FakeGatewayServer:
    """Answers gateway order requests in-process through httpx.MockTransport."""

    def __init__(self):
        self.orders: list[dict] = []
        self.requests: list[httpx.Request] = []
        self.fail_with: Exception | None = None
        self.status_code = 200

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if self.fail_with is not None:
            raise self.fail_with
        if self.status_code != 200:
            return httpx.Response(self.status_code, json={"error": {"description": "rejected"}})
        payload = json.loads(request.content)
        order = {
            "id": f"order_{len(self.orders) + 1}",
            "amount": payload["amount"],
            "currency": payload["currency"],
            "receipt": payload["receipt"],
            "status": "created",
        }
        self.orders.append(order)
        return httpx.Response(200, json=order)


class RecordingSender:
    def __init__(self):
        self.sent: list[tuple[str, str, str]] = []

    def send(self, recipient: str, subject: str, body: str) -> None:
        self.sent.append((recipient, subject, body))

    def subjects_for(self, recipient: str) -> list[str]:
        return [subject for to, subject, _ in self.sent if to == recipient]


@pytest.fixture(autouse=True)
def fast_password_hashing(monkeypatch):
    monkeypatch.setattr(security, "ph", PasswordHasher(time_cost=1, memory_cost=8, parallelism=1))


@pytest.fixture(autouse=True)
def gateway_secrets(monkeypatch):
    monkeypatch.setattr(settings, "gateway_key_id", "test_key_id")
    monkeypatch.setattr(settings, "gateway_key_secret", "test_key_secret")
    monkeypatch.setattr(settings, "gateway_webhook_secret", "test_webhook_secret")


@pytest.fixture
def test_db(tmp_path):
    db_path = tmp_path / "db.sqlite"
    engine = create_engine(
        f"sqlite:///{db_path}",
        connect_args={"check_same_thread": False},
    )
    event.listen(engine, "connect", _set_sqlite_pragmas)
    TestSession = sessionmaker(bind=engine, autoflush=False, autocommit=False)

    init_db(db_path)

    def override_get_db():
        db = TestSession()
        try:
            yield db
        finally:
            db.close()

    app.dependency_overrides[get_db] = override_get_db
    yield TestSession
    app.dependency_overrides.pop(get_db, None)
    engine.dispose()


@pytest.fixture
def gateway_server():
    return FakeGatewayServer()


@pytest.fixture
def gateway(gateway_server):
    gw = PaymentGateway(
        "https://gateway.test/v1",
        "test_key_id",
        "test_key_secret",
        timeout=1.0,
        transport=httpx.MockTransport(gateway_server.handler),
    )
    yield gw
    gw.close()


@pytest.fixture
def notifier():
    return RecordingSender()


@pytest.fixture
def fresh_account_service():
    """Reset session state for each test."""
    original = account_service.__dict__.copy()
    account_service._active_tokens = {}
    yield account_service
    account_service.__dict__.update(original)


@pytest.fixture
def client(test_db, gateway, notifier, fresh_account_service):
    app.dependency_overrides[get_gateway] = lambda: gateway
    app.dependency_overrides[get_notifier] = lambda: notifier
    c = TestClient(app)
    yield c
    app.dependency_overrides.clear()


@pytest.fixture
def signup(client):
    counter = {"n": 0}

    def _signup(role: str = "job_provider", email: str | None = None, name: str = "Test User"):
        counter["n"] += 1
        email = email or f"{role}{counter['n']}@example.com"
        r = client.post("/api/auth/signup", json={
            "name": name,
            "email": email,
            "password": PASSWORD,
            "role": role,
        })
        assert r.status_code == 201, r.text
        data = r.json()
        return {"Authorization": f"Bearer {data['token']}"}, data["user"]

    return _signup


@pytest.fixture
def provider(signup):
    return signup("job_provider")


@pytest.fixture
def freelancer(signup):
    return signup("freelancer")


def job_payload(**overrides) -> dict:
    payload = {
        "title": "Build a landing page",
        "description": "Responsive landing page for a product launch next month.",
        "category": "Web Development",
        "budget": 500,
        "skills": ["html", "css"],
    }
    payload.update(overrides)
    return payload


def bid_payload(job_id: str, **overrides) -> dict:
    payload = {
        "job_id": job_id,
        "bid_amount": 450,
        "message": "I have built many landing pages like this.",
        "delivery_time": 7,
    }
    payload.update(overrides)
    return payload


@pytest.fixture
def job(client, provider):
    headers, _ = provider
    r = client.post("/api/jobs", json=job_payload(), headers=headers)
    assert r.status_code == 201, r.text
    return r.json()


@pytest.fixture
def assigned_job(client, provider, freelancer, job):
    """A job whose only bid, from ``freelancer``, has been accepted."""
    bid_r = client.post("/api/bids", json=bid_payload(job["id"]), headers=freelancer[0])
    assert bid_r.status_code == 201, bid_r.text
    accept_r = client.put(f"/api/bids/{bid_r.json()['id']}/accept", headers=provider[0])
    assert accept_r.status_code == 200, accept_r.text
    return client.get(f"/api/jobs/{job['id']}").json()


def reset_token_from(body: str) -> str:
    match = re.search(r"/reset-password/([0-9a-f]+)", body)
    assert match, body
    return match.group(1)


def post_raw_json(client, url: str, body: str, headers: dict | None = None):
    """POST a JSON body verbatim, for literals such as Infinity that the client encoder refuses."""
    return client.post(url, content=body.encode("utf-8"), headers={**(headers or {}), "Content-Type": "application/json"})
