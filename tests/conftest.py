import json

import pytest

from cookin.llm.gateway import ChatResponse, LLMGateway, set_gateway


class FakeGateway(LLMGateway):
    """Scripted LLM. Each chat() call pops the next response.

    A response may be a ChatResponse, a dict (sent as JSON text), a string, or
    an exception instance to raise.
    """

    def __init__(self, *responses):
        self.responses = list(responses)
        self.calls = []

    def queue(self, *responses):
        self.responses.extend(responses)

    async def chat(self, messages, tools=None):
        self.calls.append({"messages": list(messages), "tools": tools})
        if not self.responses:
            raise AssertionError("FakeGateway ran out of scripted responses")
        response = self.responses.pop(0)
        if isinstance(response, Exception):
            raise response
        if isinstance(response, ChatResponse):
            return response
        if isinstance(response, dict):
            return ChatResponse(content=json.dumps(response))
        return ChatResponse(content=response)

    @property
    def system_prompts(self):
        return [c["messages"][0].content for c in self.calls]


class FakeSender:
    def __init__(self, result=True):
        self.result = result
        self.sent = []

    async def send_text(self, recipient, text, throttle=False):
        self.sent.append((recipient, text, throttle))
        return self.result

    async def aclose(self):
        pass


class FakeScheduler:
    def __init__(self):
        self.scheduled = []

    def schedule_user(self, user):
        self.scheduled.append(user.id)


@pytest.fixture(autouse=True)
def db(tmp_path, monkeypatch):
    monkeypatch.setenv("DB_PATH", str(tmp_path / "test.db"))
    monkeypatch.setenv("APP_PASSWORD", "testpass")
    monkeypatch.setenv("SECRET_KEY", "test-secret-key-for-testing")
    monkeypatch.delenv("TWILIO_ACCOUNT_SID", raising=False)
    from cookin.db.database import init_db
    init_db()
    yield
    set_gateway(None)


@pytest.fixture
def gateway():
    fake = FakeGateway()
    set_gateway(fake)
    return fake


@pytest.fixture
def sender():
    return FakeSender()


@pytest.fixture
def scheduler():
    return FakeScheduler()


ONBOARDED = {
    "name": "Sam",
    "cuisine_preferences": ["Italian", "Thai"],
    "dietary_restrictions": [],
    "household_size": 2,
    "skill_level": "intermediate",
    "cook_days": ["Monday", "Wednesday", "Friday"],
    "grocery_day": "Sunday",
    "grocery_time": "10:00",
    "cook_reminder_time": "17:30",
}


@pytest.fixture
def make_user():
    from cookin.core import users

    def _make(user_id="+15550001111", state="idle", context=None, **fields):
        users.get_or_create(user_id)
        profile = dict(ONBOARDED)
        profile.update(fields)
        users.update_user(user_id, profile)
        users.set_conversation_state(user_id, state, context or {})
        return users.get(user_id)

    return _make


@pytest.fixture
def client(db):
    from fastapi.testclient import TestClient
    from app.main import app
    with TestClient(app, raise_server_exceptions=True) as c:
        yield c


@pytest.fixture
def authed_client(client):
    client.post("/login", data={"email": "sam@example.com", "password": "testpass"}, follow_redirects=False)
    return client


def reply(intent, text="ok", **data):
    """Build an LLM JSON envelope."""
    return {"intent": intent, "reply": text, "data": data}
