"""
Shared fixtures for helpdesk engine tests
"""

from datetime import datetime, timedelta
from typing import List

import pytest

from helpdesk_engine.config import Settings
from helpdesk_engine.errors import NotificationDeliveryFailure
from helpdesk_engine.models import Principal, Role, User
from helpdesk_engine.repositories import InMemoryUserRepository
from helpdesk_engine.services import build_helpdesk


class RecordingTransport:
    """Captures messages instead of talking to SMTP."""

    def __init__(self, fail: bool = False):
        self.fail = fail
        self.sent: List[dict] = []

    def send(self, sender, recipients, subject, html_body, text_body):
        if self.fail:
            raise NotificationDeliveryFailure("SMTP server unreachable")
        self.sent.append({
            "sender": sender,
            "recipients": list(recipients),
            "subject": subject,
            "html_body": html_body,
            "text_body": text_body,
        })

    def to(self, address: str) -> List[dict]:
        return [m for m in self.sent if address in m["recipients"]]


class FakeClock:
    """Deterministic utcnow() that only moves when told to."""

    def __init__(self, start: datetime = datetime(2024, 3, 1, 9, 0, 0)):
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, minutes: int = 1) -> datetime:
        self.now = self.now + timedelta(minutes=minutes)
        return self.now


@pytest.fixture
def directory() -> List[User]:
    return [
        User(id="admin-1", email="admin@corp.test", first_name="Alice", last_name="Admin", role=Role.ADMIN),
        User(id="admin-2", email=None, first_name="Zed", last_name="Silent", role=Role.ADMIN),
        User(id="emp-e", email="erin@corp.test", first_name="Erin", last_name="Employee"),
        User(id="emp-f", email="frank@corp.test", first_name="Frank", last_name="Fixer"),
        User(id="emp-g", email="gina@corp.test", first_name="Gina", last_name="Outsider"),
        User(id="emp-quiet", email=None, first_name="Quinn", last_name="Quiet"),
    ]


@pytest.fixture
def settings() -> Settings:
    return Settings(from_email="helpdesk@corp.test")


@pytest.fixture
def transport() -> RecordingTransport:
    return RecordingTransport()


@pytest.fixture
def failing_transport() -> RecordingTransport:
    return RecordingTransport(fail=True)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def user_repo(directory) -> InMemoryUserRepository:
    return InMemoryUserRepository(directory)


@pytest.fixture
async def helpdesk(settings, transport, user_repo, clock):
    service = build_helpdesk(settings, transport=transport, user_repo=user_repo, clock=clock)
    await service.notifications.start()
    yield service
    await service.notifications.stop()


@pytest.fixture
def admin() -> Principal:
    return Principal(id="admin-1", role=Role.ADMIN)


@pytest.fixture
def erin() -> Principal:
    return Principal(id="emp-e", role=Role.EMPLOYEE)


@pytest.fixture
def frank() -> Principal:
    return Principal(id="emp-f", role=Role.EMPLOYEE)


@pytest.fixture
def gina() -> Principal:
    return Principal(id="emp-g", role=Role.EMPLOYEE)


@pytest.fixture
def ticket_fields():
    """Factory for a valid create-ticket payload."""
    def make(**overrides) -> dict:
        fields = {
            "subject": "VPN drops every hour",
            "description": "Connection resets at :00 on the office network",
            "priority": "high",
            "category": "network",
        }
        fields.update(overrides)
        return fields
    return make
