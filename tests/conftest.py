from datetime import datetime, timedelta, timezone

import pytest

from portal_auth import create_app
from portal_auth.config import TestingConfig
from portal_auth.service import AuthService


class FakeClock:
    """可手动推进的时钟"""

    def __init__(self, start=None):
        self.now = start or datetime(2024, 9, 1, 8, 0, tzinfo=timezone.utc)

    def __call__(self):
        return self.now

    def advance(self, **kwargs):
        self.now += timedelta(**kwargs)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def sent_codes():
    return []


@pytest.fixture
def service(clock, sent_codes):
    return AuthService(TestingConfig, clock=clock,
                       otp_sender=lambda user_id, code: sent_codes.append((user_id, code)))


@pytest.fixture
def user_id(service):
    result = service.register('alice', 'alice@uni.edu', '+1 555-0100', 'Secret123')
    assert result.success
    return result.user_id


@pytest.fixture
def app(service):
    return create_app(TestingConfig, auth_service=service)


@pytest.fixture
def client(app):
    return app.test_client()
