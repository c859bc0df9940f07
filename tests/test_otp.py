"""Tests for OTP issuance and verification."""

from datetime import timedelta

import pytest

from portal_auth.errors import InvalidOtpCode, NoOtpSession, OtpExpired, OtpTooManyAttempts
from portal_auth.otp import OTPSessionManager


@pytest.fixture
def manager(clock):
    return OTPSessionManager(sender=None, clock=clock)


def wrong(code):
    return '000000' if code != '000000' else '111111'


def test_issue_returns_code_and_expiry(manager, clock) -> None:
    code, expires_at = manager.issue('u1')
    assert len(code) == 6 and code.isdigit()
    assert expires_at == clock.now + timedelta(seconds=60)


def test_issue_calls_sender(clock) -> None:
    sent = []
    manager = OTPSessionManager(sender=lambda user_id, code: sent.append((user_id, code)), clock=clock)
    code, _ = manager.issue('u1')
    assert sent == [('u1', code)]


def test_verify_succeeds_once(manager) -> None:
    code, _ = manager.issue('u1')
    manager.verify('u1', code)
    with pytest.raises(NoOtpSession):
        manager.verify('u1', code)


def test_verify_without_session(manager) -> None:
    with pytest.raises(NoOtpSession):
        manager.verify('u1', '123456')


def test_reissue_invalidates_previous_code(manager, monkeypatch) -> None:
    codes = iter(['111111', '222222'])
    monkeypatch.setattr('portal_auth.otp.generate_otp', lambda length: next(codes))
    manager.issue('u1')
    manager.issue('u1')
    with pytest.raises(InvalidOtpCode):
        manager.verify('u1', '111111')
    manager.verify('u1', '222222')


def test_reissue_resets_attempts(manager) -> None:
    code, _ = manager.issue('u1')
    for _ in range(3):
        with pytest.raises(InvalidOtpCode):
            manager.verify('u1', wrong(code))
    code, _ = manager.issue('u1')
    manager.verify('u1', code)


def test_expired_session_is_removed(manager, clock) -> None:
    code, _ = manager.issue('u1')
    clock.advance(seconds=61)
    with pytest.raises(OtpExpired):
        manager.verify('u1', code)
    with pytest.raises(NoOtpSession):
        manager.verify('u1', code)


def test_code_still_valid_at_exact_expiry(manager, clock) -> None:
    code, _ = manager.issue('u1')
    clock.advance(seconds=60)
    manager.verify('u1', code)


def test_fourth_attempt_rejected_before_comparison(manager) -> None:
    code, _ = manager.issue('u1')
    for _ in range(3):
        with pytest.raises(InvalidOtpCode):
            manager.verify('u1', wrong(code))
    # 第四次即使验证码正确也会被拒绝
    with pytest.raises(OtpTooManyAttempts):
        manager.verify('u1', code)
    with pytest.raises(NoOtpSession):
        manager.verify('u1', code)


def test_correct_code_on_third_attempt(manager) -> None:
    code, _ = manager.issue('u1')
    for _ in range(2):
        with pytest.raises(InvalidOtpCode):
            manager.verify('u1', wrong(code))
    manager.verify('u1', code)


def test_remaining_seconds(manager, clock) -> None:
    assert manager.remaining_seconds('u1') == 0
    manager.issue('u1')
    assert manager.remaining_seconds('u1') == 60
    clock.advance(seconds=20, milliseconds=500)
    assert manager.remaining_seconds('u1') == 39
    clock.advance(seconds=100)
    assert manager.remaining_seconds('u1') == 0


def test_sessions_are_per_user(manager) -> None:
    code1, _ = manager.issue('u1')
    code2, _ = manager.issue('u2')
    manager.verify('u1', code1)
    manager.verify('u2', code2)
