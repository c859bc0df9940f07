"""Tests for per-user security settings."""

import pytest

from portal_auth.errors import InvalidInput
from portal_auth.models import SecuritySettings, SecuritySettingsUpdate
from portal_auth.settings import SecuritySettingsStore


@pytest.fixture
def store():
    return SecuritySettingsStore()


def test_defaults_for_unknown_user(store) -> None:
    settings = store.get('u1')
    assert settings == SecuritySettings(
        two_factor_enabled=True,
        trusted_devices=frozenset(),
        session_timeout=30,
        login_notifications=True,
    )
    assert settings.to_dict() == {
        'twoFactorEnabled': True,
        'trustedDevices': [],
        'sessionTimeout': 30,
        'loginNotifications': True,
    }


def test_partial_update_keeps_other_fields(store) -> None:
    store.update('u1', SecuritySettingsUpdate(login_notifications=False))
    store.update('u1', SecuritySettingsUpdate(session_timeout=45))
    settings = store.get('u1')
    assert settings.login_notifications is False
    assert settings.session_timeout == 45
    assert settings.two_factor_enabled is True


def test_trusted_devices_replaced_as_set(store) -> None:
    store.update('u1', SecuritySettingsUpdate(trusted_devices=['laptop', 'phone', 'laptop']))
    assert store.get('u1').trusted_devices == frozenset({'laptop', 'phone'})
    assert store.get('u1').to_dict()['trustedDevices'] == ['laptop', 'phone']


def test_update_does_not_touch_other_users(store) -> None:
    store.update('u1', SecuritySettingsUpdate(two_factor_enabled=False))
    assert store.get('u2').two_factor_enabled is True


def test_custom_default_timeout() -> None:
    assert SecuritySettingsStore(session_timeout_default=15).get('u1').session_timeout == 15


@pytest.mark.parametrize('update,field', [
    (SecuritySettingsUpdate(session_timeout=0), 'sessionTimeout'),
    (SecuritySettingsUpdate(session_timeout=True), 'sessionTimeout'),
    (SecuritySettingsUpdate(two_factor_enabled='yes'), 'twoFactorEnabled'),
    (SecuritySettingsUpdate(trusted_devices=frozenset({''})), 'trustedDevices'),
])
def test_invalid_update_rejected(store, update, field) -> None:
    with pytest.raises(InvalidInput) as exc:
        store.update('u1', update)
    assert exc.value.field == field
    assert store.get('u1') == SecuritySettings()


def test_update_from_dict() -> None:
    update = SecuritySettingsUpdate.from_dict({'sessionTimeout': 10, 'trustedDevices': ['pc']})
    assert update == SecuritySettingsUpdate(session_timeout=10, trusted_devices=frozenset({'pc'}))


def test_update_from_dict_rejects_unknown_field() -> None:
    with pytest.raises(InvalidInput) as exc:
        SecuritySettingsUpdate.from_dict({'theme': 'dark'})
    assert exc.value.field == 'theme'
