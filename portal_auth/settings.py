import logging

from portal_auth.errors import InvalidInput
from portal_auth.models import SecuritySettings
from portal_auth.utils import KeyedLocks

logger = logging.getLogger(__name__)


def validate_settings_update(update):
    if update.session_timeout is not None:
        if (isinstance(update.session_timeout, bool)
                or not isinstance(update.session_timeout, int)
                or update.session_timeout <= 0):
            raise InvalidInput('sessionTimeout', 'Session timeout must be a positive number of minutes')
    for field, name in (('twoFactorEnabled', 'two_factor_enabled'),
                        ('loginNotifications', 'login_notifications')):
        value = getattr(update, name)
        if value is not None and not isinstance(value, bool):
            raise InvalidInput(field, f'{field} must be true or false')
    if update.trusted_devices is not None:
        if not all(isinstance(d, str) and d for d in update.trusted_devices):
            raise InvalidInput('trustedDevices', 'Trusted devices must be non-empty identifiers')


class SecuritySettingsStore:
    """用户安全设置；读取时不保存默认值，第一次写入时才保存"""

    def __init__(self, session_timeout_default=30):
        self._defaults = SecuritySettings(session_timeout=session_timeout_default)
        self._locks = KeyedLocks()
        self._settings = {}

    def get(self, user_id):
        with self._locks.hold_existing(user_id) as locked:
            if not locked:
                return self._defaults
            return self._settings.get(user_id, self._defaults)

    def update(self, user_id, update):
        validate_settings_update(update)
        with self._locks.hold(user_id):
            current = self._settings.get(user_id, self._defaults)
            self._settings[user_id] = merged = update.apply(current)
        logger.info('安全设置已更新: %s', user_id)
        return merged
