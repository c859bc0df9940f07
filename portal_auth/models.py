from dataclasses import dataclass, field, fields, replace
from datetime import datetime
from typing import Optional

from portal_auth.errors import InvalidInput


@dataclass(frozen=True)
class User:
    id: str
    username: str
    email: str
    phone: str
    password_hash: bytes = field(repr=False)
    created_at: datetime

    def to_public_dict(self):
        """不包含密码哈希的用户信息"""
        return {
            'id': self.id,
            'username': self.username,
            'email': self.email,
            'phone': self.phone,
            'createdAt': self.created_at.isoformat(),
        }


@dataclass(frozen=True)
class LoginAttempt:
    timestamp: datetime
    success: bool
    ip_address: Optional[str] = None
    user_agent: Optional[str] = None

    def to_dict(self):
        return {
            'timestamp': self.timestamp.isoformat(),
            'success': self.success,
            'ipAddress': self.ip_address,
            'userAgent': self.user_agent,
        }


@dataclass
class OTPSession:
    user_id: str
    code: str = field(repr=False)
    expires_at: datetime
    attempts: int = 0


@dataclass(frozen=True)
class SecuritySettings:
    two_factor_enabled: bool = True
    trusted_devices: frozenset = frozenset()
    session_timeout: int = 30
    login_notifications: bool = True

    def to_dict(self):
        return {
            'twoFactorEnabled': self.two_factor_enabled,
            'trustedDevices': sorted(self.trusted_devices),
            'sessionTimeout': self.session_timeout,
            'loginNotifications': self.login_notifications,
        }


@dataclass(frozen=True)
class SecuritySettingsUpdate:
    """部分更新：值为 None 的字段保持不变"""
    two_factor_enabled: Optional[bool] = None
    trusted_devices: Optional[frozenset] = None
    session_timeout: Optional[int] = None
    login_notifications: Optional[bool] = None

    # 接口字段名 -> 属性名
    FIELD_NAMES = {
        'twoFactorEnabled': 'two_factor_enabled',
        'trustedDevices': 'trusted_devices',
        'sessionTimeout': 'session_timeout',
        'loginNotifications': 'login_notifications',
    }

    @classmethod
    def from_dict(cls, data):
        """从接口的 camelCase 字段构造，未知字段报错"""
        values = {}
        for key, value in data.items():
            name = cls.FIELD_NAMES.get(key)
            if name is None:
                raise InvalidInput(key, f'Unknown security setting: {key}')
            if name == 'trusted_devices' and value is not None:
                if (not isinstance(value, (list, tuple, set, frozenset))
                        or not all(isinstance(d, str) for d in value)):
                    raise InvalidInput(key, 'Trusted devices must be a list of identifiers')
                value = frozenset(value)
            values[name] = value
        return cls(**values)

    def apply(self, current):
        changes = {f.name: getattr(self, f.name) for f in fields(self)
                   if getattr(self, f.name) is not None}
        if 'trusted_devices' in changes:
            changes['trusted_devices'] = frozenset(changes['trusted_devices'])
        return replace(current, **changes)


# AuthService 返回的结果对象

@dataclass(frozen=True)
class RegisterResult:
    success: bool
    message: str
    user_id: Optional[str] = None
    code: Optional[str] = None
    field: Optional[str] = None


@dataclass(frozen=True)
class LoginResult:
    success: bool
    message: str
    user_id: Optional[str] = None
    is_locked: bool = False
    code: Optional[str] = None


@dataclass(frozen=True)
class OtpIssue:
    otp: Optional[str]
    expires_at: datetime
    dispatched: bool = True


@dataclass(frozen=True)
class OtpVerifyResult:
    success: bool
    message: str
    code: Optional[str] = None


@dataclass(frozen=True)
class SettingsResult:
    success: bool
    message: str
    settings: Optional[SecuritySettings] = None
    code: Optional[str] = None
    field: Optional[str] = None
