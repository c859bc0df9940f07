import re
import secrets
import threading
from contextlib import contextmanager
from datetime import datetime, timezone

import bcrypt

from portal_auth.config import Config
from portal_auth.errors import InvalidInput


def utcnow():
    return datetime.now(timezone.utc)


def hash_password(password, rounds=Config.BCRYPT_ROUNDS):
    """bcrypt 加盐哈希，每次调用生成新的盐"""
    return bcrypt.hashpw(password.encode('utf-8'), bcrypt.gensalt(rounds=rounds))


def verify_password(password, hashed_password):
    """校验密码，哈希格式错误时返回 False 而不是抛异常"""
    if isinstance(hashed_password, str):
        hashed_password = hashed_password.encode('utf-8')
    try:
        return bcrypt.checkpw(password.encode('utf-8'), hashed_password)
    except (ValueError, TypeError):
        return False


def generate_otp(length=Config.OTP_LENGTH):
    """生成定长数字验证码，保留前导零"""
    return str(secrets.randbelow(10 ** length)).zfill(length)


def validate_username(username, min_length=Config.USERNAME_MIN_LENGTH):
    if not username or not username.strip():
        raise InvalidInput('username', 'Username is required')
    if len(username) < min_length:
        raise InvalidInput('username', f'Username must be at least {min_length} characters')


def validate_email(email, pattern=Config.EMAIL_PATTERN):
    """验证邮箱格式"""
    if not email or not email.strip():
        raise InvalidInput('email', 'Email is required')
    if not re.match(pattern, email):
        raise InvalidInput('email', 'Please enter a valid email address')


def validate_phone(phone, pattern=Config.PHONE_PATTERN):
    if not phone or not phone.strip():
        raise InvalidInput('phone', 'Phone number is required')
    if not re.match(pattern, phone):
        raise InvalidInput('phone', 'Please enter a valid phone number')


def validate_password(password, min_length=Config.PASSWORD_MIN_LENGTH,
                      pattern=Config.PASSWORD_PATTERN):
    """验证密码是否符合要求"""
    if not password:
        raise InvalidInput('password', 'Password is required')
    if len(password) < min_length:
        raise InvalidInput('password', f'Password must be at least {min_length} characters')
    # bcrypt 只处理前 72 字节
    if len(password.encode('utf-8')) > 72:
        raise InvalidInput('password', 'Password must be at most 72 bytes')
    if not re.match(pattern, password):
        raise InvalidInput('password', 'Password must contain uppercase, lowercase, and number')


class KeyedLocks:
    """按 key 分配互斥锁，不同 key 之间互不阻塞"""

    def __init__(self):
        self._registry_lock = threading.Lock()
        self._locks = {}

    def get(self, key):
        with self._registry_lock:
            lock = self._locks.get(key)
            if lock is None:
                lock = self._locks[key] = threading.Lock()
            return lock

    @contextmanager
    def hold(self, key):
        with self.get(key):
            yield

    @contextmanager
    def hold_existing(self, key):
        """只在锁已存在时加锁，不为只读查询创建新锁；返回是否加锁"""
        with self._registry_lock:
            lock = self._locks.get(key)
        if lock is None:
            yield False
            return
        with lock:
            yield True

    def __len__(self):
        with self._registry_lock:
            return len(self._locks)
