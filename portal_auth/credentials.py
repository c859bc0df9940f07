import logging
import threading
import uuid

from portal_auth.errors import DuplicateIdentity, NotFound
from portal_auth.models import User
from portal_auth.utils import hash_password, utcnow

logger = logging.getLogger(__name__)


class CredentialStore:
    """用户凭据存储（内存）

    用户名、邮箱、手机号各自全局唯一，大小写敏感。没有更新和删除操作。
    """

    def __init__(self, bcrypt_rounds=12, clock=utcnow):
        self._bcrypt_rounds = bcrypt_rounds
        self._clock = clock
        # 唯一性检查和插入必须在同一把全局锁内完成
        self._lock = threading.Lock()
        self._users = {}
        self._by_username = {}
        self._by_email = {}
        self._by_phone = {}

    def _exists(self, username, email, phone):
        return (username in self._by_username
                or email in self._by_email
                or phone in self._by_phone)

    def register(self, username, email, phone, password):
        """创建用户并返回用户ID"""
        with self._lock:
            if self._exists(username, email, phone):
                raise DuplicateIdentity()

        # 哈希很慢，不能持有全局锁
        password_hash = hash_password(password, rounds=self._bcrypt_rounds)

        with self._lock:
            # 哈希期间可能有并发注册，重新检查
            if self._exists(username, email, phone):
                raise DuplicateIdentity()
            user = User(
                id=str(uuid.uuid4()),
                username=username,
                email=email,
                phone=phone,
                password_hash=password_hash,
                created_at=self._clock(),
            )
            self._users[user.id] = user
            self._by_username[username] = user
            self._by_email[email] = user
            self._by_phone[phone] = user

        logger.info('新用户注册成功: %s (%s)', username, user.id)
        return user.id

    def lookup_by_username(self, username):
        with self._lock:
            user = self._by_username.get(username)
        if user is None:
            raise NotFound()
        return user

    def get_by_id(self, user_id):
        with self._lock:
            user = self._users.get(user_id)
        if user is None:
            raise NotFound()
        return user

    def __len__(self):
        with self._lock:
            return len(self._users)
