"""登录记录与账号锁定

LoginAttemptLedger 按用户保存最近的登录尝试（超出上限时丢弃最旧的一条），
LockoutPolicy 根据记录判断是否需要锁定账号。锁定状态只在查询时惰性判断，
不会被后台清理。
"""

import logging
import math
from collections import deque
from datetime import timedelta

from portal_auth.utils import KeyedLocks, utcnow

logger = logging.getLogger(__name__)


class LoginAttemptLedger:

    def __init__(self, max_entries=10, clock=utcnow):
        self._max_entries = max_entries
        self._clock = clock
        self._locks = KeyedLocks()
        self._entries = {}

    def record(self, user_id, attempt):
        with self._locks.hold(user_id):
            entries = self._entries.get(user_id)
            if entries is None:
                entries = self._entries[user_id] = deque(maxlen=self._max_entries)
            entries.append(attempt)

    def recent_failures(self, user_id, window):
        """窗口内失败次数"""
        now = self._clock()
        with self._locks.hold_existing(user_id) as locked:
            entries = list(self._entries.get(user_id, ())) if locked else []
        return sum(1 for a in entries if not a.success and now - a.timestamp < window)

    def history(self, user_id):
        """按插入顺序返回，最新的在最后"""
        with self._locks.hold_existing(user_id) as locked:
            if not locked:
                return []
            return list(self._entries.get(user_id, ()))


class LockoutPolicy:

    def __init__(self, ledger, max_failures=5, window=timedelta(minutes=15),
                 lockout_duration=timedelta(minutes=30), clock=utcnow):
        self._ledger = ledger
        self.max_failures = max_failures
        self.window = window
        self.lockout_duration = lockout_duration
        self._clock = clock
        self._locks = KeyedLocks()
        self._locked_until = {}

    def locked_until(self, user_id):
        """返回未过期的锁定截止时间，没有锁定时返回 None"""
        with self._locks.hold_existing(user_id) as locked:
            until = self._locked_until.get(user_id) if locked else None
        if until is not None and self._clock() < until:
            return until
        return None

    def remaining_minutes(self, user_id):
        until = self.locked_until(user_id)
        if until is None:
            return 0
        return math.ceil((until - self._clock()) / timedelta(minutes=1))

    def should_lock(self, user_id):
        return self._ledger.recent_failures(user_id, self.window) >= self.max_failures

    def lock(self, user_id):
        until = self._clock() + self.lockout_duration
        with self._locks.hold(user_id):
            self._locked_until[user_id] = until
        logger.warning('账号已锁定: %s, 截止 %s', user_id, until.isoformat())
        return until

    def clear(self, user_id):
        with self._locks.hold_existing(user_id):
            self._locked_until.pop(user_id, None)
