import hmac
import logging
from datetime import timedelta

from portal_auth.errors import InvalidOtpCode, NoOtpSession, OtpExpired, OtpTooManyAttempts
from portal_auth.models import OTPSession
from portal_auth.utils import KeyedLocks, generate_otp, utcnow

logger = logging.getLogger(__name__)


def log_otp_sender(user_id, code):
    """演示用发送方式：只写日志，不真正发送短信"""
    logger.info('[2FA Prototype] OTP for user %s: %s', user_id, code)


def log_otp_dispatch(user_id, code):
    """不记录验证码本身，只记录已发送"""
    logger.info('OTP已发送: %s', user_id)


class OTPSessionManager:
    """一次性验证码会话，每个用户最多一个有效会话

    过期只在查询或校验时判断，没有后台清理。
    """

    def __init__(self, length=6, lifetime=timedelta(seconds=60), max_attempts=3,
                 sender=log_otp_sender, clock=utcnow):
        self._length = length
        self._lifetime = lifetime
        self._max_attempts = max_attempts
        self._sender = sender
        self._clock = clock
        self._locks = KeyedLocks()
        self._sessions = {}

    def issue(self, user_id):
        """生成新验证码，覆盖该用户之前的会话"""
        code = generate_otp(self._length)
        expires_at = self._clock() + self._lifetime
        with self._locks.hold(user_id):
            self._sessions[user_id] = OTPSession(user_id=user_id, code=code, expires_at=expires_at)
        if self._sender is not None:
            self._sender(user_id, code)
        return code, expires_at

    def remaining_seconds(self, user_id):
        with self._locks.hold_existing(user_id) as locked:
            session = self._sessions.get(user_id) if locked else None
        if session is None:
            return 0
        remaining = session.expires_at - self._clock()
        return max(0, int(remaining // timedelta(seconds=1)))

    def verify(self, user_id, candidate):
        with self._locks.hold_existing(user_id) as locked:
            session = self._sessions.get(user_id) if locked else None
            if session is None:
                raise NoOtpSession()

            if self._clock() > session.expires_at:
                del self._sessions[user_id]
                logger.info('OTP已过期: %s', user_id)
                raise OtpExpired()

            # 先计数再比较：超过上限后直接拒绝，不再比较验证码
            session.attempts += 1
            if session.attempts > self._max_attempts:
                del self._sessions[user_id]
                logger.warning('OTP尝试次数过多: %s', user_id)
                raise OtpTooManyAttempts()

            if not hmac.compare_digest(str(candidate).encode('utf-8'), session.code.encode('utf-8')):
                logger.info('OTP错误: %s, 第%d次', user_id, session.attempts)
                raise InvalidOtpCode()

            del self._sessions[user_id]
        logger.info('OTP验证成功: %s', user_id)
