"""认证服务

LoginAuthenticator 负责密码登录流程（锁定检查 -> 密码校验 -> 记录 -> 锁定判断），
AuthService 把各个存储组合起来，对外提供不抛业务异常的接口。
"""

import logging

from portal_auth.config import load_settings
from portal_auth.credentials import CredentialStore
from portal_auth.errors import (AccountLocked, AuthError, InvalidCredentials,
                                NotFound)
from portal_auth.ledger import LockoutPolicy, LoginAttemptLedger
from portal_auth.models import (LoginAttempt, LoginResult, OtpIssue,
                                OtpVerifyResult, RegisterResult, SettingsResult)
from portal_auth.otp import (OTPSessionManager, log_otp_dispatch,
                             log_otp_sender)
from portal_auth.settings import SecuritySettingsStore
from portal_auth.utils import (KeyedLocks, hash_password, utcnow,
                               validate_email, validate_password,
                               validate_phone, validate_username,
                               verify_password)

logger = logging.getLogger(__name__)


class LoginAuthenticator:

    def __init__(self, credentials, ledger, lockout, bcrypt_rounds=12, clock=utcnow):
        self._credentials = credentials
        self._ledger = ledger
        self._lockout = lockout
        self._bcrypt_rounds = bcrypt_rounds
        self._clock = clock
        self._locks = KeyedLocks()
        self._dummy_hash = None

    def _dummy_verify(self, password):
        # 用户不存在时也做一次哈希校验，使响应时间一致；哈希不持有任何锁
        dummy_hash = self._dummy_hash
        if dummy_hash is None:
            dummy_hash = hash_password('portal-auth-dummy', rounds=self._bcrypt_rounds)
            self._dummy_hash = dummy_hash
        verify_password(password, dummy_hash)

    def _raise_if_locked(self, user_id):
        if self._lockout.locked_until(user_id) is not None:
            remaining = self._lockout.remaining_minutes(user_id)
            logger.info('账号锁定中，拒绝登录: %s', user_id)
            raise AccountLocked(max(1, remaining))

    def login(self, username, password, ip_address=None, user_agent=None):
        """校验用户名密码，成功返回用户ID"""
        try:
            user = self._credentials.lookup_by_username(username)
        except NotFound:
            self._dummy_verify(password)
            logger.info('登录失败，用户不存在: %s', username)
            raise InvalidCredentials() from None

        # 锁定期间直接拒绝，不校验密码也不记录
        self._raise_if_locked(user.id)

        ok = verify_password(password, user.password_hash)

        with self._locks.hold(user.id):
            # 校验密码期间其他线程可能已经锁定账号
            self._raise_if_locked(user.id)
            self._ledger.record(user.id, LoginAttempt(
                timestamp=self._clock(),
                success=ok,
                ip_address=ip_address,
                user_agent=user_agent,
            ))
            if not ok:
                if self._lockout.should_lock(user.id):
                    self._lockout.lock(user.id)
                    minutes = int(self._lockout.lockout_duration.total_seconds() // 60)
                    raise AccountLocked(minutes, just_locked=True)
                logger.info('登录失败，密码错误: %s', user.id)
                raise InvalidCredentials()
            self._lockout.clear(user.id)

        logger.info('登录成功: %s', user.id)
        return user.id


class AuthService:
    """双因素登录服务

    所有业务错误都转换成结果对象返回，调用方通过 success/code 判断。
    """

    def __init__(self, config=None, clock=utcnow, otp_sender=None):
        settings = load_settings(config)
        self.config = settings
        self.clock = clock
        self.expose_otp = settings['OTP_EXPOSE_CODE']
        if otp_sender is None:
            # 只有演示模式才把验证码写进日志
            otp_sender = log_otp_sender if self.expose_otp else log_otp_dispatch

        self.credentials = CredentialStore(
            bcrypt_rounds=settings['BCRYPT_ROUNDS'],
            clock=clock,
        )
        self.ledger = LoginAttemptLedger(
            max_entries=settings['LOGIN_HISTORY_SIZE'],
            clock=clock,
        )
        self.lockout = LockoutPolicy(
            self.ledger,
            max_failures=settings['MAX_LOGIN_ATTEMPTS'],
            window=settings['LOGIN_FAILURE_WINDOW'],
            lockout_duration=settings['ACCOUNT_LOCKOUT_DURATION'],
            clock=clock,
        )
        self.authenticator = LoginAuthenticator(
            self.credentials,
            self.ledger,
            self.lockout,
            bcrypt_rounds=settings['BCRYPT_ROUNDS'],
            clock=clock,
        )
        self.otp = OTPSessionManager(
            length=settings['OTP_LENGTH'],
            lifetime=settings['OTP_LIFETIME'],
            max_attempts=settings['OTP_MAX_ATTEMPTS'],
            sender=otp_sender,
            clock=clock,
        )
        self.settings = SecuritySettingsStore(
            session_timeout_default=settings['SESSION_TIMEOUT_DEFAULT'],
        )

    def _validate_registration(self, username, email, phone, password):
        cfg = self.config
        validate_username(username, cfg['USERNAME_MIN_LENGTH'])
        validate_email(email, cfg['EMAIL_PATTERN'])
        validate_phone(phone, cfg['PHONE_PATTERN'])
        validate_password(password, cfg['PASSWORD_MIN_LENGTH'], cfg['PASSWORD_PATTERN'])

    def register(self, username, email, phone, password):
        try:
            self._validate_registration(username, email, phone, password)
            user_id = self.credentials.register(username, email, phone, password)
        except AuthError as e:
            logger.info('注册失败: %s (%s)', username, e.code)
            return RegisterResult(success=False, message=e.message, code=e.code,
                                  field=getattr(e, 'field', None))
        return RegisterResult(success=True, message='User registered successfully', user_id=user_id)

    def login(self, username, password, ip_address=None, user_agent=None):
        try:
            user_id = self.authenticator.login(username, password, ip_address, user_agent)
        except AccountLocked as e:
            return LoginResult(success=False, message=e.message, is_locked=True, code=e.code)
        except AuthError as e:
            return LoginResult(success=False, message=e.message, code=e.code)
        return LoginResult(success=True, message='Login successful', user_id=user_id)

    def issue_otp(self, user_id):
        code, expires_at = self.otp.issue(user_id)
        if not self.expose_otp:
            return OtpIssue(otp=None, expires_at=expires_at)
        return OtpIssue(otp=code, expires_at=expires_at)

    def verify_otp(self, user_id, code):
        try:
            self.otp.verify(user_id, code)
        except AuthError as e:
            return OtpVerifyResult(success=False, message=e.message, code=e.code)
        return OtpVerifyResult(success=True, message='OTP verified successfully')

    def get_otp_remaining_seconds(self, user_id):
        return self.otp.remaining_seconds(user_id)

    def get_user(self, user_id):
        """用户不存在时返回 None"""
        try:
            return self.credentials.get_by_id(user_id)
        except NotFound:
            return None

    def get_login_history(self, user_id):
        return self.ledger.history(user_id)

    def get_security_settings(self, user_id):
        return self.settings.get(user_id)

    def update_security_settings(self, user_id, update):
        try:
            merged = self.settings.update(user_id, update)
        except AuthError as e:
            return SettingsResult(success=False, message=e.message, code=e.code,
                                  field=getattr(e, 'field', None))
        return SettingsResult(success=True, message='Security settings updated', settings=merged)
