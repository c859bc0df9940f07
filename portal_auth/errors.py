"""认证服务的错误类型

所有错误都是可恢复的业务错误，由 AuthService 转换成结果对象返回给调用方。
"""


class AuthError(Exception):
    code = 'AUTH_ERROR'
    message = 'Authentication error'

    def __init__(self, message=None):
        if message is not None:
            self.message = message
        super().__init__(self.message)


class DuplicateIdentity(AuthError):
    code = 'DUPLICATE_IDENTITY'
    message = 'User already exists with this username, email, or phone'


class InvalidCredentials(AuthError):
    # 用户不存在和密码错误使用同一条消息，防止枚举用户名
    code = 'INVALID_CREDENTIALS'
    message = 'Invalid username or password'


class AccountLocked(AuthError):
    code = 'ACCOUNT_LOCKED'

    def __init__(self, remaining_minutes, just_locked=False):
        self.remaining_minutes = remaining_minutes
        self.just_locked = just_locked
        if just_locked:
            message = f'Too many failed attempts. Account locked for {remaining_minutes} minutes.'
        else:
            message = f'Account locked. Try again in {remaining_minutes} minutes.'
        super().__init__(message)


class NoOtpSession(AuthError):
    code = 'NO_OTP_SESSION'
    message = 'No OTP session found. Please request a new OTP.'


class OtpExpired(AuthError):
    code = 'OTP_EXPIRED'
    message = 'OTP has expired. Please request a new one.'


class OtpTooManyAttempts(AuthError):
    code = 'OTP_TOO_MANY_ATTEMPTS'
    message = 'Too many failed attempts. Please request a new OTP.'


class InvalidOtpCode(AuthError):
    code = 'INVALID_OTP'
    message = 'Invalid OTP. Please try again.'


class NotFound(AuthError):
    code = 'NOT_FOUND'
    message = 'User not found'


class InvalidInput(AuthError):
    code = 'INVALID_INPUT'

    def __init__(self, field, message):
        self.field = field
        super().__init__(message)
