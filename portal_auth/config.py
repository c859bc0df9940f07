import os
from collections.abc import Mapping
from datetime import timedelta

from flask import Config as FlaskConfig


def _env_flag(name, default):
    value = os.environ.get(name)
    if value is None:
        return default
    return value.strip().lower() in ('1', 'true', 'yes', 'on')


class Config:
    # Flask配置
    SECRET_KEY = os.environ.get('SECRET_KEY') or 'your-secret-key'

    # 日志配置
    LOG_DIR = os.environ.get('PORTAL_AUTH_LOG_DIR') or 'logs'
    LOG_TO_FILE = True

    # 密码哈希配置
    BCRYPT_ROUNDS = 12

    # 登录安全配置
    MAX_LOGIN_ATTEMPTS = 5  # 窗口内最大失败次数
    LOGIN_FAILURE_WINDOW = timedelta(minutes=15)  # 失败次数统计窗口
    ACCOUNT_LOCKOUT_DURATION = timedelta(minutes=30)  # 账号锁定时间
    LOGIN_HISTORY_SIZE = 10  # 每个用户保留的登录记录条数

    # OTP配置
    OTP_LENGTH = 6
    OTP_LIFETIME = timedelta(seconds=60)  # 验证码有效期
    OTP_MAX_ATTEMPTS = 3
    OTP_EXPOSE_CODE = _env_flag('PORTAL_AUTH_OTP_EXPOSE_CODE', True)  # 演示模式：直接返回验证码

    # 注册校验
    USERNAME_MIN_LENGTH = 3
    EMAIL_PATTERN = r'^[^\s@]+@[^\s@]+\.[^\s@]+$'
    PHONE_PATTERN = r'^\+?[\d\s\-()]+$'
    PASSWORD_MIN_LENGTH = 8
    PASSWORD_PATTERN = r'^(?=.*[a-z])(?=.*[A-Z])(?=.*\d)'

    # 安全设置默认值
    SESSION_TIMEOUT_DEFAULT = 30  # 分钟


class TestingConfig(Config):
    TESTING = True
    BCRYPT_ROUNDS = 4
    LOG_TO_FILE = False


def load_settings(obj=None):
    """把配置类或映射转换成 flask.Config，供脱离 Flask 使用的服务读取"""
    settings = FlaskConfig(os.getcwd())
    settings.from_object(Config)
    if obj is None:
        return settings
    if isinstance(obj, Mapping):
        settings.update({k: v for k, v in obj.items() if k.isupper()})
    else:
        settings.from_object(obj)
    return settings
