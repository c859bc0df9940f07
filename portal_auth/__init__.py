import logging
import os
from logging.handlers import RotatingFileHandler

from flask import Flask

from portal_auth.config import Config
from portal_auth.service import AuthService

__version__ = '1.0.0'


def create_app(config_class=Config, auth_service=None):
    app = Flask(__name__)
    app.config.from_object(config_class)

    # 配置日志：app.logger 即 portal_auth 包的 logger，各模块日志都会传到这里
    if app.config['LOG_TO_FILE']:
        log_dir = app.config['LOG_DIR']
        if not os.path.exists(log_dir):
            os.mkdir(log_dir)
        file_handler = RotatingFileHandler(os.path.join(log_dir, 'auth_system.log'),
                                           maxBytes=10240, backupCount=10)
        file_handler.setFormatter(logging.Formatter(
            '%(asctime)s %(levelname)s: %(message)s [in %(pathname)s:%(lineno)d]'
        ))
        file_handler.setLevel(logging.INFO)
        app.logger.addHandler(file_handler)
    app.logger.setLevel(logging.INFO)
    app.logger.info('Authentication system startup')

    # 认证服务，整个应用共用一个实例
    if auth_service is None:
        auth_service = AuthService(app.config)
    app.extensions['auth_service'] = auth_service

    # 注册蓝图
    from portal_auth.routes import auth_bp
    app.register_blueprint(auth_bp)

    return app
