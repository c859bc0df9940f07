from functools import wraps

from flask import Blueprint, current_app, jsonify, request

from portal_auth.errors import InvalidInput
from portal_auth.models import SecuritySettingsUpdate

auth_bp = Blueprint('auth', __name__)

# 结果错误码 -> HTTP 状态码
STATUS_BY_CODE = {
    'INVALID_INPUT': 400,
    'INVALID_CREDENTIALS': 401,
    'NO_OTP_SESSION': 401,
    'OTP_EXPIRED': 401,
    'OTP_TOO_MANY_ATTEMPTS': 401,
    'INVALID_OTP': 401,
    'ACCOUNT_LOCKED': 403,
    'NOT_FOUND': 404,
    'DUPLICATE_IDENTITY': 409,
}


def get_auth_service():
    return current_app.extensions['auth_service']


def error_response(message, code, status=None, **extra):
    body = {'status': 'error', 'message': message, 'code': code}
    body.update(extra)
    return jsonify(body), status or STATUS_BY_CODE.get(code, 400)


def require_json(*fields):
    """请求体必须是 JSON 对象，且指定字段都是字符串"""
    def decorator(f):
        @wraps(f)
        def decorated_function(*args, **kwargs):
            data = request.get_json(silent=True)
            if not isinstance(data, dict):
                return error_response('Invalid request data format', 'INVALID_JSON', 400)
            for name in fields:
                if not isinstance(data.get(name), str):
                    return error_response(f'Missing required parameter: {name}', 'MISSING_PARAMETERS', 400)
            return f(data, *args, **kwargs)
        return decorated_function
    return decorator


@auth_bp.route('/register', methods=['POST'])
@require_json('username', 'email', 'phone', 'password')
def register(data):
    """注册新用户"""
    result = get_auth_service().register(
        data['username'], data['email'], data['phone'], data['password'])
    if not result.success:
        return error_response(result.message, result.code, field=result.field)
    current_app.logger.info('注册接口调用成功: %s', result.user_id)
    return jsonify({
        'status': 'success',
        'message': result.message,
        'userId': result.user_id,
    }), 201


@auth_bp.route('/login', methods=['POST'])
@require_json('username', 'password')
def login(data):
    """登录第一步：用户名和密码"""
    result = get_auth_service().login(
        data['username'], data['password'],
        ip_address=request.remote_addr,
        user_agent=request.headers.get('User-Agent'),
    )
    if not result.success:
        return error_response(result.message, result.code, isLocked=result.is_locked)
    return jsonify({
        'status': 'success',
        'message': result.message,
        'userId': result.user_id,
    }), 200


@auth_bp.route('/otp', methods=['POST'])
@require_json('userId')
def issue_otp(data):
    """登录第二步：生成验证码"""
    issued = get_auth_service().issue_otp(data['userId'])
    body = {
        'status': 'success',
        'expiresAt': issued.expires_at.isoformat(),
        'dispatched': issued.dispatched,
    }
    if issued.otp is not None:
        body['otp'] = issued.otp
    return jsonify(body), 200


@auth_bp.route('/otp/verify', methods=['POST'])
@require_json('userId', 'code')
def verify_otp(data):
    """登录第二步：校验验证码"""
    result = get_auth_service().verify_otp(data['userId'], data['code'])
    if not result.success:
        return error_response(result.message, result.code)
    return jsonify({'status': 'success', 'message': result.message}), 200


@auth_bp.route('/otp/remaining', methods=['GET'])
def otp_remaining():
    user_id = request.args.get('userId')
    if not user_id:
        return error_response('Missing required parameter: userId', 'MISSING_PARAMETERS', 400)
    return jsonify({'remainingSeconds': get_auth_service().get_otp_remaining_seconds(user_id)})


@auth_bp.route('/users/<user_id>', methods=['GET'])
def get_user(user_id):
    user = get_auth_service().get_user(user_id)
    if user is None:
        return error_response('User not found', 'NOT_FOUND')
    return jsonify(user.to_public_dict())


@auth_bp.route('/users/<user_id>/login-history', methods=['GET'])
def login_history(user_id):
    history = get_auth_service().get_login_history(user_id)
    return jsonify({'history': [a.to_dict() for a in history]})


@auth_bp.route('/users/<user_id>/security-settings', methods=['GET'])
def get_security_settings(user_id):
    return jsonify(get_auth_service().get_security_settings(user_id).to_dict())


@auth_bp.route('/users/<user_id>/security-settings', methods=['PATCH'])
@require_json()
def update_security_settings(data, user_id):
    try:
        update = SecuritySettingsUpdate.from_dict(data)
    except InvalidInput as e:
        return error_response(e.message, e.code, field=e.field)
    result = get_auth_service().update_security_settings(user_id, update)
    if not result.success:
        return error_response(result.message, result.code, field=result.field)
    return jsonify(result.settings.to_dict())
