from flask import Blueprint, request, current_app
from flask_jwt_extended import (
    create_access_token, create_refresh_token, jwt_required,
    get_jwt_identity, verify_jwt_in_request
)
from marshmallow import Schema, fields, validates, pre_load, ValidationError, EXCLUDE
from backend import get_backend, BackendError, INVALID_CREDENTIALS, DATABASE_ERROR
from extensions import limiter
from result import success, failure
import logging

auth_bp = Blueprint('auth', __name__)
logger = logging.getLogger(__name__)

INCORRECT_CREDENTIALS_MESSAGE = 'Incorrect email or password. Please check your credentials and try again.'

# 這些字串出現在 backend 錯誤訊息裡時,一律當成帳密錯誤
CREDENTIAL_ERROR_MARKERS = (
    'Invalid login credentials',
    'Invalid',
    'Email not confirmed',
    'User not found',
    'Wrong password',
)

# ============================================
# Input Validation Schemas (用 marshmallow)
# ============================================

class FormSchema(Schema):
    """表單共用: 去掉前後空白,空字串視為沒填"""

    class Meta:
        unknown = EXCLUDE

    # 密碼不 strip
    strip_fields = ()

    @pre_load
    def clean_blank_values(self, data, **kwargs):
        if not isinstance(data, dict):
            return data
        cleaned = {}
        for key, value in data.items():
            if isinstance(value, str):
                if key in self.strip_fields:
                    value = value.strip()
                if value == '':
                    continue
            cleaned[key] = value
        return cleaned


class SignupSchema(FormSchema):
    """註冊輸入驗證"""
    strip_fields = ('email', 'name')

    email = fields.Email(required=True, error_messages={
        'required': 'Email is required.',
        'invalid': 'Please enter a valid email address.'
    })
    password = fields.String(required=True, error_messages={
        'required': 'Password must be at least 6 characters long.'
    })
    name = fields.String(required=True, error_messages={
        'required': 'Name must be at least 2 characters long.'
    })

    @validates('password')
    def validate_password(self, value, **kwargs):
        min_length = current_app.config.get('PASSWORD_MIN_LENGTH', 6)
        if len(value) < min_length:
            raise ValidationError(f'Password must be at least {min_length} characters long.')
        # bcrypt 只看前 72 bytes
        if len(value.encode('utf-8')) > 72:
            raise ValidationError('Password must be at most 72 bytes long.')

    @validates('name')
    def validate_name(self, value, **kwargs):
        min_length = current_app.config.get('NAME_MIN_LENGTH', 2)
        if len(value) < min_length:
            raise ValidationError(f'Name must be at least {min_length} characters long.')
        if len(value) > 100:
            raise ValidationError('Name must be at most 100 characters long.')


class LoginSchema(FormSchema):
    """登入輸入驗證"""
    strip_fields = ('email',)

    email = fields.String(required=True, error_messages={'required': 'Email is required.'})
    password = fields.String(required=True, error_messages={'required': 'Password is required.'})

# ============================================
# Helper Functions
# ============================================

def validate_request_data(schema_class, data):
    """
    統一的輸入驗證函數

    Returns:
        tuple: (is_valid, data_or_errors)
    """
    schema = schema_class()
    try:
        validated_data = schema.load(data)
        return True, validated_data
    except ValidationError as err:
        return False, err.messages


def first_error(messages, order):
    """從 marshmallow 的錯誤 dict 挑出第一個要顯示的訊息"""
    keys = [key for key in order if key in messages] + [key for key in messages if key not in order]
    for key in keys:
        errors = messages[key]
        if isinstance(errors, list) and errors:
            return str(errors[0])
        if isinstance(errors, dict):
            return first_error(errors, ())
        return str(errors)
    return 'Invalid input.'


def read_form():
    """JSON 和 form-encoded 都接受"""
    data = request.get_json(silent=True)
    if data is None:
        data = request.form.to_dict()
    return data


def current_identity():
    """
    目前 request 的 JWT identity

    在 @jwt_required 底下直接讀; 其他地方先做 optional 驗證,沒帶 token 就回傳 None
    """
    try:
        return get_jwt_identity()
    except RuntimeError:
        verify_jwt_in_request(optional=True)
        return get_jwt_identity()


def is_credential_error(error):
    message = error.message or ''
    return error.code == INVALID_CREDENTIALS or any(
        marker in message for marker in CREDENTIAL_ERROR_MARKERS
    )

# ============================================
# Actions (回傳 ActionResult,不 raise)
# ============================================

def signup(form):
    """
    使用者註冊

    1. 先驗證 email / password / name,不合法就不打 backend
    2. backend 錯誤轉成給使用者看的訊息
    """
    try:
        is_valid, result = validate_request_data(SignupSchema, form)
        if not is_valid:
            return failure(first_error(result, ('email', 'password', 'name')), 400)

        backend = get_backend()
        try:
            user = backend.sign_up(result['email'], result['password'], result['name'])
        except BackendError as error:
            logger.warning(f"Sign up rejected for {result['email']}: {error!r}")

            message = error.message or ''

            if 'already registered' in message:
                return failure('An account with this email already exists. Please sign in instead.', 409)

            if 'password' in message.lower():
                return failure('Password does not meet requirements. Please use a stronger password.', 400)

            if error.code == DATABASE_ERROR:
                return failure('Failed to create account. Please try again.', 500)

            return failure(message or 'Failed to create account. Please try again.', 400)

        return success(user, 201)

    except Exception as e:
        # 不要把 exception 細節洩漏給前端
        logger.error(f"Unexpected error in signup: {str(e)}", exc_info=True)
        return failure('An unexpected error occurred while creating your account.', 500)


def login(form):
    """
    使用者登入

    帳密相關的錯誤一律回傳同一個訊息,避免帳號枚舉攻擊
    """
    try:
        is_valid, result = validate_request_data(LoginSchema, form)
        if not is_valid:
            return failure(first_error(result, ('email', 'password')), 400)

        try:
            backend = get_backend()
        except Exception as e:
            logger.error(f"Error getting backend client: {str(e)}", exc_info=True)
            return failure('Failed to initialize authentication service. Please try again.', 500)

        try:
            user = backend.sign_in_with_password(result['email'], result['password'])
        except BackendError as error:
            logger.warning(f"Failed login attempt for email: {result['email']} ({error!r})")

            if is_credential_error(error):
                return failure(INCORRECT_CREDENTIALS_MESSAGE, 401)

            if 'Email rate limit' in (error.message or ''):
                return failure('Too many login attempts. Please try again later.', 429)

            return failure('Failed to sign in. Please check your credentials and try again.', 400)
        except Exception as e:
            logger.error(f"Error during sign in: {str(e)}", exc_info=True)
            return failure(INCORRECT_CREDENTIALS_MESSAGE, 401)

        if not user:
            return failure('Failed to sign in. Please try again.', 400)

        identity = str(user['id'])
        logger.info(f"User logged in: {user['email']}")

        return success({
            'user': user,
            'access_token': create_access_token(identity=identity),
            'refresh_token': create_refresh_token(identity=identity)
        })

    except Exception as e:
        logger.error(f"Unexpected error in login: {str(e)}", exc_info=True)
        return failure('An error occurred while signing in. Please try again.', 500)


def get_authenticated_user():
    """
    取得當前登入的使用者

    回傳 ActionResult 而不是 raise,呼叫端只要檢查 success
    """
    try:
        user_id = current_identity()
    except Exception as e:
        logger.warning(f"Error verifying authentication: {str(e)}")
        return failure('Failed to verify authentication. Please sign in again.', 401)

    if not user_id:
        return failure('User not authenticated. Please sign in to continue.', 401)

    try:
        user = get_backend().get_user(int(user_id))
    except BackendError as error:
        logger.warning(f"Token valid but user lookup failed: {user_id} ({error!r})")
        return failure(error.message or 'Failed to verify authentication. Please sign in again.', 401)
    except Exception as e:
        logger.error(f"Unexpected error in get_authenticated_user: {str(e)}", exc_info=True)
        return failure('An unexpected error occurred while verifying authentication.', 500)

    return success(user)


def signout():
    """登出 (token 由前端丟掉; 這裡只記錄)"""
    try:
        user_id = current_identity()
    except Exception as e:
        logger.warning(f"Error verifying authentication on sign out: {str(e)}")
        return failure('Failed to verify authentication. Please sign in again.', 401)

    if not user_id:
        return failure('User not authenticated. Please sign in to continue.', 401)

    logger.info(f"User logged out: {user_id}")
    return success(None)

# ============================================
# Routes
# ============================================

@auth_bp.route('/signup', methods=['POST'])
@limiter.limit('5 per hour')
def sign_up():
    return signup(read_form()).to_response()


@auth_bp.route('/signin', methods=['POST'])
@limiter.limit('10 per minute')
def sign_in():
    return login(read_form()).to_response()


@auth_bp.route('/refresh', methods=['POST'])
@jwt_required(refresh=True)
def refresh():
    """用 refresh token 換新的 access token"""
    result = get_authenticated_user()
    if not result.success:
        return result.to_response()

    return success({
        'access_token': create_access_token(identity=str(result.data['id']))
    }).to_response()


@auth_bp.route('/signout', methods=['POST'])
@jwt_required()
def sign_out():
    return signout().to_response()


@auth_bp.route('/me', methods=['GET'])
@jwt_required()
def get_me():
    return get_authenticated_user().to_response()
