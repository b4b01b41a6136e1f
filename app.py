from flask import Flask, request, jsonify
from werkzeug.exceptions import HTTPException
from sqlalchemy import text
from datetime import datetime
import logging
from logging.handlers import RotatingFileHandler
import os

from config import get_config
from extensions import jwt, bcrypt, cors, limiter
from models import db
from backend import init_backend

# ============================================
# Logging 設定
# ============================================

def setup_logging(app):
    """
    設定 logging 系統

    1. 分開 info 和 error logs
    2. 使用 RotatingFileHandler 避免 log 檔案過大
    3. 設定統一的 log format
    """
    log_dir = app.config.get('LOG_DIR', 'logs')
    os.makedirs(log_dir, exist_ok=True)

    formatter = logging.Formatter(
        '[%(asctime)s] %(levelname)s in %(module)s: %(message)s'
    )

    # Info log handler (記錄一般資訊)
    info_handler = RotatingFileHandler(
        os.path.join(log_dir, 'app.log'),
        maxBytes=10240000,  # 10MB
        backupCount=10
    )
    info_handler.setLevel(logging.INFO)
    info_handler.setFormatter(formatter)

    # Error log handler (只記錄錯誤)
    error_handler = RotatingFileHandler(
        os.path.join(log_dir, 'error.log'),
        maxBytes=10240000,  # 10MB
        backupCount=10
    )
    error_handler.setLevel(logging.ERROR)
    error_handler.setFormatter(formatter)

    # handler 只掛在 root logger; app.logger 和模組 logger 都會 propagate 上來
    level = getattr(logging, app.config.get('LOG_LEVEL', 'INFO').upper(), logging.INFO)
    root_logger = logging.getLogger()
    root_logger.addHandler(info_handler)
    root_logger.addHandler(error_handler)
    root_logger.setLevel(level)
    app.logger.setLevel(level)

    app.logger.info('Application startup')

# ============================================
# Application Factory
# ============================================

def create_app(config_class=None, backend=None):
    """
    建立 Flask app

    config_class 沒給就依 APP_ENV 選; backend 沒給就用本地 SQL backend
    """
    app = Flask(__name__)

    config_class = config_class or get_config()
    config_class.validate()
    app.config.from_object(config_class)

    # CORS: 不要用 '*',只允許設定的來源
    cors.init_app(
        app,
        supports_credentials=True,
        origins=app.config['CORS_ORIGINS'],
        methods=['GET', 'POST', 'PATCH', 'DELETE', 'OPTIONS'],
        allow_headers=['Content-Type', 'Authorization']
    )

    db.init_app(app)
    jwt.init_app(app)
    bcrypt.init_app(app)
    limiter.init_app(app)

    init_backend(app, backend)

    if not app.debug and not app.testing:
        setup_logging(app)

    with app.app_context():
        db.create_all()
        app.logger.info('Database tables created')

    register_blueprints(app)
    register_jwt_handlers(app)
    register_error_handlers(app)
    register_request_hooks(app)
    register_routes(app)

    from view_db import view_db_command
    app.cli.add_command(view_db_command)

    return app

# ============================================
# 註冊 Blueprints
# ============================================

def register_blueprints(app):
    from auth import auth_bp
    app.register_blueprint(auth_bp, url_prefix='/auth')

    from todos import todos_bp
    app.register_blueprint(todos_bp, url_prefix='/todos')

# ============================================
# JWT 錯誤處理
# ============================================

def register_jwt_handlers(app):

    @jwt.expired_token_loader
    def expired_token_callback(jwt_header, jwt_payload):
        """處理 token 過期"""
        app.logger.warning(f"Expired token attempt from: {request.remote_addr}")
        return jsonify({
            'success': False,
            'data': None,
            'error': 'Your session has expired. Please sign in again.'
        }), 401

    @jwt.invalid_token_loader
    def invalid_token_callback(error):
        """處理無效的 token"""
        app.logger.warning(f"Invalid token attempt from: {request.remote_addr}, error: {error}")
        return jsonify({
            'success': False,
            'data': None,
            'error': 'Token validation failed. Please sign in again.'
        }), 401

    @jwt.unauthorized_loader
    def unauthorized_callback(error):
        """處理缺少 token"""
        app.logger.warning(f"Unauthorized access attempt from: {request.remote_addr}, error: {error}")
        return jsonify({
            'success': False,
            'data': None,
            'error': 'User not authenticated. Please sign in to continue.'
        }), 401

    @jwt.revoked_token_loader
    def revoked_token_callback(jwt_header, jwt_payload):
        """處理被撤銷的 token"""
        return jsonify({
            'success': False,
            'data': None,
            'error': 'The token has been revoked. Please sign in again.'
        }), 401

# ============================================
# 全域錯誤處理
# ============================================

def error_response(message, status):
    return jsonify({
        'success': False,
        'data': None,
        'error': message
    }), status


def register_error_handlers(app):

    @app.errorhandler(400)
    def bad_request(error):
        return error_response('The request is malformed or invalid', 400)

    @app.errorhandler(404)
    def not_found(error):
        return error_response('The requested resource does not exist', 404)

    @app.errorhandler(405)
    def method_not_allowed(error):
        return error_response('The HTTP method is not allowed for this endpoint', 405)

    @app.errorhandler(429)
    def rate_limit_exceeded(error):
        app.logger.warning(f"Rate limit exceeded from: {request.remote_addr}")
        return error_response('Too many requests. Please try again later.', 429)

    @app.errorhandler(500)
    def internal_server_error(error):
        """
        處理 500 錯誤

        不洩漏錯誤細節給前端,完整 stack trace 只寫進 log
        """
        db.session.rollback()
        app.logger.error(f"Internal server error: {str(error)}", exc_info=True)
        return error_response('An internal error occurred. Please try again later.', 500)

    @app.errorhandler(Exception)
    def handle_unexpected_error(error):
        """最後的防線,捕捉所有沒被處理的 exception"""
        if isinstance(error, HTTPException):
            return error_response(error.description, error.code)

        db.session.rollback()
        app.logger.error(f"Unexpected error: {str(error)}", exc_info=True)
        return error_response('An unexpected error occurred. Please try again later.', 500)

# ============================================
# Request/Response Logging
# ============================================

def register_request_hooks(app):

    @app.before_request
    def log_request():
        if not app.debug:
            app.logger.info(f"Request: {request.method} {request.path} from {request.remote_addr}")

    @app.after_request
    def log_response(response):
        if not app.debug:
            app.logger.info(f"Response: {response.status_code} for {request.method} {request.path}")

        # security headers
        response.headers['X-Content-Type-Options'] = 'nosniff'
        response.headers['X-Frame-Options'] = 'DENY'
        response.headers['X-XSS-Protection'] = '1; mode=block'

        return response

# ============================================
# Health Check / API 首頁
# ============================================

def register_routes(app):

    @app.route('/health', methods=['GET'])
    def health_check():
        """健康檢查端點 (load balancer / 監控用)"""
        try:
            db.session.execute(text('SELECT 1'))

            return jsonify({
                'status': 'healthy',
                'database': 'connected',
                'timestamp': datetime.utcnow().isoformat()
            }), 200
        except Exception as e:
            app.logger.error(f"Health check failed: {str(e)}")
            return jsonify({
                'status': 'unhealthy',
                'database': 'disconnected',
                'error': 'Database connection failed'
            }), 503

    @app.route('/')
    @limiter.limit('10 per minute')
    def home():
        """API 首頁 (landing)"""
        return jsonify({
            'message': 'EFFECTIVE - Task Management Application',
            'version': app.config['API_VERSION'],
            'endpoints': {
                'health': {'path': '/health', 'methods': ['GET']},
                'auth': {
                    'signup': {'path': '/auth/signup', 'methods': ['POST']},
                    'signin': {'path': '/auth/signin', 'methods': ['POST']},
                    'refresh': {'path': '/auth/refresh', 'methods': ['POST']},
                    'signout': {'path': '/auth/signout', 'methods': ['POST']},
                    'me': {'path': '/auth/me', 'methods': ['GET']}
                },
                'todos': {
                    'list': {'path': '/todos', 'methods': ['GET', 'POST']},
                    'detail': {'path': '/todos/:id', 'methods': ['PATCH', 'DELETE']}
                }
            },
            'rate_limits': {
                'default': '200 per hour, 1000 per day',
                'auth': {
                    'signup': '5 per hour',
                    'signin': '10 per minute'
                }
            }
        })

# ============================================
# 啟動應用
# ============================================

if __name__ == '__main__':
    # production 環境不要用 Flask 內建的 server, 改用 gunicorn: gunicorn "app:create_app()"
    app = create_app()

    port = int(os.getenv('FLASK_PORT', 8888))

    app.run(
        debug=app.debug,
        port=port,
        host='0.0.0.0'
    )
