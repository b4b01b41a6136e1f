from flask import current_app
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from models import db, User, Todo
import logging

logger = logging.getLogger(__name__)

# ============================================
# Backend 錯誤碼
# ============================================

# 與 hosted backend 回傳的錯誤碼一致
UNIQUE_VIOLATION = '23505'
NO_ROWS = 'PGRST116'
INVALID_CREDENTIALS = 'invalid_credentials'
USER_ALREADY_EXISTS = 'user_already_exists'
WEAK_PASSWORD = 'weak_password'
USER_NOT_FOUND = 'user_not_found'
DATABASE_ERROR = 'database_error'


class BackendError(Exception):
    """Backend 回傳的錯誤 (message 給人看, code 給程式判斷)"""

    def __init__(self, message, code=None):
        super().__init__(message)
        self.message = message
        self.code = code

    def __repr__(self):
        return f"BackendError(code={self.code!r}, message={self.message!r})"


# ============================================
# SQL Backend
# ============================================

class SqlBackend:
    """
    Backend-as-a-service 的本地實作

    對外只提供 auth 與 todos 兩組操作,行為對齊 hosted backend:
    1. 密碼用 bcrypt 雜湊
    2. 所有 todo 操作都以 user_id 過濾 (row-level authorization)
    3. 失敗一律 raise BackendError,不把 SQLAlchemy 例外往外丟
    """

    def __init__(self, bcrypt, password_min_length=6):
        self.bcrypt = bcrypt
        self.password_min_length = password_min_length

    # ---------- auth ----------

    def sign_up(self, email, password, name):
        email = email.strip().lower()

        if len(password) < self.password_min_length:
            raise BackendError(
                f'Password should be at least {self.password_min_length} characters.',
                WEAK_PASSWORD
            )

        if User.query.filter_by(email=email).first():
            raise BackendError('User already registered', USER_ALREADY_EXISTS)

        user = User(
            email=email,
            name=name,
            password_hash=self.bcrypt.generate_password_hash(password).decode('utf-8')
        )

        try:
            db.session.add(user)
            db.session.commit()
        except IntegrityError:
            # 同時註冊時可能撞到 unique constraint
            db.session.rollback()
            raise BackendError('User already registered', USER_ALREADY_EXISTS)
        except SQLAlchemyError as e:
            db.session.rollback()
            logger.error(f"sign_up failed for {email}: {str(e)}", exc_info=True)
            raise BackendError('Database error while creating user', DATABASE_ERROR)

        logger.info(f"New user registered: {user.email}")
        return user.to_dict()

    def sign_in_with_password(self, email, password):
        user = User.query.filter_by(email=email.strip().lower()).first()

        # 不區分 email 錯還是 password 錯
        if not user or not self.bcrypt.check_password_hash(user.password_hash, password):
            raise BackendError('Invalid login credentials', INVALID_CREDENTIALS)

        return user.to_dict()

    def get_user(self, user_id):
        user = db.session.get(User, user_id)
        if not user:
            raise BackendError('User not found', USER_NOT_FOUND)
        return user.to_dict()

    # ---------- todos ----------

    def list_todos(self, user_id):
        todos = Todo.query.filter_by(user_id=user_id).order_by(
            Todo.created_at.desc(), Todo.id.desc()
        ).all()
        return [todo.to_dict() for todo in todos]

    def insert_todo(self, user_id, title):
        todo = Todo(title=title, is_completed=False, user_id=user_id)

        try:
            db.session.add(todo)
            db.session.commit()
        except IntegrityError:
            db.session.rollback()
            raise BackendError(
                'duplicate key value violates unique constraint "unique_user_todo_title"',
                UNIQUE_VIOLATION
            )
        except SQLAlchemyError as e:
            db.session.rollback()
            logger.error(f"insert_todo failed for user {user_id}: {str(e)}", exc_info=True)
            raise BackendError('Database error while inserting todo', DATABASE_ERROR)

        return todo.to_dict()

    def update_todo(self, user_id, todo_id, is_completed):
        todo = self._get_owned_todo(user_id, todo_id)
        todo.is_completed = is_completed

        try:
            db.session.commit()
        except SQLAlchemyError as e:
            db.session.rollback()
            logger.error(f"update_todo failed for todo {todo_id}: {str(e)}", exc_info=True)
            raise BackendError('Database error while updating todo', DATABASE_ERROR)

        return todo.to_dict()

    def delete_todo(self, user_id, todo_id):
        todo = self._get_owned_todo(user_id, todo_id)

        try:
            db.session.delete(todo)
            db.session.commit()
        except SQLAlchemyError as e:
            db.session.rollback()
            logger.error(f"delete_todo failed for todo {todo_id}: {str(e)}", exc_info=True)
            raise BackendError('Database error while deleting todo', DATABASE_ERROR)

    def _get_owned_todo(self, user_id, todo_id):
        # 別人的 todo 視同不存在
        todo = Todo.query.filter_by(id=todo_id, user_id=user_id).first()
        if not todo:
            raise BackendError(
                'JSON object requested, multiple (or no) rows returned',
                NO_ROWS
            )
        return todo


# ============================================
# Helper Functions
# ============================================

def init_backend(app, backend=None):
    """把 backend 掛到 app.extensions (測試可以換成 fake)"""
    if backend is None:
        from extensions import bcrypt
        backend = SqlBackend(
            bcrypt,
            password_min_length=app.config.get('PASSWORD_MIN_LENGTH', 6)
        )
    app.extensions['backend'] = backend
    return backend


def get_backend():
    """從 Flask app extensions 取得 backend 實例 (不用 global variable)"""
    backend = current_app.extensions.get('backend')
    if backend is None:
        raise RuntimeError('Backend is not initialized. Call init_backend(app) first.')
    return backend
