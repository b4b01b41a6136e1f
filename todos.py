from flask import Blueprint, current_app
from flask_jwt_extended import jwt_required
from marshmallow import Schema, fields, EXCLUDE
from auth import get_authenticated_user, validate_request_data, first_error, read_form
from backend import get_backend, BackendError, UNIQUE_VIOLATION, NO_ROWS, DATABASE_ERROR
from result import success, failure
import logging

todos_bp = Blueprint('todos', __name__)
logger = logging.getLogger(__name__)

# ============================================
# Input Validation Schemas
# ============================================

class UpdateTodoSchema(Schema):
    """切換完成狀態驗證"""

    class Meta:
        unknown = EXCLUDE

    is_completed = fields.Boolean(required=True, error_messages={
        'required': 'Completion status is required.',
        'invalid': 'Completion status must be true or false.'
    })

# ============================================
# Helper Functions
# ============================================

def parse_todo_id(todo_id):
    """接受 int 或數字字串,其他一律回傳 None"""
    if isinstance(todo_id, bool):
        return None
    if isinstance(todo_id, int):
        return todo_id if todo_id > 0 else None
    if isinstance(todo_id, str) and todo_id.strip().isdigit():
        value = int(todo_id.strip())
        return value if value > 0 else None
    return None


def validate_title(title):
    """
    檢查任務標題

    Returns:
        tuple: (cleaned_title, error_message)
    """
    if not isinstance(title, str) or not title.strip():
        return None, 'Task title cannot be empty.'

    max_length = current_app.config.get('TASK_TITLE_MAX_LENGTH', 500)
    cleaned = title.strip()
    if len(cleaned) > max_length:
        return None, f'Task title is too long. Maximum {max_length} characters allowed.'

    return cleaned, None

# ============================================
# Actions
# ============================================

def get_todos():
    """取得目前使用者的任務 (新的在前)"""
    try:
        user_result = get_authenticated_user()
        if not user_result.success:
            return user_result

        try:
            todos = get_backend().list_todos(user_result.data['id'])
        except BackendError as error:
            logger.error(f"Error fetching todos: {error!r}")
            status = 500 if error.code == DATABASE_ERROR else 400
            return failure(error.message or 'Failed to fetch tasks. Please try again.', status)

        return success(todos or [])

    except Exception as e:
        logger.error(f"Unexpected error in get_todos: {str(e)}", exc_info=True)
        return failure('An unexpected error occurred while fetching tasks.', 500)


def add_todo(title):
    """
    新增任務

    1. 標題驗證在打 backend 之前
    2. 標題 trim 後存入,預設未完成
    3. 重複標題 (23505) 回傳 409
    """
    try:
        cleaned, error_message = validate_title(title)
        if error_message:
            return failure(error_message, 400)

        user_result = get_authenticated_user()
        if not user_result.success:
            return user_result

        user = user_result.data

        try:
            todo = get_backend().insert_todo(user['id'], cleaned)
        except BackendError as error:
            logger.error(f"Error adding todo: {error!r}")

            if error.code == UNIQUE_VIOLATION:
                return failure('A task with this title already exists.', 409)

            status = 500 if error.code == DATABASE_ERROR else 400
            return failure(error.message or 'Failed to add task. Please try again.', status)

        if not todo:
            return failure('Task was created but could not be retrieved.', 500)

        logger.info(f"Todo created: {todo['id']} by user {user['email']}")
        return success(todo, 201)

    except Exception as e:
        logger.error(f"Unexpected error in add_todo: {str(e)}", exc_info=True)
        return failure('An unexpected error occurred while adding the task.', 500)


def update_todo(todo_id, is_completed):
    """更新任務完成狀態"""
    try:
        parsed_id = parse_todo_id(todo_id)
        if parsed_id is None:
            return failure('Invalid task ID.', 400)

        if not isinstance(is_completed, bool):
            return failure('Completion status must be true or false.', 400)

        user_result = get_authenticated_user()
        if not user_result.success:
            return user_result

        try:
            todo = get_backend().update_todo(user_result.data['id'], parsed_id, is_completed)
        except BackendError as error:
            logger.error(f"Error updating todo {parsed_id}: {error!r}")

            if error.code == NO_ROWS:
                return failure('Task not found. It may have been deleted.', 404)

            status = 500 if error.code == DATABASE_ERROR else 400
            return failure(error.message or 'Failed to update task. Please try again.', status)

        if not todo:
            return failure('Task was updated but could not be retrieved.', 500)

        return success(todo)

    except Exception as e:
        logger.error(f"Unexpected error in update_todo: {str(e)}", exc_info=True)
        return failure('An unexpected error occurred while updating the task.', 500)


def delete_todo(todo_id):
    """刪除任務"""
    try:
        parsed_id = parse_todo_id(todo_id)
        if parsed_id is None:
            return failure('Invalid task ID.', 400)

        user_result = get_authenticated_user()
        if not user_result.success:
            return user_result

        try:
            get_backend().delete_todo(user_result.data['id'], parsed_id)
        except BackendError as error:
            logger.error(f"Error deleting todo {parsed_id}: {error!r}")

            if error.code == NO_ROWS:
                return failure('Task not found. It may have already been deleted.', 404)

            status = 500 if error.code == DATABASE_ERROR else 400
            return failure(error.message or 'Failed to delete task. Please try again.', status)

        logger.info(f"Todo deleted: {parsed_id}")
        return success(None)

    except Exception as e:
        logger.error(f"Unexpected error in delete_todo: {str(e)}", exc_info=True)
        return failure('An unexpected error occurred while deleting the task.', 500)

# ============================================
# Routes
# ============================================

@todos_bp.route('', methods=['GET'])
@jwt_required()
def list_todos():
    return get_todos().to_response()


@todos_bp.route('', methods=['POST'])
@jwt_required()
def create_todo():
    data = read_form()
    title = data.get('title') if isinstance(data, dict) else None
    return add_todo(title).to_response()


@todos_bp.route('/<int:todo_id>', methods=['PATCH'])
@jwt_required()
def toggle_todo(todo_id):
    is_valid, result = validate_request_data(UpdateTodoSchema, read_form())
    if not is_valid:
        return failure(first_error(result, ('is_completed',)), 400).to_response()

    return update_todo(todo_id, result['is_completed']).to_response()


@todos_bp.route('/<int:todo_id>', methods=['DELETE'])
@jwt_required()
def remove_todo(todo_id):
    return delete_todo(todo_id).to_response()
