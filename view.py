import logging

from result import failure

logger = logging.getLogger(__name__)

DELETE_MODAL = {
    'title': 'Delete Task',
    'message': 'Are you sure you want to delete this task? This action cannot be undone.',
    'confirm_text': 'Delete',
    'cancel_text': 'Cancel'
}


class TaskListView:
    """
    任務列表的畫面狀態

    actions 需要提供 get_todos / add_todo / update_todo / delete_todo,
    每個都回傳 ActionResult (todos 模組本身就符合)

    切換完成狀態採 optimistic update:先改本地狀態,backend 失敗再還原
    """

    def __init__(self, actions, tasks=None):
        self.actions = actions
        self.tasks = [dict(task) for task in (tasks or [])]
        self.error = None
        self.form_error = None

        self.show_add_form = False
        self.show_delete_modal = False
        self.task_to_delete = None
        self.show_profile_menu = False

    # ---------- 查詢 ----------

    def find(self, task_id):
        for task in self.tasks:
            if task['id'] == task_id:
                return task
        return None

    @property
    def is_empty(self):
        return not self.tasks

    def _replace(self, task_id, new_task):
        self.tasks = [new_task if task['id'] == task_id else task for task in self.tasks]

    # ---------- 載入 ----------

    def load(self):
        result = self.actions.get_todos()
        if result.success:
            self.tasks = list(result.data or [])
            self.error = None
        else:
            self.error = result.error
        return result

    # ---------- 新增 ----------

    def open_add_form(self):
        self.show_add_form = True

    def close_add_form(self):
        self.show_add_form = False
        self.form_error = None

    def add_task(self, title):
        if not title or not title.strip():
            self.form_error = 'Task title is required'
            return failure(self.form_error)

        result = self.actions.add_todo(title)
        if not result.success:
            self.error = result.error
            return result

        # 新任務放在最前面 (跟 backend 的排序一致)
        self.tasks = [result.data] + self.tasks
        self.error = None
        self.close_add_form()
        return result

    # ---------- 完成狀態 ----------

    def toggle_complete(self, task_id):
        task = self.find(task_id)
        if task is None:
            self.error = 'Task not found. It may have been deleted.'
            return failure(self.error, 404)

        previous = task['is_completed']
        self._replace(task_id, dict(task, is_completed=not previous))

        result = self.actions.update_todo(task_id, not previous)
        if not result.success:
            logger.warning(f"Rolling back toggle of task {task_id}: {result.error}")
            current = self.find(task_id)
            if current is not None:
                self._replace(task_id, dict(current, is_completed=previous))
            self.error = result.error
            return result

        if result.data:
            self._replace(task_id, result.data)
        self.error = None
        return result

    # ---------- 刪除 (含確認視窗) ----------

    @property
    def delete_modal(self):
        """確認視窗要顯示的文字 (沒開就是 None)"""
        if not self.show_delete_modal:
            return None
        return dict(DELETE_MODAL)

    def request_delete(self, task_id):
        self.task_to_delete = task_id
        self.show_delete_modal = True

    def cancel_delete(self):
        self.task_to_delete = None
        self.show_delete_modal = False

    def confirm_delete(self):
        task_id = self.task_to_delete
        self.cancel_delete()

        if task_id is None:
            return failure('No task selected for deletion.')

        result = self.actions.delete_todo(task_id)
        if not result.success:
            self.error = result.error
            return result

        self.tasks = [task for task in self.tasks if task['id'] != task_id]
        self.error = None
        return result

    # ---------- 個人選單 ----------

    def toggle_profile_menu(self):
        self.show_profile_menu = not self.show_profile_menu

    def close_profile_menu(self):
        self.show_profile_menu = False
