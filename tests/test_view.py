from result import success, failure
from view import TaskListView, DELETE_MODAL

from .fakes import FakeActions


def make_task(task_id, completed=False):
    return {'id': task_id, 'title': f'task {task_id}', 'is_completed': completed}


def make_view(*tasks):
    return TaskListView(FakeActions(), tasks=list(tasks))


def test_load_replaces_tasks():
    actions = FakeActions(todos=[make_task(2), make_task(1)])
    view = TaskListView(actions)

    result = view.load()

    assert result.success
    assert [t['id'] for t in view.tasks] == [2, 1]
    assert view.error is None


def test_load_failure_keeps_tasks_and_records_error():
    view = make_view(make_task(1))
    view.actions.script('get_todos', failure('Failed to fetch tasks. Please try again.'))

    view.load()

    assert [t['id'] for t in view.tasks] == [1]
    assert view.error == 'Failed to fetch tasks. Please try again.'

# ============================================
# Add
# ============================================

def test_blank_title_never_calls_action():
    view = make_view()
    view.open_add_form()

    result = view.add_task('   ')

    assert not result.success
    assert view.form_error == 'Task title is required'
    assert view.show_add_form is True
    assert view.actions.calls == []


def test_successful_create_prepends():
    view = make_view(make_task(1), make_task(2))
    view.open_add_form()

    result = view.add_task('new one')

    assert result.success
    assert view.tasks[0]['title'] == 'new one'
    assert [t['id'] for t in view.tasks[1:]] == [1, 2]
    assert view.show_add_form is False


def test_failed_create_leaves_list_unchanged():
    view = make_view(make_task(1))
    view.actions.script('add_todo', failure('A task with this title already exists.', 409))

    view.add_task('task 1')

    assert [t['id'] for t in view.tasks] == [1]
    assert view.error == 'A task with this title already exists.'

# ============================================
# Toggle (optimistic)
# ============================================

def test_toggle_applies_server_row():
    view = make_view(make_task(1), make_task(2))

    result = view.toggle_complete(2)

    assert result.success
    assert view.find(2)['is_completed'] is True
    assert view.find(1)['is_completed'] is False
    assert view.actions.calls == [('update_todo', 2, True)]


def test_failed_toggle_restores_prior_flag():
    view = make_view(make_task(1, completed=True), make_task(2))
    view.actions.script('update_todo', failure('Task not found. It may have been deleted.', 404))

    result = view.toggle_complete(1)

    assert not result.success
    assert view.find(1)['is_completed'] is True
    assert view.find(2)['is_completed'] is False
    assert view.error == 'Task not found. It may have been deleted.'


def test_toggle_is_applied_before_the_call_returns():
    seen = []

    class RecordingActions(FakeActions):
        def update_todo(self, todo_id, is_completed):
            seen.append(view.find(todo_id)['is_completed'])
            return failure('Failed to update task. Please try again.')

    view = TaskListView(RecordingActions(), tasks=[make_task(1)])

    view.toggle_complete(1)

    assert seen == [True]
    assert view.find(1)['is_completed'] is False


def test_toggle_unknown_task():
    view = make_view(make_task(1))

    result = view.toggle_complete(99)

    assert result.status == 404
    assert view.actions.calls == []

# ============================================
# Delete (confirmation modal)
# ============================================

def test_delete_needs_confirmation():
    view = make_view(make_task(1), make_task(2))

    view.request_delete(2)

    assert view.show_delete_modal is True
    assert view.task_to_delete == 2
    assert view.actions.calls == []
    assert view.delete_modal == DELETE_MODAL
    assert view.delete_modal['confirm_text'] == 'Delete'


def test_cancel_delete_keeps_everything():
    view = make_view(make_task(1))
    view.request_delete(1)

    view.cancel_delete()

    assert view.show_delete_modal is False
    assert view.delete_modal is None
    assert view.task_to_delete is None
    assert [t['id'] for t in view.tasks] == [1]


def test_confirmed_delete_removes_exactly_target():
    view = make_view(make_task(1), make_task(2), make_task(3))
    view.request_delete(2)

    result = view.confirm_delete()

    assert result.success
    assert [t['id'] for t in view.tasks] == [1, 3]
    assert view.actions.calls == [('delete_todo', 2)]
    assert view.show_delete_modal is False


def test_failed_delete_keeps_list():
    view = make_view(make_task(1), make_task(2))
    view.actions.script('delete_todo', failure('Task not found. It may have already been deleted.', 404))
    view.request_delete(1)

    view.confirm_delete()

    assert [t['id'] for t in view.tasks] == [1, 2]
    assert view.error == 'Task not found. It may have already been deleted.'
    assert view.show_delete_modal is False


def test_confirm_without_selection():
    view = make_view(make_task(1))

    result = view.confirm_delete()

    assert not result.success
    assert view.actions.calls == []

# ============================================
# Menus
# ============================================

def test_profile_menu_toggles():
    view = make_view()

    view.toggle_profile_menu()
    assert view.show_profile_menu is True

    view.close_profile_menu()
    assert view.show_profile_menu is False


def test_empty_state():
    view = make_view()
    assert view.is_empty

    view.actions.script('add_todo', success(make_task(5), 201))
    view.add_task('task 5')
    assert not view.is_empty


def test_view_over_real_actions(client, auth_headers, app):
    import todos

    headers = auth_headers()
    client.post('/todos', json={'title': 'first'}, headers=headers)

    with app.test_request_context(headers=headers):
        view = TaskListView(todos)
        view.load()
        view.add_task('second')
        view.toggle_complete(view.tasks[0]['id'])

    assert [t['title'] for t in view.tasks] == ['second', 'first']
    assert view.tasks[0]['is_completed'] is True
