from result import ActionResult, success, failure


def test_success_carries_data_and_no_error():
    result = success({'id': 1}, 201)

    assert result.success is True
    assert result.data == {'id': 1}
    assert result.error is None
    assert result.status == 201


def test_failure_carries_message_and_no_data():
    result = failure('Task title cannot be empty.')

    assert result.success is False
    assert result.data is None
    assert result.error == 'Task title cannot be empty.'
    assert result.status == 400


def test_to_dict_has_uniform_shape():
    assert success([]).to_dict() == {'success': True, 'data': [], 'error': None}
    assert failure('nope', 404).to_dict() == {'success': False, 'data': None, 'error': 'nope'}


def test_to_response_uses_status(app):
    with app.test_request_context():
        response, status = ActionResult(success=False, error='gone', status=404).to_response()

    assert status == 404
    assert response.get_json() == {'success': False, 'data': None, 'error': 'gone'}
