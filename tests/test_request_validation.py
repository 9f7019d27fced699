import pytest

from portal.models import Module, User


@pytest.fixture
def admin(make_user):
    return make_user('admin', 'Admin')


@pytest.mark.parametrize('method, url, body', [
    ('post', '/api/modules', ['x']),
    ('put', '/api/modules/{module}', ['x']),
    ('post', '/api/scheduler/lab', ['x']),
    ('post', '/api/scheduler/lab/assign/admin', 'Monday'),
    ('post', '/api/admin/register-user', [{'username': '2000000001'}]),
    ('put', '/api/admin/update-user/admin', ['x']),
])
def test_bodies_that_are_not_objects_are_rejected(client, auth, admin, make_module, method, url, body):
    module = make_module('CS101')
    rv = getattr(client, method)(url.format(module=module), headers=auth(admin), json=body)
    assert rv.status_code == 400
    assert rv.get_json() == {'status': 'error', 'message': 'Invalid data'}


@pytest.mark.parametrize('method, url, body, message', [
    ('post', '/api/modules', {'module_code': 5, 'module_name': 'Five'}, 'Module code must be a string.'),
    ('post', '/api/modules', {'module_code': 'CS5', 'module_name': 'Five', 'class_sessions': ['x']},
     'Class sessions must be a list of objects.'),
    ('post', '/api/modules', {'module_code': 'CS5', 'module_name': 'Five', 'assessments': 'Quiz'},
     'Assessments must be a list of objects.'),
    ('put', '/api/modules/{module}', {'class_sessions': ['x']}, 'Class sessions must be a list of objects.'),
    ('put', '/api/modules/{module}', {'module_name': ['x']}, 'Module name must be a string.'),
    ('put', '/api/modules/{module}', {'assessments': [{'title': 7, 'date': '2025-02-01'}]},
     'Assessment title must be a string.'),
    ('post', '/api/scheduler/lab', {'week_days': 1, 'start_time': '09:00', 'end_time': '10:00',
                                    'booking_date': '2025-03-03'}, 'Week day must be a string.'),
    ('post', '/api/faq/create', {'question': ['Where?'], 'answer': 'Building C.'}, 'Question must be a string.'),
    ('post', '/api/account/login', {'username': 2000000001, 'password': 'x'}, 'User name must be a string.'),
    ('put', '/api/admin/update-modules/admin', {'semester1_module_ids': '1'},
     'Semester modules must be a list of module ids.'),
    ('put', '/api/admin/update-user/admin', {'email': 'admin@example.com', 'roles': 'Admin'},
     'Roles must be a list of role names.'),
    ('post', '/api/admin/register-user', {'username': '2000000001', 'email': 'a@example.com', 'role': 'Student',
                                          'password': 'Pa$$w0rd', 'first_name': {'x': 1}, 'last_name': 'B'},
     'First name must be a string.'),
])
def test_fields_of_the_wrong_type_are_rejected(client, auth, admin, make_module, method, url, body, message):
    module = make_module('CS101')
    rv = getattr(client, method)(url.format(module=module), headers=auth(admin), json=body)
    assert rv.status_code == 400
    assert rv.get_json() == {'status': 'error', 'message': message}


def test_rejected_module_update_leaves_the_module_alone(app, client, auth, admin, make_module):
    module = make_module('CS101', sessions=[('Room A', 'Monday', '08:00', '09:00')])
    rv = client.put(f'/api/modules/{module}', headers=auth(admin),
                    json={'module_code': 'CS102', 'class_sessions': [{'venue': 'Room B'}, 'x']})
    assert rv.status_code == 400

    with app.app_context():
        stored = Module.query.one()
        assert stored.module_code == 'CS101'
        assert [s.venue for s in stored.class_sessions] == ['Room A']


def test_registration_with_bad_module_ids_stores_nothing(app, client, auth, admin):
    rv = client.post('/api/admin/register-user', headers=auth(admin), json={
        'username': '2000000001', 'email': 'a@example.com', 'role': 'Student', 'password': 'Pa$$w0rd',
        'first_name': 'Ada', 'last_name': 'Lovelace', 'semester2_module_ids': [True],
    })
    assert rv.status_code == 400
    assert rv.get_json()['message'] == 'Semester modules must be a list of module ids.'
    with app.app_context():
        assert User.query.count() == 1
