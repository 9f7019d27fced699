import io
import os

import pytest

from portal import db
from portal.models import Notification
from portal.services import ensure_prefixed, strip_module_suffix


@pytest.fixture
def cs101(make_module):
    return make_module('CS101')


@pytest.fixture
def lecturer(make_user, cs101):
    return make_user('lecturer1', 'Lecturer', modules=[(cs101, 'Lecturer')])


def test_prefix_is_added_once():
    assert ensure_prefixed('Exam moved', 'CS101') == '[CS101] Exam moved'
    assert ensure_prefixed('[CS101] Exam moved', 'CS101') == '[CS101] Exam moved'
    assert ensure_prefixed('  [cs101] Exam moved', 'CS101') == '  [cs101] Exam moved'
    once = ensure_prefixed('Exam moved', 'CS101')
    assert ensure_prefixed(once, 'CS101') == once


def test_module_suffix_is_stripped():
    assert strip_module_suffix('Room changed (Module: CS101)') == 'Room changed'
    assert strip_module_suffix('Room changed (module:  CS101 )  ') == 'Room changed'
    assert strip_module_suffix('Room (A) changed') == 'Room (A) changed'


def test_lecturer_post_is_scoped_to_module(client, auth, lecturer, cs101):
    rv = client.post('/api/notifications', headers=auth(lecturer), json={
        'type': 'General', 'title': 'Exam moved', 'message': 'The exam is now on Friday.', 'module_id': cs101,
    })
    assert rv.status_code == 200, rv.get_json()
    data = rv.get_json()
    assert data['audience'] == 'ModuleStudents'
    assert data['module_id'] == cs101
    assert data['title'] == '[CS101] Exam moved'
    assert data['created_by'] == 'lecturer1'


def test_lecturer_must_pick_a_module(client, auth, lecturer):
    rv = client.post('/api/notifications', headers=auth(lecturer), json={
        'type': 'General', 'title': 'Exam moved', 'message': 'The exam is now on Friday.',
    })
    assert rv.status_code == 400
    assert rv.get_json()['message'] == 'Lecturers must target a specific module.'


def test_lecturer_cannot_post_to_unassigned_module(client, auth, lecturer, make_module):
    other = make_module('CS999')
    rv = client.post('/api/notifications', headers=auth(lecturer), json={
        'type': 'General', 'title': 'Exam moved', 'message': 'The exam is now on Friday.', 'module_id': other,
    })
    assert rv.status_code == 403


def test_coordinator_link_does_not_count_as_lecturer_link(client, auth, make_user, cs101):
    token = make_user('lecturer2', 'Lecturer', modules=[(cs101, 'Coordinator')])
    rv = client.post('/api/notifications', headers=auth(token), json={
        'type': 'General', 'title': 'Exam moved', 'message': 'The exam is now on Friday.', 'module_id': cs101,
    })
    assert rv.status_code == 403


@pytest.mark.parametrize('type_', ['RepositoryUpdate', 'scheduleupdate'])
def test_lecturer_exempt_types_become_global(client, auth, lecturer, cs101, type_):
    rv = client.post('/api/notifications', headers=auth(lecturer), json={
        'type': type_, 'title': 'Something new', 'message': 'Please take a look.', 'module_id': cs101,
        'audience': 'ModuleStudents',
    })
    assert rv.status_code == 200, rv.get_json()
    data = rv.get_json()
    assert data['module_id'] is None
    assert data['audience'] == 'All'
    assert data['title'] == 'Something new'


def test_system_posts_are_admin_only(client, auth, make_user):
    coordinator = make_user('coord1', 'Coordinator')
    admin = make_user('admin', 'Admin')
    payload = {'type': 'System', 'title': 'Maintenance', 'message': 'Down on Sunday night.'}

    assert client.post('/api/notifications', headers=auth(coordinator), json=payload).status_code == 403
    assert client.post('/api/notifications', headers=auth(admin), json=payload).status_code == 200


def test_students_cannot_post(client, auth, make_user):
    token = make_user('2000000001', 'Student')
    rv = client.post('/api/notifications', headers=auth(token), json={
        'type': 'General', 'title': 'Hello all', 'message': 'Hello everyone.',
    })
    assert rv.status_code == 403


def test_module_students_audience_needs_a_module(client, auth, make_user):
    token = make_user('coord1', 'Coordinator')
    rv = client.post('/api/notifications', headers=auth(token), json={
        'type': 'General', 'title': 'Hello all', 'message': 'Hello everyone.', 'audience': 'ModuleStudents',
    })
    assert rv.status_code == 400
    assert rv.get_json()['message'] == 'Please choose a specific module for Module students audience.'


def test_unknown_module_is_rejected(client, auth, make_user):
    token = make_user('coord1', 'Coordinator')
    rv = client.post('/api/notifications', headers=auth(token), json={
        'type': 'General', 'title': 'Hello all', 'message': 'Hello everyone.', 'module_id': 4242,
    })
    assert rv.status_code == 400
    assert rv.get_json()['message'] == 'Module not found.'


def test_module_id_forces_module_students_audience(client, auth, make_user, cs101):
    token = make_user('coord1', 'Coordinator')
    rv = client.post('/api/notifications', headers=auth(token), json={
        'type': 'General', 'title': '[cs101] Hello', 'message': 'Hello everyone (Module: CS101)',
        'module_id': cs101, 'audience': 'Staff',
    })
    data = rv.get_json()
    assert data['audience'] == 'ModuleStudents'
    assert data['title'] == '[cs101] Hello'
    assert data['message'] == 'Hello everyone'


@pytest.mark.parametrize('payload, message', [
    ({'type': 'Gossip', 'title': 'Hello', 'message': 'Hello everyone.'}, 'Invalid notification type.'),
    ({'type': 'General', 'title': 'Hello', 'message': 'Hello everyone.', 'audience': 'Parents'},
     'Invalid audience. Allowed: All, Students, Staff, ModuleStudents.'),
])
def test_type_and_audience_are_validated(client, auth, make_user, payload, message):
    token = make_user('coord1', 'Coordinator')
    rv = client.post('/api/notifications', headers=auth(token), json=payload)
    assert rv.status_code == 400
    assert rv.get_json()['message'] == message


def test_short_title_and_message_fail_form_validation(client, auth, make_user):
    token = make_user('coord1', 'Coordinator')
    rv = client.post('/api/notifications', headers=auth(token), json={
        'type': 'General', 'title': 'Hi', 'message': 'Yo',
    })
    assert rv.status_code == 400
    assert set(rv.get_json()['errors']) == {'title', 'message'}


def test_global_schedule_update_drops_trailing_date(client, auth, make_user):
    token = make_user('coord1', 'Coordinator')
    rv = client.post('/api/notifications', headers=auth(token), json={
        'type': 'ScheduleUpdate', 'title': 'Lab schedule updated',
        'message': 'Lab schedule updated: Monday 09:00-10:00 on 2025-03-03.',
    })
    assert rv.get_json()['message'] == 'Lab schedule updated: Monday 09:00-10:00'


def test_image_is_stored(app, client, auth, make_user):
    token = make_user('coord1', 'Coordinator')
    rv = client.post('/api/notifications', headers=auth(token), content_type='multipart/form-data', data={
        'type': 'General', 'title': 'Open day', 'message': 'See the poster.',
        'image': (io.BytesIO(b'\x89PNG fake'), 'poster.png', 'image/png'),
    })
    assert rv.status_code == 200, rv.get_json()
    image_path = rv.get_json()['image_path']
    assert image_path.startswith('/uploads/academic-portal-notifications/')
    stored = os.path.join(app.config['UPLOAD_FOLDER'], *image_path[len('/uploads/'):].split('/'))
    assert os.path.exists(stored)
    assert client.get(image_path).status_code == 200


def test_non_image_upload_is_rejected(client, auth, make_user):
    token = make_user('coord1', 'Coordinator')
    rv = client.post('/api/notifications', headers=auth(token), content_type='multipart/form-data', data={
        'type': 'General', 'title': 'Open day', 'message': 'See the poster.',
        'image': (io.BytesIO(b'MZ'), 'poster.exe', 'application/octet-stream'),
    })
    assert rv.status_code == 400
    assert rv.get_json()['message'] == 'Only image uploads are allowed.'


def test_delete_rules(app, client, auth, make_user):
    creator = make_user('coord1', 'Coordinator')
    other = make_user('coord2', 'Coordinator')
    admin = make_user('admin', 'Admin')

    def create():
        rv = client.post('/api/notifications', headers=auth(creator), json={
            'type': 'General', 'title': 'Hello all', 'message': 'Hello everyone.',
        })
        return rv.get_json()['id']

    first, second = create(), create()
    assert client.delete(f'/api/notifications/{first}', headers=auth(other)).status_code == 403
    assert client.delete(f'/api/notifications/{first}', headers=auth(creator)).status_code == 200
    assert client.delete(f'/api/notifications/{second}', headers=auth(admin)).status_code == 200
    assert client.delete('/api/notifications/999', headers=auth(admin)).status_code == 404

    with app.app_context():
        assert db.session.query(Notification).count() == 0
