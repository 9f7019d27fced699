# FILE: portal/scheduler/routes.py
from flask import abort, jsonify
from flask_login import current_user, login_required

from portal import services
from portal.auth.decorators import admin_required, role_required
from portal.scheduler import bp
from portal.utils import get_json_object


def _bookings_json(rows):
    return [booking.to_dict(owner=owner) for booking, owner in rows]


@bp.route('/lab')
@login_required
def all_bookings():
    return jsonify(_bookings_json(services.list_lab_bookings()))


@bp.route('/lab/user')
@login_required
def my_bookings():
    return jsonify(_bookings_json(services.list_lab_bookings(current_user.username)))


@bp.route('/lab', methods=['POST'])
@login_required
@role_required('Lecturer', 'Coordinator', 'Admin')
def create_booking():
    data = get_json_object()
    if not data:
        return jsonify({'status': 'error', 'message': 'Invalid data'}), 400
    services.create_lab_booking(current_user.username, data, current_user)
    return jsonify({'status': 'success', 'message': 'Booking created successfully.'})


@bp.route('/lab/assign/<username>', methods=['POST'])
@login_required
@admin_required
def create_booking_for_user(username):
    owner = services.find_user(username)
    if owner is None:
        abort(404, description='User not found')
    data = get_json_object()
    if not data:
        return jsonify({'status': 'error', 'message': 'Invalid data'}), 400
    services.create_lab_booking(owner.username, data, current_user)
    return jsonify({'status': 'success', 'message': f'Booking created for user {owner.username}.'})


@bp.route('/lab/<int:booking_id>', methods=['DELETE'])
@login_required
def delete_booking(booking_id):
    services.delete_lab_booking(booking_id, current_user)
    return jsonify({'status': 'success', 'message': 'Booking deleted successfully.'})


@bp.route('/class/<int:semester>')
@login_required
def class_schedule(semester):
    return jsonify(services.class_schedule_for_user(current_user, semester))


@bp.route('/assessment/<int:semester>')
@login_required
def assessment_schedule(semester):
    return jsonify(services.assessment_schedule_for_user(current_user, semester))
