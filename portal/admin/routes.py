# FILE: portal/admin/routes.py
from flask import abort, jsonify, request
from flask_login import login_required

from portal.admin import bp
from portal.auth.decorators import admin_required
from portal.models import Role, User
from portal import services
from portal.utils import get_json_object


def _get_user_or_404(username):
    user = services.find_user(username)
    if user is None:
        abort(404, description='User not found')
    return user


@bp.route('/exists/<username>')
@login_required
@admin_required
def username_exists(username):
    return jsonify({'exists': services.find_user(username) is not None})


@bp.route('/register-user', methods=['POST'])
@login_required
@admin_required
def register_user():
    data = get_json_object()
    if not data:
        return jsonify({'status': 'error', 'message': 'Invalid data'}), 400

    services.register_user(data)
    return jsonify({'status': 'success', 'message': 'User registered successfully.'})


@bp.route('/users-with-roles')
@login_required
@admin_required
def users_with_roles():
    users = User.query.order_by(User.username).all()
    return jsonify([u.to_dict() for u in users])


@bp.route('/all-users')
@login_required
@admin_required
def all_users():
    users = User.query.order_by(User.username).all()
    return jsonify([u.to_dict(include_modules=True) for u in users])


@bp.route('/users-by-role/<role>')
@login_required
@admin_required
def users_by_role(role):
    users = User.query.join(User.roles).filter(Role.name == role).order_by(User.username).all()
    return jsonify([u.to_dict(include_modules=True) for u in users])


@bp.route('/users-with-no-modules')
@login_required
@admin_required
def users_with_no_modules():
    users = User.query.filter(~User.module_links.any()).order_by(User.username).all()
    return jsonify([u.to_dict() for u in users])


@bp.route('/update-modules/<username>', methods=['PUT'])
@login_required
@admin_required
def update_modules(username):
    user = _get_user_or_404(username)
    data = get_json_object() or {}
    services.update_user_modules(user, data.get('semester1_module_ids'), data.get('semester2_module_ids'))
    return jsonify({'status': 'success', 'message': 'Modules updated successfully'})


@bp.route('/update-roles/<username>', methods=['PUT'])
@login_required
@admin_required
def update_roles(username):
    user = _get_user_or_404(username)
    roles = request.get_json(silent=True)
    if not isinstance(roles, list):
        return jsonify({'status': 'error', 'message': 'A list of role names is required.'}), 400
    services.update_user_roles(user, roles)
    return jsonify({'status': 'success', 'message': 'Roles updated successfully'})


@bp.route('/update-user/<username>', methods=['PUT'])
@login_required
@admin_required
def update_user(username):
    user = _get_user_or_404(username)
    data = get_json_object()
    if not data:
        return jsonify({'status': 'error', 'message': 'Invalid data'}), 400
    services.update_user(user, data)
    return jsonify({'status': 'success', 'message': 'User updated successfully.'})


@bp.route('/delete-user/<username>', methods=['DELETE'])
@login_required
@admin_required
def delete_user(username):
    user = _get_user_or_404(username)
    deleted_name = user.username
    services.delete_user(user)
    return jsonify({'status': 'success', 'message': f'User {deleted_name} deleted.'})
