# FILE: portal/auth/routes.py
from flask import current_app, jsonify
from flask_login import current_user, login_required

from portal.auth import bp
from portal.services import authenticate
from portal.utils import get_json_object


@bp.route('/login', methods=['POST'])
def login():
    data = get_json_object() or {}
    user, errors = authenticate(data.get('username'), data.get('password'))
    if user is None:
        current_app.logger.info(f"Failed login for '{data.get('username')}'")
        return jsonify({'status': 'error', 'message': 'Invalid login.', 'errors': errors}), 401

    current_app.logger.info(f"User {user.username} logged in")
    return jsonify(user.to_dict(include_modules=True, token=user.get_token()))


@bp.route('/logout', methods=['POST'])
def logout():
    # Tokens are stateless, the client drops its copy
    return jsonify({'status': 'success', 'message': 'Logged out (client must clear token).'})


@bp.route('/me')
@login_required
def me():
    return jsonify(current_user.to_dict(include_modules=True))
