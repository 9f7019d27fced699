# FILE: portal/modules/routes.py
from flask import abort, jsonify
from flask_login import current_user, login_required

from portal import db, services
from portal.auth.decorators import admin_required, role_required
from portal.models import Assessment, Module
from portal.modules import bp
from portal.utils import get_json_object


def _get_module_or_404(module_id):
    module = db.session.get(Module, module_id)
    if module is None:
        abort(404, description='Module not found.')
    return module


@bp.route('', methods=['POST'])
@login_required
@admin_required
def add_module():
    data = get_json_object()
    if not data:
        return jsonify({'status': 'error', 'message': 'Invalid data'}), 400
    module = services.create_module(data)
    return jsonify({'status': 'success', 'message': 'Module created successfully.', 'module_id': module.id})


@bp.route('', methods=['GET'])
@login_required
@role_required('Admin', 'Coordinator')
def list_modules():
    modules = Module.query.order_by(Module.module_code).all()
    return jsonify([m.to_dict() for m in modules])


@bp.route('/semester/<int:semester>')
@login_required
def modules_by_semester(semester):
    modules = services.modules_for_semester(current_user, semester)
    return jsonify([m.to_dict() for m in modules])


@bp.route('/semester/<int:semester>/grouped')
@login_required
@role_required('Coordinator')
def modules_grouped(semester):
    assigned, other = services.coordinator_modules_grouped(current_user, semester)
    return jsonify({'assigned': [m.to_dict() for m in assigned], 'other': [m.to_dict() for m in other]})


@bp.route('/assigned')
@login_required
@role_required('Lecturer', 'Coordinator')
def assigned_modules():
    return jsonify([m.to_dict() for m in services.assigned_modules(current_user)])


@bp.route('/<int:module_id>')
@login_required
@role_required('Admin', 'Lecturer', 'Coordinator')
def get_module(module_id):
    return jsonify(_get_module_or_404(module_id).to_dict(include_assessments=True))


@bp.route('/<int:module_id>/assessments')
@login_required
@role_required('Admin', 'Lecturer', 'Coordinator')
def module_assessments(module_id):
    assessments = Assessment.query.filter_by(module_id=module_id).order_by(Assessment.date).all()
    return jsonify([a.to_dict() for a in assessments])


@bp.route('/<int:module_id>', methods=['PUT'])
@login_required
@role_required('Admin', 'Lecturer', 'Coordinator')
def update_module(module_id):
    module = _get_module_or_404(module_id)
    data = get_json_object()
    if data is None:
        return jsonify({'status': 'error', 'message': 'Invalid data'}), 400

    notifications = services.update_module(module, data, current_user)
    return jsonify({
        'status': 'success',
        'message': 'Module updated successfully.',
        'notifications': [n.title for n in notifications],
    })


@bp.route('/<int:module_id>', methods=['DELETE'])
@login_required
@admin_required
def delete_module(module_id):
    module = _get_module_or_404(module_id)
    db.session.delete(module)
    db.session.commit()
    return jsonify({'status': 'success', 'message': 'Module deleted.'})
