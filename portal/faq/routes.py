# FILE: portal/faq/routes.py
from flask import abort, jsonify
from flask_login import current_user, login_required

from portal import db, services
from portal.auth.decorators import admin_required
from portal.faq import bp
from portal.models import FaqEntry
from portal.utils import add_pagination_header, get_json_object, get_page_args


@bp.route('', methods=['GET'])
@login_required
def list_faqs():
    page, page_size = get_page_args()
    pagination = services.faq_query().paginate(page=page, per_page=page_size, error_out=False)
    response = jsonify([f.to_dict() for f in pagination.items])
    return add_pagination_header(response, pagination)


@bp.route('/create', methods=['POST'])
@login_required
@admin_required
def create_faq():
    data = get_json_object() or {}
    services.save_faq(current_user, data.get('question'), data.get('answer'))
    return jsonify({'status': 'success', 'message': 'FAQ created successfully.'})


@bp.route('/update/<int:faq_id>', methods=['PUT'])
@login_required
@admin_required
def update_faq(faq_id):
    entry = db.session.get(FaqEntry, faq_id)
    if entry is None:
        abort(404, description='FAQ entry not found.')
    data = get_json_object() or {}
    services.save_faq(current_user, data.get('question'), data.get('answer'), entry=entry)
    return jsonify({'status': 'success', 'message': 'FAQ updated successfully.'})


@bp.route('/<int:faq_id>', methods=['DELETE'])
@login_required
@admin_required
def delete_faq(faq_id):
    entry = db.session.get(FaqEntry, faq_id)
    if entry is None:
        abort(404, description='FAQ entry not found.')
    db.session.delete(entry)
    db.session.commit()
    return jsonify({'status': 'success', 'message': 'FAQ entry deleted successfully.'})
