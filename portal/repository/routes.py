# FILE: portal/repository/routes.py
from flask import jsonify
from flask_login import current_user, login_required

from portal import services
from portal.auth.decorators import role_required
from portal.documents.forms import UploadDocumentForm
from portal.models import ExternalRepository
from portal.repository import bp
from portal.repository.forms import ExternalRepositoryForm
from portal.utils import add_pagination_header, form_error_response, get_page_args


# --- Internal repository documents ---

@bp.route('/upload', methods=['POST'])
@login_required
@role_required('Lecturer', 'Coordinator', 'Admin')
def upload():
    form = UploadDocumentForm()
    if not form.validate_on_submit():
        return form_error_response(form)

    document = services.upload_document(current_user, form.title.data, form.file.data, source='Repository')
    return jsonify(document.to_dict())


@bp.route('', methods=['GET'])
@login_required
def internal_documents():
    page, page_size = get_page_args()
    pagination = services.repository_documents_query().paginate(page=page, per_page=page_size, error_out=False)
    response = jsonify([d.to_dict() for d in pagination.items])
    return add_pagination_header(response, pagination)


@bp.route('/<int:document_id>', methods=['DELETE'])
@login_required
def delete_document(document_id):
    services.delete_document(document_id, current_user)
    return jsonify({'status': 'success', 'message': 'Document deleted successfully.'})


# --- External repository links ---

@bp.route('/external', methods=['GET'])
def external_links():
    page, page_size = get_page_args()
    pagination = ExternalRepository.query.order_by(ExternalRepository.label) \
        .paginate(page=page, per_page=page_size, error_out=False)
    response = jsonify([r.to_dict() for r in pagination.items])
    return add_pagination_header(response, pagination)


@bp.route('/external', methods=['POST'])
@login_required
@role_required('Coordinator', 'Admin')
def add_external_link():
    form = ExternalRepositoryForm()
    if not form.validate_on_submit():
        return form_error_response(form)

    repo = services.add_external_repository(current_user, form.label.data, form.link_url.data, form.image.data)
    return jsonify(repo.to_dict()), 201


@bp.route('/external/<int:repo_id>', methods=['DELETE'])
@login_required
@role_required('Coordinator', 'Admin')
def delete_external_link(repo_id):
    services.delete_external_repository(repo_id)
    return jsonify({'status': 'success', 'message': 'External repository removed.'})
