# FILE: portal/documents/routes.py
from flask import jsonify
from flask_login import current_user, login_required

from portal import services
from portal.auth.decorators import role_required
from portal.documents import bp
from portal.documents.forms import UploadDocumentForm
from portal.utils import add_pagination_header, form_error_response, get_page_args


@bp.route('/upload', methods=['POST'])
@login_required
@role_required('Lecturer', 'Coordinator', 'Admin')
def upload():
    form = UploadDocumentForm()
    if not form.validate_on_submit():
        return form_error_response(form)

    document = services.upload_document(current_user, form.title.data, form.file.data,
                                        module_id=form.module_id.data, source='Module')
    return jsonify(document.to_dict())


@bp.route('/module/<int:module_id>')
@login_required
def by_module(module_id):
    documents = services.module_documents_query(module_id).all()
    return jsonify([d.to_dict() for d in documents])


@bp.route('/module/<int:module_id>/paged')
@login_required
def by_module_paged(module_id):
    page, page_size = get_page_args()
    pagination = services.module_documents_query(module_id).paginate(page=page, per_page=page_size,
                                                                     error_out=False)
    response = jsonify([d.to_dict() for d in pagination.items])
    return add_pagination_header(response, pagination)


@bp.route('/all')
@login_required
@role_required('Lecturer', 'Coordinator', 'Admin')
def all_module_documents():
    return jsonify([d.to_dict() for d in services.module_documents_query(0).all()])


@bp.route('/<int:document_id>', methods=['DELETE'])
@login_required
def delete(document_id):
    services.delete_document(document_id, current_user)
    return jsonify({'status': 'success', 'message': 'Document deleted successfully.'})
