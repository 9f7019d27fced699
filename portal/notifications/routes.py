# FILE: portal/notifications/routes.py
from flask import jsonify, request
from flask_login import current_user, login_required

from portal import services
from portal.auth.decorators import role_required
from portal.notifications import bp
from portal.notifications.forms import CreateNotificationForm
from portal.utils import add_pagination_header, form_error_response, get_page_args


@bp.route('', methods=['GET'])
@login_required
def feed():
    page, page_size = get_page_args()
    pagination = services.get_notification_feed(current_user, page, page_size, request.args.get('type_filter'))
    items = [notification.to_dict(is_read=read_id is not None) for notification, read_id in pagination.items]
    return add_pagination_header(jsonify(items), pagination)


@bp.route('', methods=['POST'])
@login_required
@role_required('Lecturer', 'Coordinator', 'Admin')
def create():
    form = CreateNotificationForm()
    if not form.validate_on_submit():
        return form_error_response(form)

    notification = services.publish_notification(
        current_user,
        form.type.data,
        form.title.data,
        form.message.data,
        module_id=form.module_id.data,
        audience=form.audience.data or None,
        image=form.image.data,
    )
    return jsonify(notification.to_dict())


@bp.route('/<int:notification_id>', methods=['DELETE'])
@login_required
def delete(notification_id):
    services.delete_notification(notification_id, current_user)
    return jsonify({'status': 'success', 'message': 'Notification deleted successfully.'})


@bp.route('/<int:notification_id>/read', methods=['POST'])
@login_required
def mark_read(notification_id):
    if not services.mark_notification_read(notification_id, current_user):
        return jsonify({'status': 'error', 'message': 'Notification not found.'}), 404
    return jsonify({'status': 'success', 'message': 'Marked as read.'})


@bp.route('/<int:notification_id>/read', methods=['DELETE'])
@login_required
def unmark_read(notification_id):
    if not services.unmark_notification_read(notification_id, current_user):
        return jsonify({'status': 'error', 'message': 'Notification not found or not marked as read.'}), 404
    return jsonify({'status': 'success', 'message': 'Marked as unread.'})
