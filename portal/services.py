# FILE: portal/services.py

import os
import re
from datetime import date, datetime, time, timedelta

from flask import current_app
from sqlalchemy import and_, false, func, or_
from sqlalchemy.exc import SQLAlchemyError

from portal import db
from portal.models import (STAFF_ROLES, Assessment, ClassSession, Document, ExternalRepository,
                           FaqEntry, LabBooking, Module, Notification, NotificationRead, Role, User,
                           UserModule, DEFAULT_REPOSITORY_IMAGE, utcnow)
from portal.storage import StorageError, delete_upload, save_upload
from portal.utils import WEEK_DAYS, format_time, parse_date, parse_time


class ServiceError(Exception):
    """A business rule refused the request. Rendered as JSON by the errors blueprint."""

    def __init__(self, message, status_code=400):
        super().__init__(message)
        self.message = message
        self.status_code = status_code


# --- Constants ---
ALLOWED_TYPES = ['General', 'System', 'DocumentUpload', 'RepositoryUpdate', 'SchedulerUpdate',
                 'ScheduleUpdate', 'ModuleUpdate', 'FaqUpdate']
ALLOWED_AUDIENCES = ['All', 'Students', 'Staff', 'ModuleStudents']
# Lecturers may broadcast these without picking a module
MODULE_EXEMPT_TYPES = ('RepositoryUpdate', 'ScheduleUpdate')
ANNOUNCEMENT_TYPES = ['general', 'system']

ALLOWED_IMAGE_EXTENSIONS = {'.jpg', '.jpeg', '.png', '.gif', '.webp'}
ALLOWED_DOCUMENT_MIMES = {
    '.pdf': {'application/pdf'},
    '.docx': {'application/vnd.openxmlformats-officedocument.wordprocessingml.document'},
    '.ppt': {'application/vnd.ms-powerpoint'},
    '.pptx': {'application/vnd.openxmlformats-officedocument.presentationml.presentation'},
    '.xlsx': {'application/vnd.openxmlformats-officedocument.spreadsheetml.sheet'},
    '.txt': {'text/plain'},
}
DOCUMENT_TYPE_ERROR = 'Only PDF, DOCX, PPT, PPTX, XLSX, TXT are allowed.'

NOTIFICATION_IMAGE_FOLDER = 'academic-portal-notifications'
DOCUMENT_FOLDER = 'academic-portal-docs'
REPOSITORY_IMAGE_FOLDER = 'academic-portal-repositories'

LAB_WEEK_DAYS = WEEK_DAYS[:6]
FAQ_MIN_CHARS = 5
FAQ_MAX_CHARS = 5000
STUDENT_NUMBER_RE = re.compile(r'^\d{10}$')
MODULE_SUFFIX_RE = re.compile(r'\s*\(Module:\s*[^)]+\)\s*$', re.IGNORECASE)
TRAILING_DATE_RE = re.compile(r'\s*on\s+\d{4}[-/]\d{2}[-/]\d{2}\.?\s*$', re.IGNORECASE)


def _canonical(value, allowed):
    """Case-insensitive lookup of `value` in `allowed`, returns the canonical spelling or None."""
    if not value:
        return None
    lowered = str(value).strip().lower()
    return next((item for item in allowed if item.lower() == lowered), None)


def _text(value, field):
    """Stripped string value of a JSON field, None when the field is absent."""
    if value is None:
        return None
    if not isinstance(value, str):
        raise ServiceError(f"{field} must be a string.")
    return value.strip()


def _objects(value, field):
    """A JSON list of objects, [] when absent."""
    if value is None:
        return []
    if not isinstance(value, list) or not all(isinstance(item, dict) for item in value):
        raise ServiceError(f"{field} must be a list of objects.")
    return value


def _id_list(value, field):
    if value is None:
        return []
    if not isinstance(value, list) or any(isinstance(i, bool) or not isinstance(i, int) for i in value):
        raise ServiceError(f"{field} must be a list of module ids.")
    return value


def find_user(username):
    """Usernames are matched case-insensitively, like at login."""
    if not username or not str(username).strip():
        return None
    return User.query.filter(func.lower(User.username) == str(username).strip().lower()).first()


# ==========================================================
# Notifications
# ==========================================================

def ensure_prefixed(title, module_code):
    """Prepends '[CODE] ' to the title unless it already carries that prefix."""
    prefix = f"[{module_code}]"
    title = title or ''
    if title.lstrip().lower().startswith(prefix.lower()):
        return title
    return f"{prefix} {title}".strip()


def strip_module_suffix(message):
    if not message or not message.strip():
        return message or ''
    return MODULE_SUFFIX_RE.sub('', message)


def _validate_image(image):
    content_type = (image.mimetype or '').lower()
    if not content_type.startswith('image/'):
        raise ServiceError('Only image uploads are allowed.')
    ext = os.path.splitext(image.filename or '')[1].lower()
    if ext not in ALLOWED_IMAGE_EXTENSIONS:
        raise ServiceError('Unsupported image type. Allowed: .jpg, .jpeg, .png, .gif, .webp')


def publish_notification(creator, type_, title, message, module_id=None, audience=None, image=None,
                         commit=True):
    """
    Validates and stores a notification on behalf of `creator`.

    Applies the targeting rules: System posts are Admin only, a module id
    (or the ModuleStudents audience) scopes the post to that module's
    students and prefixes the title with the module code, and Lecturers
    must post to a module they teach unless the type is a global
    RepositoryUpdate or ScheduleUpdate broadcast.
    """
    notification_type = _canonical(type_, ALLOWED_TYPES)
    if notification_type is None:
        raise ServiceError('Invalid notification type.')

    audience = _canonical(audience or 'All', ALLOWED_AUDIENCES)
    if audience is None:
        raise ServiceError('Invalid audience. Allowed: All, Students, Staff, ModuleStudents.')

    if notification_type == 'System' and not creator.has_role('Admin'):
        raise ServiceError('Only Admins can post System announcements.', 403)

    if creator.has_role('Lecturer'):
        if notification_type in MODULE_EXEMPT_TYPES:
            module_id = None
            audience = 'All'
        else:
            if module_id is None:
                raise ServiceError('Lecturers must target a specific module.')
            if module_id not in creator.module_ids('Lecturer'):
                raise ServiceError('You are not assigned as Lecturer for the selected module.', 403)

    title = (title or '').strip() or '(untitled)'
    if module_id is not None or audience == 'ModuleStudents':
        if module_id is None:
            raise ServiceError('Please choose a specific module for Module students audience.')
        module = db.session.get(Module, module_id)
        if module is None:
            raise ServiceError('Module not found.')
        audience = 'ModuleStudents'
        code = (module.module_code or '').strip()
        if code:
            title = ensure_prefixed(title, code)

    message = strip_module_suffix(message)
    if notification_type == 'ScheduleUpdate' and module_id is None and audience == 'All' and message.strip():
        # Lab broadcasts read better without the trailing booking date
        message = TRAILING_DATE_RE.sub('', message).rstrip('. ').strip()

    image_path = None
    if image is not None and image.filename:
        _validate_image(image)
        try:
            image_path = save_upload(image, NOTIFICATION_IMAGE_FOLDER)
        except StorageError as e:
            raise ServiceError(str(e), 500) from e

    notification = Notification(
        type=notification_type,
        title=title,
        message=message,
        image_path=image_path,
        created_by=creator.username,
        created_at=utcnow(),
        module_id=module_id,
        audience=audience,
    )
    db.session.add(notification)
    if commit:
        db.session.commit()
        current_app.logger.info(f"Notification {notification.id} ({notification_type}) published by {creator.username}")
    return notification


def get_notification_feed(user, page=1, page_size=10, type_filter=None):
    """
    Returns a pagination of (Notification, read_id) rows visible to `user`,
    newest first. `read_id` is None when the user has not read the item.
    """
    if user is None:
        return Notification.query.filter(false()).paginate(page=page, per_page=page_size, error_out=False)

    query = db.session.query(Notification, NotificationRead.id)

    username = user.username
    module_ids = user.module_ids()
    is_student = user.has_role('Student')
    is_staff = user.has_any_role(*STAFF_ROLES)

    query = query.outerjoin(NotificationRead, and_(NotificationRead.notification_id == Notification.id,
                                                   NotificationRead.user_id == user.id))

    if user.join_date is not None:
        query = query.filter(Notification.created_at >= datetime.combine(user.join_date, time.min))

    query = query.filter(or_(
        Notification.created_by == username,
        Notification.module_id.is_(None),
        Notification.module_id.in_(module_ids),
    ))

    audience_clauses = [Notification.created_by == username, Notification.audience == 'All']
    if is_student:
        audience_clauses.append(Notification.audience == 'Students')
        audience_clauses.append(and_(Notification.audience == 'ModuleStudents',
                                     Notification.module_id.in_(module_ids)))
    if is_staff:
        audience_clauses.append(Notification.audience == 'Staff')
    query = query.filter(or_(*audience_clauses))

    type_filter = (type_filter or '').strip().lower()
    if type_filter == 'announcements':
        query = query.filter(func.lower(Notification.type).in_(ANNOUNCEMENT_TYPES))
    elif type_filter == 'notifications':
        query = query.filter(func.lower(Notification.type).notin_(ANNOUNCEMENT_TYPES))

    query = query.order_by(Notification.created_at.desc(), Notification.id.desc())
    return query.paginate(page=page, per_page=page_size, error_out=False)


def delete_notification(notification_id, user):
    notification = db.session.get(Notification, notification_id)
    if notification is None:
        raise ServiceError('Notification not found.', 404)
    if not user.has_role('Admin') and notification.created_by != user.username:
        raise ServiceError('You are not authorized to delete this notification.', 403)
    db.session.delete(notification)
    db.session.commit()


def mark_notification_read(notification_id, user):
    """Idempotent. Returns False when the notification does not exist."""
    if db.session.get(Notification, notification_id) is None:
        return False
    already = NotificationRead.query.filter_by(notification_id=notification_id, user_id=user.id).first()
    if already:
        return True
    db.session.add(NotificationRead(notification_id=notification_id, user_id=user.id, read_at=utcnow()))
    db.session.commit()
    return True


def unmark_notification_read(notification_id, user):
    receipt = NotificationRead.query.filter_by(notification_id=notification_id, user_id=user.id).first()
    if receipt is None:
        return db.session.get(Notification, notification_id) is not None
    db.session.delete(receipt)
    db.session.commit()
    return True


# ==========================================================
# Modules and the schedule-change diff
# ==========================================================

def _sort_key(row):
    # None sorts first within each column and never meets a real value
    return tuple((value is not None, value if value is not None else 0) for value in row)


def snapshot_class_sessions(module_id):
    rows = db.session.query(ClassSession.venue, ClassSession.week_day, ClassSession.start_time,
                            ClassSession.end_time).filter(ClassSession.module_id == module_id).all()
    return sorted((tuple(row) for row in rows), key=_sort_key)


def snapshot_assessments(module_id):
    rows = db.session.query(Assessment.title, Assessment.description, Assessment.date, Assessment.start_time,
                            Assessment.end_time, Assessment.due_time, Assessment.venue,
                            Assessment.is_timed).filter(Assessment.module_id == module_id).all()
    return sorted((tuple(row) for row in rows), key=_sort_key)


def schedule_changed(before, after):
    if len(before) != len(after):
        return True
    return any(old != new for old, new in zip(before, after))


def validate_assessment_months(items, semester, is_year_module):
    """Returns (ok, message). Semester 1 covers Jan-Jun, semester 2 Jul-Dec, year modules anything."""
    if is_year_module or semester == 0:
        return True, None
    for item in items or []:
        if not isinstance(item, dict):
            return False, 'Assessments must be a list of objects.'
        raw = item.get('date')
        if not raw:
            return False, 'Assessment date is required.'
        try:
            day = parse_date(raw)
        except ValueError:
            return False, f"Invalid assessment date format: {raw}"
        if semester == 1 and not 1 <= day.month <= 6:
            return False, f"Assessment date {day.isoformat()} is out of range for Semester 1 (Jan-Jun)."
        if semester == 2 and not 7 <= day.month <= 12:
            return False, f"Assessment date {day.isoformat()} is out of range for Semester 2 (Jul-Dec)."
    return True, None


def build_class_sessions(items):
    sessions = []
    for item in _objects(items, 'Class sessions'):
        try:
            start, end = parse_time(item.get('start_time')), parse_time(item.get('end_time'))
        except ValueError as e:
            raise ServiceError(str(e))
        venue = _text(item.get('venue'), 'Venue')
        week_day = _text(item.get('week_day'), 'Week day')
        if not venue or not week_day or start is None or end is None:
            raise ServiceError('Class sessions need a venue, week day, start time and end time.')
        sessions.append(ClassSession(venue=venue, week_day=week_day, start_time=start, end_time=end))
    return sessions


def build_assessments(items):
    assessments = []
    for item in _objects(items, 'Assessments'):
        title = _text(item.get('title'), 'Assessment title')
        if not title:
            raise ServiceError('Assessment title is required.')
        try:
            assessments.append(Assessment(
                title=title,
                description=_text(item.get('description'), 'Description'),
                date=parse_date(item.get('date')),
                start_time=parse_time(item.get('start_time')),
                end_time=parse_time(item.get('end_time')),
                due_time=parse_time(item.get('due_time')),
                venue=_text(item.get('venue'), 'Venue'),
                is_timed=bool(item.get('is_timed', False)),
            ))
        except ValueError as e:
            raise ServiceError(str(e))
        if assessments[-1].date is None:
            raise ServiceError('Assessment date is required.')
    return assessments


def create_module(data):
    code = _text(data.get('module_code'), 'Module code') or ''
    name = _text(data.get('module_name'), 'Module name') or ''
    if not code or not name:
        raise ServiceError('Module code and name are required.')

    semester = data.get('semester', 1)
    is_year = bool(data.get('is_year_module')) or semester == 0
    semester = 0 if is_year else semester
    if semester not in (0, 1, 2):
        raise ServiceError('Semester must be 0, 1 or 2.')

    ok, msg = validate_assessment_months(data.get('assessments'), semester, is_year)
    if not ok:
        raise ServiceError(msg)

    module = Module(module_code=code, module_name=name, semester=semester, is_year_module=is_year)
    module.class_sessions = build_class_sessions(data.get('class_sessions'))
    module.assessments = build_assessments(data.get('assessments'))
    db.session.add(module)
    db.session.commit()
    current_app.logger.info(f"Module {module.module_code} created (id={module.id})")
    return module


def _module_notification(module, editor, type_, title, message):
    return Notification(type=type_, title=f"[{module.module_code}] {title}", message=message,
                        created_by=editor.username, created_at=utcnow(), module_id=module.id,
                        audience='ModuleStudents')


def update_module(module, data, editor):
    """
    Applies `data` to `module` and emits the matching auto notifications.

    Sessions and assessments are only replaced when the payload carries them.
    A class or assessment timetable change produces a ScheduleUpdate for each
    changed schedule; otherwise a code or name change produces a single
    ModuleUpdate. Returns the list of notifications created.
    """
    original_code = module.module_code or ''
    original_name = module.module_name or ''
    sessions_before = snapshot_class_sessions(module.id)
    assessments_before = snapshot_assessments(module.id)

    if data.get('module_code') is not None:
        module.module_code = _text(data['module_code'], 'Module code')
    if data.get('module_name') is not None:
        module.module_name = _text(data['module_name'], 'Module name')

    if data.get('is_year_module') is not None:
        module.is_year_module = bool(data['is_year_module'])
        if module.is_year_module:
            module.semester = 0
    semester = data.get('semester')
    if semester == 0:
        module.is_year_module = True
        module.semester = 0
    elif semester is not None and not module.is_year_module:
        if semester not in (1, 2):
            raise ServiceError('Semester must be 0, 1 or 2.')
        module.semester = semester

    touched_sessions = data.get('class_sessions') is not None
    touched_assessments = data.get('assessments') is not None

    ok, msg = validate_assessment_months(data.get('assessments'), module.semester, module.is_year_module)
    if not ok:
        raise ServiceError(msg)

    if touched_sessions:
        module.class_sessions = build_class_sessions(data['class_sessions'])
    if touched_assessments:
        module.assessments = build_assessments(data['assessments'])

    db.session.flush()

    class_changed = touched_sessions and schedule_changed(sessions_before, snapshot_class_sessions(module.id))
    assessment_changed = touched_assessments and schedule_changed(assessments_before,
                                                                  snapshot_assessments(module.id))
    code_changed = data.get('module_code') is not None and original_code != module.module_code
    name_changed = data.get('module_name') is not None and original_name != module.module_name

    created = []
    if class_changed:
        created.append(_module_notification(
            module, editor, 'ScheduleUpdate', 'Class schedule updated',
            f"The class timetable (venues/days/times) for {module.module_code} has changed. "
            f"Please check your schedule."))
    if assessment_changed:
        created.append(_module_notification(
            module, editor, 'ScheduleUpdate', 'Assessment schedule updated',
            f"The assessment schedule for {module.module_code} has changed. "
            f"Please check your assessment dates."))
    if not created and (code_changed or name_changed):
        changes = []
        if code_changed:
            changes.append(f"{original_code} → {module.module_code}")
        if name_changed:
            changes.append(f"{original_name} → {module.module_name}")
        created.append(_module_notification(
            module, editor, 'ModuleUpdate', 'Module details updated',
            f"The code/name for {' / '.join(changes)} has changed."))

    db.session.add_all(created)
    db.session.commit()
    return created


def modules_for_semester(user, semester):
    in_semester = or_(Module.semester == semester, Module.semester == 0, Module.is_year_module.is_(True))
    query = Module.query.filter(in_semester)
    if not user.has_role('Admin'):
        query = query.join(UserModule, UserModule.module_id == Module.id).filter(UserModule.user_id == user.id)
    return query.order_by(Module.module_code).all()


def coordinator_modules_grouped(user, semester):
    in_semester = or_(Module.semester == semester, Module.semester == 0, Module.is_year_module.is_(True))
    modules = Module.query.filter(in_semester).order_by(Module.module_code).all()
    managed = set(user.module_ids('Coordinator'))
    assigned = [m for m in modules if m.id in managed]
    other = [m for m in modules if m.id not in managed]
    return assigned, other


def assigned_modules(user):
    ids = user.module_ids('Lecturer', 'Coordinator')
    if not ids:
        return []
    return Module.query.filter(Module.id.in_(ids)).order_by(Module.module_code).all()


# ==========================================================
# Scheduler: lab bookings, class and assessment views
# ==========================================================

def _parse_booking(data):
    week_day = _text(data.get('week_days'), 'Week day') or ''
    if week_day not in LAB_WEEK_DAYS:
        raise ServiceError('Week day must be one of Monday to Saturday.')
    try:
        start = parse_time(data.get('start_time'))
        end = parse_time(data.get('end_time'))
        booking_date = parse_date(data.get('booking_date'))
    except ValueError as e:
        raise ServiceError(str(e))
    if start is None or end is None or booking_date is None:
        raise ServiceError('Booking date, start time and end time are required.')
    if start >= end:
        raise ServiceError('Start time must be before end time.')
    return week_day, start, end, booking_date


def find_booking_conflict(week_day, start, end, booking_date):
    return LabBooking.query.filter(
        LabBooking.booking_date == booking_date,
        LabBooking.week_days == week_day,
        LabBooking.start_time < end,
        LabBooking.end_time > start,
    ).first()


def create_lab_booking(owner_username, data, creator):
    """Stores a lab booking for `owner_username` and broadcasts the lab timetable change."""
    week_day, start, end, booking_date = _parse_booking(data)
    if find_booking_conflict(week_day, start, end, booking_date):
        raise ServiceError('Booking overlaps with an existing entry.')

    booking = LabBooking(user_name=owner_username, week_days=week_day, start_time=start, end_time=end,
                         booking_date=booking_date, description=_text(data.get('description'), 'Description'))
    db.session.add(booking)

    on_behalf = f" (for {owner_username})" if owner_username != creator.username else ''
    publish_notification(
        creator, 'ScheduleUpdate', 'Lab schedule updated',
        f"Lab schedule updated{on_behalf}: {week_day} {format_time(start)}-{format_time(end)} "
        f"on {booking_date.isoformat()}.",
        audience='All', commit=False)
    db.session.commit()
    current_app.logger.info(f"Lab booking {booking.id} created for {owner_username} by {creator.username}")
    return booking


def list_lab_bookings(username=None):
    """Bookings joined to their owner's names; all of them by date, or one user's newest first."""
    query = db.session.query(LabBooking, User).outerjoin(User, User.username == LabBooking.user_name)
    if username is not None:
        query = query.filter(LabBooking.user_name == username).order_by(LabBooking.booking_date.desc())
    else:
        query = query.order_by(LabBooking.booking_date, LabBooking.start_time)
    return query.all()


def delete_lab_booking(booking_id, user):
    booking = db.session.get(LabBooking, booking_id)
    if booking is None:
        raise ServiceError('Booking not found.', 404)
    privileged = user.has_any_role('Coordinator', 'Admin')
    if not privileged and booking.user_name != user.username:
        raise ServiceError('You do not have permission to delete this booking.', 403)
    db.session.delete(booking)
    db.session.commit()


def class_schedule_for_user(user, semester):
    rows = db.session.query(ClassSession, Module) \
        .join(Module, Module.id == ClassSession.module_id) \
        .join(UserModule, UserModule.module_id == Module.id) \
        .filter(UserModule.user_id == user.id,
                or_(Module.semester == semester, Module.semester == 0, Module.is_year_module.is_(True))) \
        .order_by(ClassSession.start_time, ClassSession.end_time, ClassSession.week_day) \
        .all()
    return [{
        'module_code': module.module_code,
        'module_name': module.module_name,
        'semester': module.semester,
        'venue': session.venue,
        'week_day': session.week_day,
        'start_time': format_time(session.start_time),
        'end_time': format_time(session.end_time),
    } for session, module in rows]


def semester_window(semester, year=None):
    year = year or date.today().year
    if semester == 1:
        return date(year, 1, 1), date(year, 6, 30)
    return date(year, 7, 1), date(year, 12, 31)


def assessment_schedule_for_user(user, semester, year=None):
    start, end = semester_window(semester, year)
    module_ids = user.module_ids()
    if not module_ids:
        return []
    assessments = Assessment.query.filter(Assessment.module_id.in_(module_ids),
                                          Assessment.date >= start, Assessment.date <= end).all()
    results = [a.to_dict() for a in assessments]
    results.sort(key=lambda a: (a['date'], a['start_time'] or a['due_time'] or '99:99'))
    return results


# ==========================================================
# Documents and repository
# ==========================================================

def validate_document_file(file_storage):
    """Returns (ok, message) for the document allow-list (extension and MIME type)."""
    if file_storage is None or not file_storage.filename:
        return False, 'No file provided.'
    ext = os.path.splitext(file_storage.filename)[1].lower()
    if ext not in ALLOWED_DOCUMENT_MIMES:
        return False, DOCUMENT_TYPE_ERROR
    content_type = (file_storage.mimetype or '').lower()
    if not content_type or content_type == 'application/octet-stream':
        return True, None
    if ext == '.txt' and content_type.startswith('text/'):
        return True, None
    if content_type not in ALLOWED_DOCUMENT_MIMES[ext]:
        return False, DOCUMENT_TYPE_ERROR
    return True, None


def upload_document(user, title, file_storage, module_id=None, source='Module'):
    """
    Stores the file and its metadata row, then notifies the module (or the
    whole portal for repository uploads) in the same transaction.
    """
    ok, msg = validate_document_file(file_storage)
    if not ok:
        raise ServiceError(msg, 415 if msg == DOCUMENT_TYPE_ERROR else 400)

    module = None
    if source == 'Module':
        if module_id is None:
            raise ServiceError('Module id is required for module uploads.')
        module = db.session.get(Module, module_id)
        if module is None:
            raise ServiceError('Module not found.', 404)
        if user.has_role('Lecturer') and not user.has_any_role('Coordinator', 'Admin'):
            if module_id not in user.module_ids('Lecturer', 'Coordinator'):
                raise ServiceError('Lecturers can only upload to modules they are assigned to.', 403)
    else:
        module_id = None

    try:
        file_url = save_upload(file_storage, DOCUMENT_FOLDER)
    except StorageError as e:
        raise ServiceError('Upload failed.', 500) from e

    document = Document(
        title=title.strip(),
        file_path=file_url,
        uploaded_at=utcnow(),
        uploaded_by=user.role_names[0] if user.roles else 'Unknown',
        uploaded_by_user_name=user.username,
        module_id=module_id,
        source=source,
    )
    db.session.add(document)
    try:
        if module is not None:
            # The upload was authorised above, Coordinators and Admins included
            db.session.add(_module_notification(
                module, user, 'DocumentUpload', 'New Module Document Uploaded',
                f"A new document has been uploaded with title: {document.title}."))
        else:
            publish_notification(user, 'RepositoryUpdate', 'Internal Repository Updated',
                                 f"A new document was uploaded by {user.username} to the internal repository.",
                                 commit=False)
        db.session.commit()
    except (ServiceError, SQLAlchemyError):
        db.session.rollback()
        delete_upload(file_url)
        raise
    current_app.logger.info(f"Document {document.id} uploaded by {user.username} ({source})")
    return document


def module_documents_query(module_id):
    """Documents of one module, or of every module when module_id is 0."""
    query = Document.query
    if module_id > 0:
        query = query.filter(Document.module_id == module_id)
    else:
        query = query.filter(Document.module_id.isnot(None))
    return query.order_by(Document.uploaded_at.desc(), Document.id.desc())


def repository_documents_query():
    return Document.query.filter(Document.source == 'Repository') \
        .order_by(Document.uploaded_at.desc(), Document.id.desc())


def delete_document(document_id, user):
    """Only the uploader may delete a document, whatever their role."""
    document = db.session.get(Document, document_id)
    if document is None:
        raise ServiceError('Document not found.', 404)
    if document.uploaded_by_user_name != user.username:
        raise ServiceError('You do not have permission to delete this document.', 403)
    file_url = document.file_path
    db.session.delete(document)
    db.session.commit()
    delete_upload(file_url)


def add_external_repository(user, label, link_url, image=None):
    label = (label or '').strip()
    link_url = (link_url or '').strip()
    if not label or not link_url:
        raise ServiceError('Label and link URL are required.')

    image_url = DEFAULT_REPOSITORY_IMAGE
    if image is not None and image.filename:
        try:
            image_url = save_upload(image, REPOSITORY_IMAGE_FOLDER)
        except StorageError as e:
            raise ServiceError('Image upload failed.', 500) from e

    repo = ExternalRepository(label=label, link_url=link_url, image_url=image_url)
    db.session.add(repo)
    publish_notification(user, 'RepositoryUpdate', 'External Repository Link Added',
                         f"A new external repository link \"{label}\" was added.",
                         audience='All', commit=False)
    db.session.commit()
    return repo


def delete_external_repository(repo_id):
    repo = db.session.get(ExternalRepository, repo_id)
    if repo is None:
        raise ServiceError('Repository link not found or already removed.', 404)
    image_url = repo.image_url
    db.session.delete(repo)
    db.session.commit()
    if image_url != DEFAULT_REPOSITORY_IMAGE:
        delete_upload(image_url)


# ==========================================================
# FAQ
# ==========================================================

def validate_faq(question, answer):
    question = _text(question, 'Question') or ''
    answer = _text(answer, 'Answer') or ''
    if not question:
        return False, 'Question cannot be empty or whitespace.'
    if not answer:
        return False, 'Answer cannot be empty or whitespace.'
    if len(question) < FAQ_MIN_CHARS:
        return False, f"Question is too short. Minimum {FAQ_MIN_CHARS} characters required."
    if len(answer) < FAQ_MIN_CHARS:
        return False, f"Answer is too short. Minimum {FAQ_MIN_CHARS} characters required."
    if len(question) > FAQ_MAX_CHARS:
        return False, f"Question is too long. Maximum {FAQ_MAX_CHARS} characters allowed."
    if len(answer) > FAQ_MAX_CHARS:
        return False, f"Answer is too long. Maximum {FAQ_MAX_CHARS} characters allowed."
    return True, None


def save_faq(user, question, answer, entry=None):
    """Creates a FAQ entry, or updates `entry`, and announces it."""
    ok, msg = validate_faq(question, answer)
    if not ok:
        raise ServiceError(msg)

    question, answer = question.strip(), answer.strip()
    if entry is None:
        entry = FaqEntry(question=question, answer=answer, last_updated=utcnow())
        db.session.add(entry)
        title, text = 'FAQ Created', f"A new FAQ was posted: {question}"
    else:
        entry.question, entry.answer, entry.last_updated = question, answer, utcnow()
        title, text = 'FAQ Updated', f"An FAQ was updated: {question}"

    publish_notification(user, 'FaqUpdate', title, text, audience='All', commit=False)
    db.session.commit()
    return entry


def faq_query():
    return FaqEntry.query.order_by(FaqEntry.last_updated.desc(), FaqEntry.id.desc())


# ==========================================================
# Accounts and user administration
# ==========================================================

def authenticate(username, password):
    """Returns (user, errors). `errors` maps field names to messages when login fails."""
    username = _text(username, 'User name') or ''
    if not username:
        return None, {'username': 'User name is required.'}
    user = find_user(username)
    if user is None:
        return None, {'username': 'User number not found.'}
    if not isinstance(password, str) or not user.check_password(password):
        return None, {'password': 'Invalid password.'}
    return user, {}


def _distinct_module_ids(*lists):
    seen = []
    for ids in lists:
        for module_id in _id_list(ids, 'Semester modules'):
            if module_id not in seen:
                seen.append(module_id)
    return seen


def _check_modules_exist(module_ids):
    if not module_ids:
        return
    found = {m.id for m in Module.query.filter(Module.id.in_(module_ids)).all()}
    missing = [str(i) for i in module_ids if i not in found]
    if missing:
        raise ServiceError(f"Module not found: {', '.join(missing)}.")


def _find_role(name):
    if not name:
        return None
    return Role.query.filter(func.lower(Role.name) == str(name).strip().lower()).first()


def register_user(data):
    """
    Creates a user with one role and its module links in a single
    transaction. Nothing is kept when any step fails.
    """
    username = _text(data.get('username'), 'Username') or ''
    email = (_text(data.get('email'), 'Email') or '').lower()
    if not username or not email:
        raise ServiceError('Username and email are required.')

    role_name = _text(data.get('role'), 'Role') or ''
    if role_name.lower() != 'admin' and not STUDENT_NUMBER_RE.match(username):
        raise ServiceError('Username must be exactly 10 digits.')

    existing = User.query.filter(or_(func.lower(User.username) == username.lower(),
                                     func.lower(User.email) == email)).first()
    if existing is not None:
        if existing.username.lower() == username.lower():
            raise ServiceError(f"User already exists with user number '{username}'.", 409)
        raise ServiceError(f"User already exists with email '{email}'.", 409)

    password = data.get('password')
    if not password:
        raise ServiceError('Password is required.')
    if not isinstance(password, str):
        raise ServiceError('Password must be a string.')
    first_name = _text(data.get('first_name'), 'First name')
    last_name = _text(data.get('last_name'), 'Last name')
    if not first_name or not last_name:
        raise ServiceError('First name and last name are required.')

    role = _find_role(role_name)
    if role is None:
        raise ServiceError('Invalid role')

    module_ids = _distinct_module_ids(data.get('semester1_module_ids'), data.get('semester2_module_ids'))
    _check_modules_exist(module_ids)

    try:
        user = User(username=username, email=email, first_name=first_name,
                    last_name=last_name, join_date=utcnow().date())
        user.set_password(password)
        user.roles.append(role)
        db.session.add(user)
        db.session.flush()
        for module_id in module_ids:
            db.session.add(UserModule(user_id=user.id, module_id=module_id, role_context=role.name))
        db.session.commit()
    except SQLAlchemyError as e:
        db.session.rollback()
        current_app.logger.error(f"Error registering user {username}: {e}", exc_info=True)
        raise ServiceError('Failed to register user. Please try again.')

    current_app.logger.info(f"User {username} registered as {role.name}")
    return user


def update_user_modules(user, semester1_ids, semester2_ids):
    module_ids = _distinct_module_ids(semester1_ids, semester2_ids)
    _check_modules_exist(module_ids)
    role_context = user.role_names[0] if user.roles else ''
    user.module_links.clear()
    db.session.flush()
    user.module_links.extend(UserModule(module_id=module_id, role_context=role_context)
                             for module_id in module_ids)
    db.session.commit()


def update_user_roles(user, role_names):
    roles = []
    for name in role_names or []:
        role = _find_role(name)
        if role is None:
            raise ServiceError(f"Invalid role '{name}'.")
        if role not in roles:
            roles.append(role)
    user.roles = roles
    db.session.commit()


def update_user(user, data):
    email = (_text(data.get('email'), 'Email') or '').lower()
    if not email:
        raise ServiceError('Email is required.')
    clash = User.query.filter(func.lower(User.email) == email, User.id != user.id).first()
    if clash is not None:
        raise ServiceError(f"User already exists with email '{email}'.", 409)

    first_name = _text(data.get('first_name'), 'First name')
    last_name = _text(data.get('last_name'), 'Last name')
    new_password = _text(data.get('update_password'), 'Password')
    roles = data.get('roles')
    if roles is not None and not isinstance(roles, list):
        raise ServiceError('Roles must be a list of role names.')

    if first_name is not None:
        user.first_name = first_name
    if last_name is not None:
        user.last_name = last_name
    user.email = email
    if new_password:
        user.set_password(data['update_password'])
    if roles is not None:
        update_user_roles(user, roles)
    db.session.commit()


def delete_user(user):
    username = user.username
    db.session.delete(user)
    db.session.commit()
    current_app.logger.info(f"User {username} deleted")


def clean_old_notifications(days_old=30):
    """Deletes notifications older than `days_old` days. Returns the count, or None when the job failed."""
    cutoff = utcnow() - timedelta(days=days_old)
    try:
        old = Notification.query.filter(Notification.created_at < cutoff).all()
        for notification in old:
            db.session.delete(notification)
        db.session.commit()
    except SQLAlchemyError as e:
        db.session.rollback()
        current_app.logger.error(f"Error cleaning notifications older than {days_old} days: {e}", exc_info=True)
        return None
    current_app.logger.info(f"Deleted {len(old)} notifications older than {days_old} days")
    return len(old)
