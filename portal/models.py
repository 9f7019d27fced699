# FILE: portal/models.py
from datetime import datetime, timedelta, timezone
from flask import current_app
from flask_login import UserMixin
import jwt
from werkzeug.security import generate_password_hash, check_password_hash
from portal import db, login
from portal.utils import format_date, format_datetime, format_time

ROLE_NAMES = ['Admin', 'Student', 'Lecturer', 'Coordinator']
STAFF_ROLES = ('Lecturer', 'Coordinator', 'Admin')
DEFAULT_REPOSITORY_IMAGE = '/assets/database.png'


def utcnow():
    return datetime.now(timezone.utc).replace(tzinfo=None)


# --- Association tables ---
user_roles = db.Table('user_roles',
    db.Column('user_id', db.Integer, db.ForeignKey('user.id'), primary_key=True),
    db.Column('role_id', db.Integer, db.ForeignKey('role.id'), primary_key=True)
)

class Role(db.Model):
    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(64), unique=True, nullable=False)
    users = db.relationship('User', secondary=user_roles, back_populates='roles')
    def __repr__(self): return self.name

class User(UserMixin, db.Model):
    id = db.Column(db.Integer, primary_key=True)
    username = db.Column(db.String(64), index=True, unique=True, nullable=False)
    email = db.Column(db.String(120), index=True, unique=True, nullable=False)
    password_hash = db.Column(db.String(256))
    first_name = db.Column(db.String(64), nullable=False)
    last_name = db.Column(db.String(64), nullable=False)
    join_date = db.Column(db.Date, nullable=True)

    roles = db.relationship('Role', secondary=user_roles, back_populates='users')
    module_links = db.relationship('UserModule', back_populates='user', cascade='all, delete-orphan')
    notification_reads = db.relationship('NotificationRead', back_populates='user', cascade='all, delete-orphan')

    @property
    def role_names(self):
        return [role.name for role in self.roles]

    def set_password(self, password):
        self.password_hash = generate_password_hash(password)

    def check_password(self, password):
        if self.password_hash:
            return check_password_hash(self.password_hash, password)
        return False

    def has_role(self, role_name):
        """Helper function to check if a user has a specific role."""
        return any(role.name == role_name for role in self.roles)

    def has_any_role(self, *role_names):
        return any(self.has_role(name) for name in role_names)

    def module_ids(self, *role_contexts):
        """Ids of linked modules, optionally only links made under the given role contexts."""
        return [link.module_id for link in self.module_links
                if not role_contexts or link.role_context in role_contexts]

    def get_token(self):
        expires = datetime.now(timezone.utc) + timedelta(seconds=current_app.config['TOKEN_MAX_AGE'])
        return jwt.encode({'user_id': self.id, 'exp': expires}, current_app.config['SECRET_KEY'], algorithm='HS256')

    @staticmethod
    def verify_token(token):
        try:
            payload = jwt.decode(token, current_app.config['SECRET_KEY'], algorithms=['HS256'])
        except jwt.ExpiredSignatureError:
            current_app.logger.info("Rejected expired bearer token")
            return None
        except jwt.InvalidTokenError:
            return None
        return db.session.get(User, payload.get('user_id'))

    def to_dict(self, include_modules=False, token=None):
        data = {
            'username': self.username,
            'first_name': self.first_name,
            'last_name': self.last_name,
            'email': self.email,
            'roles': self.role_names,
            'join_date': format_date(self.join_date),
        }
        if include_modules:
            data['modules'] = [link.module.to_summary() for link in self.module_links]
        if token is not None:
            data['token'] = token
        return data

    def __repr__(self):
        return f'<User {self.username}>'

class UserModule(db.Model):
    __tablename__ = 'user_module'
    user_id = db.Column(db.Integer, db.ForeignKey('user.id'), primary_key=True)
    module_id = db.Column(db.Integer, db.ForeignKey('module.id'), primary_key=True)
    role_context = db.Column(db.String(32), nullable=False, default='')  # e.g. 'Lecturer', 'Coordinator'

    user = db.relationship('User', back_populates='module_links')
    module = db.relationship('Module', back_populates='user_links')

    def __repr__(self):
        return f'<UserModule U:{self.user_id} M:{self.module_id} as {self.role_context}>'

class Module(db.Model):
    id = db.Column(db.Integer, primary_key=True)
    module_code = db.Column(db.String(20), nullable=False, index=True)
    module_name = db.Column(db.String(150), nullable=False)
    semester = db.Column(db.Integer, nullable=False, default=1)  # 0 = year module
    is_year_module = db.Column(db.Boolean, nullable=False, default=False)

    class_sessions = db.relationship('ClassSession', back_populates='module', cascade='all, delete-orphan',
                                     order_by='ClassSession.id')
    assessments = db.relationship('Assessment', back_populates='module', cascade='all, delete-orphan',
                                  order_by='Assessment.date')
    user_links = db.relationship('UserModule', back_populates='module', cascade='all, delete-orphan')
    documents = db.relationship('Document', back_populates='module', cascade='all, delete-orphan')
    notifications = db.relationship('Notification', back_populates='module', cascade='all, delete-orphan')

    def to_summary(self):
        return {
            'id': self.id,
            'module_code': self.module_code,
            'module_name': self.module_name,
            'semester': self.semester,
        }

    def to_dict(self, include_assessments=False):
        data = self.to_summary()
        data['is_year_module'] = self.is_year_module
        data['class_sessions'] = [s.to_dict() for s in self.class_sessions]
        if include_assessments:
            data['assessments'] = [a.to_dict() for a in self.assessments]
        return data

    def __repr__(self):
        return f'<Module {self.module_code}>'

class ClassSession(db.Model):
    id = db.Column(db.Integer, primary_key=True)
    module_id = db.Column(db.Integer, db.ForeignKey('module.id'), nullable=False, index=True)
    venue = db.Column(db.String(100), nullable=False)
    week_day = db.Column(db.String(16), nullable=False)  # 'Monday'
    start_time = db.Column(db.Time, nullable=False)
    end_time = db.Column(db.Time, nullable=False)

    module = db.relationship('Module', back_populates='class_sessions')

    def to_dict(self):
        return {
            'id': self.id,
            'venue': self.venue,
            'week_day': self.week_day,
            'start_time': format_time(self.start_time),
            'end_time': format_time(self.end_time),
        }

    def __repr__(self):
        return f'<ClassSession {self.venue} {self.week_day} {self.start_time}-{self.end_time}>'

class Assessment(db.Model):
    id = db.Column(db.Integer, primary_key=True)
    module_id = db.Column(db.Integer, db.ForeignKey('module.id'), nullable=False, index=True)
    title = db.Column(db.String(150), nullable=False)
    description = db.Column(db.Text, nullable=True)
    date = db.Column(db.Date, nullable=False)
    start_time = db.Column(db.Time, nullable=True)
    end_time = db.Column(db.Time, nullable=True)
    due_time = db.Column(db.Time, nullable=True)  # untimed assessments only have a due time
    venue = db.Column(db.String(100), nullable=True)
    is_timed = db.Column(db.Boolean, nullable=False, default=False)

    module = db.relationship('Module', back_populates='assessments')

    def to_dict(self):
        return {
            'id': self.id,
            'title': self.title,
            'description': self.description,
            'date': format_date(self.date),
            'start_time': format_time(self.start_time),
            'end_time': format_time(self.end_time),
            'due_time': format_time(self.due_time),
            'venue': self.venue,
            'is_timed': self.is_timed,
            'module_code': self.module.module_code if self.module else None,
        }

    def __repr__(self):
        return f'<Assessment {self.title} on {self.date}>'

class Notification(db.Model):
    id = db.Column(db.Integer, primary_key=True)
    type = db.Column(db.String(32), nullable=False, default='General', index=True)
    title = db.Column(db.String(255), nullable=False)
    message = db.Column(db.Text, nullable=False, default='')
    image_path = db.Column(db.String(500), nullable=True)
    created_by = db.Column(db.String(64), nullable=False, index=True)  # username
    created_at = db.Column(db.DateTime, nullable=False, default=utcnow, index=True)
    module_id = db.Column(db.Integer, db.ForeignKey('module.id'), nullable=True, index=True)
    audience = db.Column(db.String(20), nullable=False, default='All')  # All | Students | Staff | ModuleStudents

    module = db.relationship('Module', back_populates='notifications')
    reads = db.relationship('NotificationRead', back_populates='notification', cascade='all, delete-orphan')

    def to_dict(self, is_read=False):
        return {
            'id': self.id,
            'type': self.type,
            'title': self.title,
            'message': self.message,
            'image_path': self.image_path,
            'created_by': self.created_by,
            'created_at': format_datetime(self.created_at),
            'module_id': self.module_id,
            'audience': self.audience,
            'is_read': is_read,
        }

    def __repr__(self):
        return f'<Notification {self.type} {self.title!r}>'

class NotificationRead(db.Model):
    id = db.Column(db.Integer, primary_key=True)
    notification_id = db.Column(db.Integer, db.ForeignKey('notification.id'), nullable=False, index=True)
    user_id = db.Column(db.Integer, db.ForeignKey('user.id'), nullable=False, index=True)
    read_at = db.Column(db.DateTime, nullable=False, default=utcnow)

    notification = db.relationship('Notification', back_populates='reads')
    user = db.relationship('User', back_populates='notification_reads')

    __table_args__ = (db.UniqueConstraint('notification_id', 'user_id', name='_notification_user_read_uc'),)

    def __repr__(self):
        return f'<NotificationRead N:{self.notification_id} U:{self.user_id}>'

class LabBooking(db.Model):
    id = db.Column(db.Integer, primary_key=True)
    user_name = db.Column(db.String(64), nullable=False, index=True)  # matched to User.username, no FK
    week_days = db.Column(db.String(16), nullable=False)
    start_time = db.Column(db.Time, nullable=False)
    end_time = db.Column(db.Time, nullable=False)
    booking_date = db.Column(db.Date, nullable=False, index=True)
    description = db.Column(db.Text, nullable=True)

    def to_dict(self, owner=None):
        return {
            'id': self.id,
            'user_name': self.user_name,
            'week_days': self.week_days,
            'start_time': format_time(self.start_time),
            'end_time': format_time(self.end_time),
            'booking_date': format_date(self.booking_date),
            'description': self.description,
            'first_name': owner.first_name if owner else None,
            'last_name': owner.last_name if owner else None,
        }

    def __repr__(self):
        return f'<LabBooking {self.user_name} {self.booking_date} {self.start_time}-{self.end_time}>'

class Document(db.Model):
    id = db.Column(db.Integer, primary_key=True)
    title = db.Column(db.String(255), nullable=False)
    file_path = db.Column(db.String(500), nullable=False)
    uploaded_at = db.Column(db.DateTime, nullable=False, default=utcnow)
    uploaded_by = db.Column(db.String(32), nullable=False, default='Unknown')  # role label
    uploaded_by_user_name = db.Column(db.String(64), nullable=False, index=True)
    module_id = db.Column(db.Integer, db.ForeignKey('module.id'), nullable=True, index=True)
    source = db.Column(db.String(20), nullable=False, default='Module')  # Module | Repository

    module = db.relationship('Module', back_populates='documents')

    def to_dict(self):
        return {
            'id': self.id,
            'title': self.title,
            'file_path': self.file_path,
            'uploaded_at': format_datetime(self.uploaded_at),
            'uploaded_by': self.uploaded_by,
            'uploaded_by_user_name': self.uploaded_by_user_name,
            'module_id': self.module_id,
            'source': self.source,
        }

    def __repr__(self):
        return f'<Document {self.title}>'

class ExternalRepository(db.Model):
    __tablename__ = 'repository'
    id = db.Column(db.Integer, primary_key=True)
    label = db.Column(db.String(150), nullable=False)
    link_url = db.Column(db.String(500), nullable=False)
    image_url = db.Column(db.String(500), nullable=True, default=DEFAULT_REPOSITORY_IMAGE)

    def to_dict(self):
        return {'id': self.id, 'label': self.label, 'link_url': self.link_url, 'image_url': self.image_url}

    def __repr__(self):
        return f'<ExternalRepository {self.label}>'

class FaqEntry(db.Model):
    id = db.Column(db.Integer, primary_key=True)
    question = db.Column(db.Text, nullable=False)
    answer = db.Column(db.Text, nullable=False, default='')
    last_updated = db.Column(db.DateTime, nullable=False, default=utcnow, onupdate=utcnow)

    def to_dict(self):
        return {
            'id': self.id,
            'question': self.question,
            'answer': self.answer,
            'last_updated': format_datetime(self.last_updated),
        }

    def __repr__(self):
        return f'<FaqEntry {self.id}>'


def ensure_roles():
    """Creates the portal roles that are missing. Safe to call on every start."""
    existing = {role.name for role in Role.query.all()}
    missing = [name for name in ROLE_NAMES if name not in existing]
    for name in missing:
        db.session.add(Role(name=name))
    if missing:
        db.session.commit()


@login.user_loader
def load_user(id):
    return db.session.get(User, int(id))

@login.request_loader
def load_user_from_request(request):
    auth_header = request.headers.get('Authorization', '')
    if auth_header.startswith('Bearer '):
        return User.verify_token(auth_header[len('Bearer '):].strip())
    return None
