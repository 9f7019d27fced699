# FILE: portal/seed.py
import json
import os

from flask import current_app

from portal import db
from portal.models import (ExternalRepository, FaqEntry, LabBooking, Module, Notification, Role, User,
                           UserModule, ensure_roles, utcnow)
from portal.services import build_assessments, build_class_sessions
from portal.utils import parse_date, parse_time

SEED_FILES = {
    'modules': 'modules.json',
    'users': 'users.json',
    'faqs': 'faqs.json',
    'notifications': 'notifications.json',
    'lab_bookings': 'lab_bookings.json',
    'repositories': 'repositories.json',
    'assessments': 'assessments.json',
}


def _load(seed_dir, key):
    path = os.path.join(seed_dir, SEED_FILES[key])
    if not os.path.exists(path):
        current_app.logger.info(f"Seed file {path} not found, skipping")
        return None
    with open(path, encoding='utf-8') as f:
        return json.load(f)


def seed_modules(rows):
    for row in rows:
        is_year = bool(row.get('is_year_module')) or row.get('semester') == 0
        module = Module(module_code=row['module_code'], module_name=row['module_name'],
                        semester=0 if is_year else row.get('semester', 1), is_year_module=is_year)
        module.class_sessions = build_class_sessions(row.get('class_sessions'))
        module.assessments = build_assessments(row.get('assessments'))
        db.session.add(module)


def seed_assessments(rows):
    """Assessments listed separately, each naming its module by code."""
    for row in rows:
        module = Module.query.filter_by(module_code=row.get('module_code')).first()
        if module is None:
            continue
        module.assessments.extend(build_assessments([row]))


def seed_users(rows):
    roles = {role.name: role for role in Role.query.all()}
    for row in rows:
        username = (row.get('username') or '').strip()
        email = (row.get('email') or '').strip().lower()
        role = roles.get(row.get('role'))
        if not username or not email or role is None:
            continue
        user = User(username=username, email=email, first_name=row.get('first_name', ''),
                    last_name=row.get('last_name', ''),
                    join_date=parse_date(row.get('join_date')) or utcnow().date())
        user.set_password(row.get('password', 'Pa$$w0rd'))
        user.roles.append(role)
        if role.name != 'Admin':
            module_ids = []
            for module_id in (row.get('semester1_module_ids') or []) + (row.get('semester2_module_ids') or []):
                if module_id not in module_ids:
                    module_ids.append(module_id)
            user.module_links = [UserModule(module_id=i, role_context=role.name) for i in module_ids]
        db.session.add(user)


def seed_faqs(rows):
    for row in rows:
        db.session.add(FaqEntry(question=row['question'], answer=row.get('answer', ''), last_updated=utcnow()))


def seed_notifications(rows):
    for row in rows:
        db.session.add(Notification(type=row.get('type', 'General'), title=row['title'],
                                    message=row.get('message', ''), created_by=row.get('created_by', 'system'),
                                    created_at=utcnow(), module_id=row.get('module_id'),
                                    audience=row.get('audience', 'All')))


def seed_lab_bookings(rows):
    for row in rows:
        db.session.add(LabBooking(user_name=row['user_name'], week_days=row['week_days'],
                                  start_time=parse_time(row['start_time']), end_time=parse_time(row['end_time']),
                                  booking_date=parse_date(row['booking_date']), description=row.get('description')))


def seed_repositories(rows):
    for row in rows:
        db.session.add(ExternalRepository(label=row['label'], link_url=row['link_url'],
                                          image_url=row.get('image_url') or '/assets/database.png'))


# Order matters: users link to modules, assessments attach to modules by code
SEED_STEPS = [
    ('modules', Module, seed_modules),
    ('assessments', None, seed_assessments),
    ('users', User, seed_users),
    ('faqs', FaqEntry, seed_faqs),
    ('notifications', Notification, seed_notifications),
    ('lab_bookings', LabBooking, seed_lab_bookings),
    ('repositories', ExternalRepository, seed_repositories),
]


def seed_database(seed_dir=None):
    """
    Loads the JSON seed files in `seed_dir`. A table that already holds rows
    is left alone, and missing files are skipped. Returns the seeded keys.
    """
    seed_dir = seed_dir or current_app.config['SEED_DATA_DIR']
    ensure_roles()
    seeded = []
    modules_were_empty = Module.query.first() is None

    for key, model, step in SEED_STEPS:
        if model is not None and model.query.first() is not None:
            current_app.logger.info(f"{key} already seeded, skipping")
            continue
        if model is None and not modules_were_empty:
            continue
        rows = _load(seed_dir, key)
        if not rows:
            continue
        step(rows)
        db.session.commit()
        seeded.append(key)
        current_app.logger.info(f"Seeded {len(rows)} {key}")
    return seeded
