# FILE: portal/main/routes.py
from flask import current_app, jsonify, send_from_directory
from sqlalchemy import text

from portal import db
from portal.main import bp


@bp.route('/')
@bp.route('/api/health')
def health():
    db.session.execute(text('SELECT 1'))
    return jsonify({'status': 'ok'})


@bp.route('/uploads/<path:filename>')
def uploaded_file(filename):
    """Serves files kept by the local storage backend."""
    return send_from_directory(current_app.config['UPLOAD_FOLDER'], filename)
