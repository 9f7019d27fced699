# FILE: portal/utils.py
import json
import math
from datetime import date, datetime, time

from flask import current_app, jsonify, request

WEEK_DAYS = ['Monday', 'Tuesday', 'Wednesday', 'Thursday', 'Friday', 'Saturday', 'Sunday']


def parse_time(value):
    """Accepts 'HH:MM' or 'HH:MM:SS' (or a time) and returns a time, None for blanks."""
    if value is None or isinstance(value, time):
        return value
    value = str(value).strip()
    if not value:
        return None
    for fmt in ('%H:%M:%S', '%H:%M'):
        try:
            return datetime.strptime(value, fmt).time()
        except ValueError:
            continue
    raise ValueError(f'Invalid time format: {value}')


def parse_date(value):
    if value is None or isinstance(value, date):
        return value
    value = str(value).strip()
    if not value:
        return None
    try:
        return date.fromisoformat(value[:10])
    except ValueError:
        raise ValueError(f'Invalid date format: {value}')


def format_time(value):
    return value.strftime('%H:%M') if value else None


def format_date(value):
    return value.isoformat() if value else None


def format_datetime(value):
    # Timestamps are stored as naive UTC
    return value.isoformat() + 'Z' if value else None


def get_page_args():
    page = request.args.get('page', 1, type=int) or 1
    page_size = request.args.get('page_size', current_app.config['DEFAULT_PAGE_SIZE'], type=int)
    page_size = max(1, min(page_size or 1, current_app.config['MAX_PAGE_SIZE']))
    return max(page, 1), page_size


def add_pagination_header(response, pagination):
    """Writes the Pagination header the client reads to drive its pager."""
    header = {
        'currentPage': pagination.page,
        'itemsPerPage': pagination.per_page,
        'totalItems': pagination.total,
        'totalPages': math.ceil(pagination.total / pagination.per_page) if pagination.per_page else 0,
    }
    response.headers['Pagination'] = json.dumps(header)
    response.headers['Access-Control-Expose-Headers'] = 'Pagination'
    return response


def form_error_response(form):
    """JSON 400 carrying the first validation message and every field error."""
    first = next((msgs[0] for msgs in form.errors.values() if msgs), 'Invalid data')
    return jsonify({'status': 'error', 'message': first, 'errors': form.errors}), 400


def get_json_object():
    """The request body when it is a JSON object, otherwise None."""
    data = request.get_json(silent=True)
    return data if isinstance(data, dict) else None
