from flask import Blueprint

bp = Blueprint('errors', __name__)

from portal.errors import handlers
