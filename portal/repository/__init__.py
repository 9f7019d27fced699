from flask import Blueprint

bp = Blueprint('repository', __name__)

from portal.repository import routes
