from flask import Blueprint

bp = Blueprint('scheduler', __name__)

from portal.scheduler import routes
