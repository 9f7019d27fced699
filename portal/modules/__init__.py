from flask import Blueprint

bp = Blueprint('modules', __name__)

from portal.modules import routes
