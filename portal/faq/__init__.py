from flask import Blueprint

bp = Blueprint('faq', __name__)

from portal.faq import routes
