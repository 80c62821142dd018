from flask import Blueprint

bp = Blueprint("workspace", __name__, url_prefix="/studio")

from . import routes  # noqa: E402,F401
