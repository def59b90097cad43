from flask import Blueprint

ipc = Blueprint('ipc', __name__)

from pos_edge.ipc import views  # noqa: E402,F401
