from flask import Blueprint

api_v2 = Blueprint('api_v2', __name__, url_prefix='/api/v2')

# Import endpoint modules so their routes register on the blueprint
from . import (
    auth,
    password_resets
)
