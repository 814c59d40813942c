from functools import wraps
from flask import current_app, g, jsonify, request
from flask_jwt_extended import current_user, get_current_user, verify_jwt_in_request

def admin_required(f):
    @wraps(f)
    def decorated_function(*args, **kwargs):
        verify_jwt_in_request()
        if not current_user or not current_user.is_admin():
            current_app.logger.warning(
                'Admin access denied',
                extra={
                    'event': 'security_admin_denied',
                    'path': request.path,
                    'request_id': getattr(g, 'request_id', None),
                },
            )
            return jsonify({
                "success": False,
                "message": "You don't have permission to access this resource"
            }), 403
        return f(*args, **kwargs)
    return decorated_function

def optional_actor():
    """Resolve the caller from a JWT when one is sent; anonymous callers get None."""
    try:
        verify_jwt_in_request(optional=True)
    except Exception as e:
        current_app.logger.debug(f"Ignoring unusable token on public endpoint: {e}")
        return None
    return get_current_user()
