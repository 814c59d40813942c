from functools import wraps

from flask import jsonify, request, current_app
from flask_jwt_extended import verify_jwt_in_request
from flask_jwt_extended.exceptions import CSRFError


def _preview_token(token_value):
    """Return a shortened preview of a token for logging without leaking secrets."""
    if not token_value:
        return None
    cleaned = str(token_value)
    if len(cleaned) <= 8:
        return '***'
    return f"{cleaned[:4]}...{cleaned[-4:]}"


def _is_production():
    return current_app.config.get('ENV') == 'production'


def api_success(data=None, message=None, status_code=200):
    """
    Standardized success response format for API v2

    Args:
        data: The data to return (dict, list, or None)
        message: Optional message for the UI toast
        status_code: HTTP status code (default: 200)

    Returns:
        Flask response with JSON and status code
    """
    response = {
        "success": True,
        "data": data if data is not None else {}
    }
    if message:
        response["message"] = message
    return jsonify(response), status_code


def api_error(message="An error occurred", errors=None, status_code=400):
    """
    Standardized error response format for API v2

    Args:
        message: Error message to display
        errors: Optional dict/list of detailed errors
        status_code: HTTP status code (default: 400)

    Returns:
        Flask response with JSON and status code
    """
    response = {
        "success": False,
        "message": message
    }
    if errors:
        response["errors"] = errors
    return jsonify(response), status_code


def api_error_from(exc):
    """Render a SpendWiseError with its code, retry hint and HTTP status."""
    return api_error(exc.message, errors=exc.to_dict(), status_code=exc.status_code)


def _verify_jwt_prefer_header():
    auth_header = request.headers.get('Authorization', '') or ''
    current_app.logger.debug(
        "API v2 JWT guard: path=%s method=%s auth_header=%s access_cookie=%s",
        request.path,
        request.method,
        _preview_token(auth_header),
        _preview_token(request.cookies.get(current_app.config.get('JWT_ACCESS_COOKIE_NAME', 'access_token'))),
    )
    if auth_header.lower().startswith('bearer '):
        verify_jwt_in_request(locations=["headers"])
    else:
        verify_jwt_in_request()


def _enforce_production_security():
    """Reject plain-HTTP API calls when secure cookies are on."""
    if not current_app.config.get("JWT_COOKIE_SECURE", False):
        return None

    forwarded_proto = (request.headers.get('X-Forwarded-Proto') or '').lower()
    if not request.is_secure and forwarded_proto != 'https':
        return api_error(
            "Secure connection required for API v2 in production",
            status_code=400
        )
    return None


def jwt_required_secure():
    """
    JWT guard for API v2 routes.

    Verifies the token (Authorization header first, then cookies) and, in
    production, refuses requests that did not arrive over HTTPS. Any
    verification failure becomes a JSON 401.
    """
    def decorator(f):
        @wraps(f)
        def decorated_function(*args, **kwargs):
            try:
                _verify_jwt_prefer_header()
            except CSRFError as csrf_error:
                current_app.logger.warning(f"API v2 JWT security check failed: {str(csrf_error)}")
                return api_error(
                    "Authentication requires CSRF token",
                    errors={
                        "auth": "Missing CSRF token. Include X-CSRF-TOKEN when using cookie authentication or send the JWT in the Authorization header."
                    },
                    status_code=401
                )
            except Exception as e:
                current_app.logger.warning(f"API v2 JWT security check failed: {str(e)}")
                return api_error(
                    "Authentication required",
                    errors={"auth": "Invalid or missing authentication token"},
                    status_code=401
                )

            if _is_production():
                enforcement_error = _enforce_production_security()
                if enforcement_error:
                    return enforcement_error

            return f(*args, **kwargs)

        return decorated_function
    return decorator


def validate_json_request_secure(required_fields=None):
    """
    Validate that the request carries a JSON object with the given fields

    Args:
        required_fields: List of required field names

    Returns:
        tuple: (data, error_response) - data will be None if error
    """
    if not request.is_json:
        return None, api_error(
            "Request must include JSON body with Content-Type: application/json",
            status_code=400
        )

    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        return None, api_error("Request body must contain valid JSON", status_code=400)

    if required_fields:
        missing_fields = [
            field for field in required_fields
            if field not in data or data[field] is None or data[field] == ''
        ]
        if missing_fields:
            return None, api_error(
                "Missing required fields",
                errors=dict.fromkeys(missing_fields, "Required"),
                status_code=400
            )

    if _is_production():
        # Field names only, never values
        current_app.logger.info(
            f"API v2 JSON request: {request.method} {request.path} "
            f"fields: {sorted(data.keys())}"
        )

    return data, None
