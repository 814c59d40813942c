"""
API v2 password reset endpoints.

Public:
    POST /password-resets                  submit a self-service request
    POST /password-resets/fallback-match   login-time check for an approved request
    POST /password-resets/complete         finish the emailed reset-link flow

Admin only:
    GET  /password-resets                  every request, grouped by status
    GET  /password-resets/pending          review queue, newest first
    GET  /password-resets/<id>             one request
    POST /password-resets/<id>/approve     approve and email a reset link
    POST /password-resets/<id>/deny        deny
    POST /password-resets/manual           stage an approved password directly
"""

from flask import current_app, request
from flask_jwt_extended import get_current_user

from SpendWise.views.api_v2 import api_v2
from SpendWise.views.api_v2.utils import (
    api_success,
    api_error,
    api_error_from,
    jwt_required_secure,
    validate_json_request_secure
)
from SpendWise.middleware import admin_required, optional_actor
from SpendWise.exceptions import SpendWiseError
from SpendWise.controllers.password_reset import (
    approve_password_reset,
    complete_reset_link,
    deny_password_reset,
    fallback_match,
    get_all_password_reset_requests,
    get_password_reset_request,
    list_pending_password_resets,
    manual_password_reset,
    submit_password_reset_request
)

FAILED_TO_SUBMIT_MSG = "Failed to submit password reset request"
FAILED_TO_APPROVE_MSG = "Failed to approve request"
FAILED_TO_DENY_MSG = "Failed to deny password reset request"
FAILED_TO_RETRIEVE_MSG = "Failed to load password reset requests"
PASSWORDS_DO_NOT_MATCH_MSG = "Passwords do not match"
MAX_REASON_LENGTH = 500


def _server_error(prefix, exc):
    current_app.logger.exception(prefix, extra={'event': 'password_reset_api_error', 'path': request.path})
    return api_error(f"{prefix}: {str(exc)}", status_code=500)


def _passwords_match(data, field, confirm_field='confirm_password'):
    confirm = data.get(confirm_field)
    return confirm is None or confirm == data.get(field)


@api_v2.route('/password-resets', methods=['POST'])
def submit_password_reset_api():
    """
    Submit a password reset request for admin review

    Expected JSON body:
    {
        "username": "string" and/or "email": "string",
        "full_name": "string" (optional),
        "password": "string",
        "confirm_password": "string" (optional)
    }
    """
    data, error = validate_json_request_secure(['password'])
    if error:
        return error

    if not data.get('username') and not data.get('email'):
        return api_error(
            "Missing required fields",
            errors={"username": "Username or email is required"},
            status_code=400
        )
    if not _passwords_match(data, 'password'):
        return api_error(PASSWORDS_DO_NOT_MATCH_MSG, status_code=400)

    try:
        reset_request = submit_password_reset_request(
            optional_actor(),
            data['password'],
            username=data.get('username'),
            email=data.get('email'),
            full_name=data.get('full_name') or data.get('fullName')
        )
    except SpendWiseError as e:
        return api_error_from(e)
    except Exception as e:
        return _server_error(FAILED_TO_SUBMIT_MSG, e)

    return api_success(
        data={'request_id': reset_request.id, 'status': reset_request.status},
        message="Your password reset request has been submitted and will be reviewed by an administrator.",
        status_code=201
    )


@api_v2.route('/password-resets/fallback-match', methods=['POST'])
def fallback_match_api():
    """
    Check a failed login against the account's approved reset request

    Expected JSON body:
    {
        "identity": "username or email",
        "password": "string"
    }

    Always 200; ``match``/``updated`` tell the login form what happened.
    """
    data, error = validate_json_request_secure(['identity', 'password'])
    if error:
        return error

    try:
        outcome = fallback_match(str(data['identity']).strip(), data['password'])
    except Exception as e:
        return _server_error("Failed to check password reset", e)

    return api_success(data={'match': outcome.matched, 'updated': outcome.updated})


@api_v2.route('/password-resets/complete', methods=['POST'])
def complete_reset_link_api():
    """
    Set a new password from an emailed reset link

    Expected JSON body:
    {
        "token": "string",
        "password": "string",
        "confirm_password": "string" (optional)
    }
    """
    data, error = validate_json_request_secure(['token', 'password'])
    if error:
        return error
    if not _passwords_match(data, 'password'):
        return api_error(PASSWORDS_DO_NOT_MATCH_MSG, status_code=400)

    try:
        reset_request = complete_reset_link(data['token'], data['password'])
    except SpendWiseError as e:
        return api_error_from(e)
    except Exception as e:
        return _server_error("Failed to update password", e)

    return api_success(
        data={'request_id': reset_request.id, 'status': reset_request.status},
        message="Your password has been successfully updated. You can now log in with your new password."
    )


@api_v2.route('/password-resets', methods=['GET'])
@jwt_required_secure()
@admin_required
def get_password_resets_api():
    """All password reset requests grouped by status (admin only)"""
    try:
        grouped = get_all_password_reset_requests()
    except Exception as e:
        return _server_error(FAILED_TO_RETRIEVE_MSG, e)

    summary = {f"{status}_count": len(items) for status, items in grouped.items()}
    summary['total_requests'] = sum(len(items) for items in grouped.values())

    return api_success(
        data={'password_resets': grouped, 'summary': summary},
        message="Password reset requests retrieved successfully"
    )


@api_v2.route('/password-resets/pending', methods=['GET'])
@jwt_required_secure()
@admin_required
def get_pending_password_resets_api():
    """Pending requests, newest first (admin only)"""
    try:
        pending = [req.to_dict() for req in list_pending_password_resets()]
    except Exception as e:
        return _server_error(FAILED_TO_RETRIEVE_MSG, e)

    return api_success(
        data={'pending_requests': pending, 'count': len(pending)},
        message=f"Found {len(pending)} pending password reset requests"
    )


@api_v2.route('/password-resets/<int:reset_id>', methods=['GET'])
@jwt_required_secure()
@admin_required
def get_password_reset_details_api(reset_id):
    """One password reset request (admin only)"""
    try:
        reset_request = get_password_reset_request(reset_id)
    except SpendWiseError as e:
        return api_error_from(e)

    return api_success(data={'password_reset': reset_request.to_dict()})


@api_v2.route('/password-resets/<int:reset_id>/approve', methods=['POST'])
@jwt_required_secure()
@admin_required
def approve_password_reset_api(reset_id):
    """Approve a pending request and email the user a reset link (admin only)"""
    try:
        approve_password_reset(reset_id, get_current_user())
    except SpendWiseError as e:
        return api_error_from(e)
    except Exception as e:
        return _server_error(FAILED_TO_APPROVE_MSG, e)

    return api_success(
        data={'ok': True, 'request_id': reset_id},
        message="The password reset request has been approved and a reset link has been dispatched to the user."
    )


@api_v2.route('/password-resets/<int:reset_id>/deny', methods=['POST'])
@jwt_required_secure()
@admin_required
def deny_password_reset_api(reset_id):
    """
    Deny a pending request (admin only)

    Optional JSON body: {"reason": "string"}
    """
    data = request.get_json(silent=True) or {}
    reason = str(data.get('reason') or '').strip()
    if len(reason) > MAX_REASON_LENGTH:
        return api_error(f"Denial reason must be {MAX_REASON_LENGTH} characters or less", status_code=400)

    try:
        deny_password_reset(reset_id, get_current_user(), reason=reason)
    except SpendWiseError as e:
        return api_error_from(e)
    except Exception as e:
        return _server_error(FAILED_TO_DENY_MSG, e)

    return api_success(
        data={'ok': True, 'request_id': reset_id},
        message="The password reset request has been denied"
    )


@api_v2.route('/password-resets/manual', methods=['POST'])
@jwt_required_secure()
@admin_required
def manual_password_reset_api():
    """
    Stage a new password for a user without review (admin only)

    Expected JSON body:
    {
        "username": "string" | "email": "string" | "user_id": int,
        "new_password": "string",
        "confirm_password": "string" (optional)
    }

    The user's next login with this password adopts it.
    """
    data, error = validate_json_request_secure(['new_password'])
    if error:
        return error

    if not any(data.get(key) for key in ('username', 'email', 'user_id')):
        return api_error("Either email or username is required", status_code=400)
    if not _passwords_match(data, 'new_password'):
        return api_error(PASSWORDS_DO_NOT_MATCH_MSG, status_code=400)

    user_id = data.get('user_id')
    if user_id is not None:
        try:
            user_id = int(user_id)
        except (TypeError, ValueError):
            return api_error("Invalid user ID", status_code=400)

    try:
        reset_request = manual_password_reset(
            get_current_user(),
            data['new_password'],
            username=data.get('username'),
            email=data.get('email'),
            user_id=user_id
        )
    except SpendWiseError as e:
        return api_error_from(e)
    except Exception as e:
        return _server_error("Failed to create manual password reset", e)

    return api_success(
        data={'request_id': reset_request.id, 'status': reset_request.status},
        message=f"Password reset has been approved for {reset_request.username}. "
                "The user can now use this password when logging in.",
        status_code=201
    )
