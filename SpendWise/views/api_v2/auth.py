from flask import current_app
from flask_jwt_extended import get_current_user, unset_jwt_cookies

from SpendWise.views.api_v2 import api_v2
from SpendWise.views.api_v2.utils import (
    api_success,
    api_error,
    api_error_from,
    jwt_required_secure,
    validate_json_request_secure
)
from SpendWise.controllers.auth import login as auth_login
from SpendWise.controllers.password_reset import FallbackOutcome
from SpendWise.controllers.user import signup as create_account
from SpendWise.exceptions import CredentialStoreError, SpendWiseError


@api_v2.route('/auth/login', methods=['POST'])
def login():
    """
    Authenticate a user and return a JWT

    Expected JSON body:
    {
        "identity": "username or email",   ("email" or "username" also accepted)
        "password": "string"
    }

    A failed password check falls through to the approved reset request
    check before the login is rejected.
    """
    data, error = validate_json_request_secure()
    if error:
        return error

    identity = data.get('identity') or data.get('email') or data.get('username')
    password = data.get('password')

    if not identity or not password:
        return api_error("Please enter both email and password.", status_code=400)

    try:
        result = auth_login(identity.strip(), password)
    except Exception as e:
        current_app.logger.exception('Login error', extra={'event': 'login_error'})
        return api_error(f"Login failed: {str(e)}", status_code=500)

    if result.fallback is FallbackOutcome.UPDATE_FAILED:
        return api_error(
            "Your approved password could not be applied. Please try again.",
            errors={"code": "UPDATE_FAILED", "retryable": True},
            status_code=503
        )

    if not result.ok:
        return api_error("Invalid login credentials", status_code=401)

    return api_success({
        "user": result.user.to_dict(),
        "token": result.token,
        "password_reset_applied": result.fallback is FallbackOutcome.MATCH_AND_UPDATED
    }, "Login successful")


@api_v2.route('/auth/signup', methods=['POST'])
def signup():
    """
    Register a new account

    Expected JSON body:
    {
        "username": "string",
        "email": "string",
        "password": "string",
        "confirm_password": "string",
        "full_name": "string" (optional)
    }
    """
    data, error = validate_json_request_secure(['username', 'email', 'password'])
    if error:
        return error

    confirm_password = data.get('confirm_password')
    if confirm_password is not None and confirm_password != data['password']:
        return api_error("Passwords do not match", status_code=400)

    try:
        user = create_account(
            username=data['username'],
            email=data['email'],
            password=data['password'],
            full_name=data.get('full_name')
        )
    except SpendWiseError as e:
        return api_error_from(e)
    except CredentialStoreError as e:
        return api_error(f"Registration failed: {str(e)}", status_code=502)

    return api_success({"user": user.to_dict()}, "User registered successfully", status_code=201)


@api_v2.route('/auth/logout', methods=['POST'])
def logout():
    """Clear the auth cookie; header-token clients just drop their token"""
    response, status = api_success(message="Logged out successfully")
    unset_jwt_cookies(response)
    return response, status


@api_v2.route('/me', methods=['GET'])
@jwt_required_secure()
def get_current_user_api():
    """Profile of the authenticated user"""
    user = get_current_user()
    if not user:
        return api_error("User not found", status_code=404)
    return api_success(user.to_dict())
