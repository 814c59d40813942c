import logging
from dataclasses import dataclass
from typing import Optional

from flask_jwt_extended import create_access_token, JWTManager

from SpendWise.models import User
from SpendWise.database import db
from SpendWise.services import get_credential_store
from SpendWise.services.credential_store import find_account, is_reset_token
from .password_reset import FallbackOutcome, fallback_match

logger = logging.getLogger(__name__)


@dataclass
class LoginResult:
    token: Optional[str] = None
    user: Optional[User] = None
    fallback: Optional[FallbackOutcome] = None

    @property
    def ok(self):
        return self.token is not None


def login(identity, password):
    """
    Verify credentials, falling back to an approved reset request.

    When normal verification fails and the fallback adopts the staged
    password, verification is retried once and must now succeed.
    """
    store = get_credential_store()
    outcome = None

    if not store.verify_password(identity, password):
        outcome = fallback_match(identity, password)
        if outcome is not FallbackOutcome.MATCH_AND_UPDATED:
            logger.info('Login failed', extra={'event': 'login_failed', 'fallback': outcome.value})
            return LoginResult(fallback=outcome)
        if not store.verify_password(identity, password):
            logger.error(
                'Verification failed after fallback update',
                extra={'event': 'login_fallback_inconsistent'},
            )
            return LoginResult(fallback=FallbackOutcome.UPDATE_FAILED)

    user = find_account(identity)
    access_token = create_access_token(
        identity=str(user.id),
        additional_claims={'role': user.type}
    )
    logger.info('Login succeeded', extra={'event': 'login_succeeded', 'user_id': user.id})
    return LoginResult(token=access_token, user=user, fallback=outcome)


def setup_jwt(app):
    jwt = JWTManager(app)

    @jwt.user_identity_loader
    def user_identity_lookup(identity):
        return str(identity)

    @jwt.user_lookup_loader
    def user_lookup_callback(_jwt_header, jwt_data):
        try:
            user_id = int(jwt_data["sub"])
        except (KeyError, TypeError, ValueError):
            return None
        return db.session.get(User, user_id)

    @jwt.token_verification_loader
    def reject_reset_link_tokens(_jwt_header, jwt_data):
        # Reset-link tokens are only good for completing the reset
        return not is_reset_token(jwt_data)

    return jwt
