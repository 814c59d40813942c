"""
Credential store: the system of record for login passwords.

The reset workflow only ever talks to the ``CredentialStore`` interface.
``DatabaseCredentialStore`` keeps werkzeug password hashes on the ``users``
table and delivers reset links as short-lived signed JWTs by email.
"""

import logging
from abc import ABC, abstractmethod
from datetime import timedelta
from typing import Optional

from flask import current_app
from flask_jwt_extended import create_access_token, decode_token
from flask_jwt_extended.exceptions import JWTExtendedException
from jwt.exceptions import PyJWTError
from sqlalchemy import func, or_
from sqlalchemy.exc import SQLAlchemyError

from SpendWise.database import db
from SpendWise.exceptions import CredentialStoreError, InvalidResetToken
from SpendWise.models import User
from .mailer import MailDeliveryError, ResetLinkMailer

logger = logging.getLogger(__name__)

EXTENSION_KEY = 'spendwise_credential_store'
RESET_TOKEN_PURPOSE = 'password_reset'


class CredentialStore(ABC):
    """Operations the reset workflow and login surface need from the password owner."""

    @abstractmethod
    def verify_password(self, identity: str, password: str) -> bool:
        """Return True when ``identity`` (username or email) logs in with ``password``."""

    @abstractmethod
    def set_password(self, user_id: int, new_password: str) -> None:
        """Replace the account password. Raises CredentialStoreError on failure."""

    @abstractmethod
    def create_account(self, username: str, email: str, password: str,
                       full_name: Optional[str] = None) -> int:
        """Create an account and return its id. Raises CredentialStoreError on failure."""

    @abstractmethod
    def send_reset_link(self, user_id: int, request_id: int) -> str:
        """Dispatch a reset link to the account's email and return the link token."""


def find_account(identity):
    """Look up an account by username or email (email match is case-insensitive)."""
    if not identity:
        return None
    identity = identity.strip()
    return User.query.filter(
        or_(User.username == identity, func.lower(User.email) == identity.lower())
    ).first()


class DatabaseCredentialStore(CredentialStore):

    def __init__(self, mailer=None):
        self._mailer = mailer

    @property
    def mailer(self):
        if self._mailer is None:
            self._mailer = ResetLinkMailer(current_app.config)
        return self._mailer

    def verify_password(self, identity, password):
        user = find_account(identity)
        return bool(user and password and user.check_password(password))

    def set_password(self, user_id, new_password):
        user = db.session.get(User, user_id)
        if not user:
            raise CredentialStoreError(f"Account {user_id} does not exist")
        try:
            user.set_password(new_password)
            db.session.commit()
        except SQLAlchemyError as e:
            db.session.rollback()
            raise CredentialStoreError(f"Failed to store new password: {e}") from e

        logger.info('Password updated', extra={'event': 'credential_password_set', 'user_id': user_id})

    def create_account(self, username, email, password, full_name=None):
        user = User(username=username, email=email, password=password, full_name=full_name)
        try:
            db.session.add(user)
            db.session.commit()
        except SQLAlchemyError as e:
            db.session.rollback()
            raise CredentialStoreError(f"Failed to create account: {e}") from e

        logger.info('Account created', extra={'event': 'credential_account_created', 'user_id': user.id})
        return user.id

    def send_reset_link(self, user_id, request_id):
        user = db.session.get(User, user_id)
        if not user:
            raise CredentialStoreError(f"Account {user_id} does not exist")

        ttl_minutes = current_app.config.get('PASSWORD_RESET_LINK_TTL_MINUTES', 60)
        token = create_reset_token(user.id, request_id, ttl_minutes)
        link = f"{current_app.config.get('PASSWORD_RESET_URL', '')}?token={token}"

        try:
            self.mailer.send_reset_link(user.email, user.full_name or user.username, link, ttl_minutes)
        except MailDeliveryError as e:
            raise CredentialStoreError(str(e), retryable=e.retryable) from e
        return token


def create_reset_token(user_id, request_id, ttl_minutes):
    return create_access_token(
        identity=str(user_id),
        additional_claims={'purpose': RESET_TOKEN_PURPOSE, 'rid': request_id},
        expires_delta=timedelta(minutes=ttl_minutes),
    )


def decode_reset_token(token):
    """Return ``(user_id, request_id)`` from a reset-link token."""
    if not token:
        raise InvalidResetToken()
    try:
        claims = decode_token(token)
    except (JWTExtendedException, PyJWTError) as e:
        raise InvalidResetToken(reason=str(e)) from e

    if claims.get('purpose') != RESET_TOKEN_PURPOSE or claims.get('rid') is None:
        raise InvalidResetToken()
    try:
        return int(claims['sub']), int(claims['rid'])
    except (KeyError, TypeError, ValueError) as e:
        raise InvalidResetToken() from e


def is_reset_token(jwt_data):
    return isinstance(jwt_data, dict) and jwt_data.get('purpose') == RESET_TOKEN_PURPOSE


def init_credential_store(app, store=None):
    app.extensions[EXTENSION_KEY] = store or DatabaseCredentialStore()
    return app.extensions[EXTENSION_KEY]


def get_credential_store() -> CredentialStore:
    return current_app.extensions[EXTENSION_KEY]
