import logging

from flask import current_app
from sqlalchemy import func, or_

from SpendWise.models import User
from SpendWise.database import db
from SpendWise.exceptions import AccountExists, AccountNotFound, ValidationError
from SpendWise.services import get_credential_store

logger = logging.getLogger(__name__)

def create_user(username, email, password, full_name=None):
    user = User(username, email, password, full_name=full_name)
    db.session.add(user)
    db.session.commit()
    return user

def get_user(username):
    return User.query.filter_by(username=username).first()

def get_user_by_id(user_id):
    return db.session.get(User, user_id)

def get_user_by_email(email):
    if not email:
        return None
    return User.query.filter(func.lower(User.email) == email.strip().lower()).first()

def get_all_users():
    return User.query.order_by(User.id).all()

def get_all_users_json():
    users = get_all_users()
    if not users:
        return []
    return [user.get_json() for user in users]

def resolve_account(username=None, email=None, user_id=None):
    """Resolve any one of user id, username or email to an existing account.

    The first identifier supplied wins; raises AccountNotFound when nothing
    was supplied or nothing matches.
    """
    user = None
    if user_id is not None:
        user = get_user_by_id(user_id)
    elif username:
        user = get_user(username.strip())
    elif email:
        user = get_user_by_email(email)
    else:
        raise AccountNotFound("A username, email or user id is required")

    if not user:
        raise AccountNotFound()
    return user

def validate_password(password):
    if not password or not isinstance(password, str) or not password.strip():
        raise ValidationError("Invalid password", field='password')

    min_length = current_app.config.get('PASSWORD_MIN_LENGTH', 6)
    if len(password) < min_length:
        raise ValidationError(
            f"Password must be at least {min_length} characters long",
            field='password'
        )

def signup(username, email, password, full_name=None):
    """Register a new account through the credential store"""
    username = (username or '').strip()
    email = (email or '').strip().lower()
    if not username or not email:
        raise ValidationError("Username and email are required")
    if '@' not in email:
        raise ValidationError("Invalid email address", field='email')
    validate_password(password)

    existing = User.query.filter(
        or_(User.username == username, func.lower(User.email) == email)
    ).first()
    if existing:
        raise AccountExists()

    user_id = get_credential_store().create_account(username, email, password, full_name)
    logger.info('User signed up', extra={'event': 'user_signup', 'user_id': user_id})
    return get_user_by_id(user_id)
