"""
Password reset approval workflow.

A request moves ``pending -> approved -> completed`` or ``pending -> denied``.
Every transition is a conditional single-row update on the ledger, so a stale
UI or a concurrent admin action fails with InvalidState instead of applying
twice. Callers pass their resolved identity in as ``actor``; nothing here
reads the session.
"""

import enum
import logging

from flask import current_app
from sqlalchemy.exc import SQLAlchemyError

from SpendWise.models import PasswordResetRequest
from SpendWise.database import db
from SpendWise.exceptions import (
    AccountNotFound,
    CredentialStoreError,
    DispatchFailed,
    InvalidResetToken,
    InvalidState,
    PermissionDenied,
    ResetRequestNotFound,
    UpdateFailed
)
from SpendWise.services import get_credential_store
from SpendWise.services.credential_store import decode_reset_token, find_account
from SpendWise.utils.retry import retry_call
from SpendWise.utils.time_utils import utc_now
from .user import get_user_by_id, resolve_account, validate_password

logger = logging.getLogger(__name__)


class FallbackOutcome(enum.Enum):
    NO_MATCH = 'no_match'
    MATCH_AND_UPDATED = 'match_and_updated'
    UPDATE_FAILED = 'update_failed'

    @property
    def matched(self):
        return self is not FallbackOutcome.NO_MATCH

    @property
    def updated(self):
        return self is FallbackOutcome.MATCH_AND_UPDATED


def _require_admin(actor):
    if actor is None or not actor.is_admin():
        raise PermissionDenied()


def _actor_name(actor):
    return getattr(actor, 'username', None)


def _call_credential_store(method, *args):
    return retry_call(
        method,
        *args,
        attempts=current_app.config.get('CREDENTIAL_STORE_RETRY_ATTEMPTS', 3),
        delay=current_app.config.get('CREDENTIAL_STORE_RETRY_DELAY', 0.0),
        exceptions=(CredentialStoreError,),
        giveup=lambda e: not e.retryable
    )


def _transition(request_id, source, target, **values):
    """Move a request from ``source`` to ``target`` without committing."""
    values['status'] = target
    updated = (
        PasswordResetRequest.query
        .filter_by(id=request_id, status=source)
        .update(values, synchronize_session=False)
    )
    if updated:
        return

    current = db.session.get(PasswordResetRequest, request_id, populate_existing=True)
    if current is None:
        raise ResetRequestNotFound()
    raise InvalidState(current_status=current.status, expected_status=source)


def _save_new_request(reset_request):
    try:
        db.session.add(reset_request)
        db.session.commit()
    except SQLAlchemyError:
        db.session.rollback()
        raise
    return reset_request


def _check_identity_fields(user, username, email):
    # Both identifiers supplied must point at the same account
    if username and user.username != username.strip():
        raise AccountNotFound("Username and email do not match the same account")
    if email and user.email.lower() != email.strip().lower():
        raise AccountNotFound("Username and email do not match the same account")


def get_password_reset_request(request_id):
    reset_request = db.session.get(PasswordResetRequest, request_id)
    if not reset_request:
        raise ResetRequestNotFound()
    return reset_request


def list_pending_password_resets():
    """Pending requests for the admin queue, newest first"""
    return (
        PasswordResetRequest.query
        .filter_by(status=PasswordResetRequest.STATUS_PENDING)
        .order_by(PasswordResetRequest.created_at.desc(), PasswordResetRequest.id.desc())
        .all()
    )


def get_all_password_reset_requests():
    """All requests grouped by status, each group newest first"""
    all_requests = PasswordResetRequest.query.order_by(
        PasswordResetRequest.created_at.desc(),
        PasswordResetRequest.id.desc()
    ).all()

    grouped = {status: [] for status in PasswordResetRequest.STATUSES}
    for req in all_requests:
        grouped.setdefault(req.status, []).append(req.to_dict())
    return grouped


def get_active_request(user_id):
    """
    The approved request whose staged password login may adopt, if any.

    Only the newest approved-or-completed request counts. Once it completes,
    older approved requests for the account stay orphaned.
    """
    latest = (
        PasswordResetRequest.query
        .filter(
            PasswordResetRequest.user_id == user_id,
            PasswordResetRequest.status.in_([
                PasswordResetRequest.STATUS_APPROVED,
                PasswordResetRequest.STATUS_COMPLETED
            ])
        )
        .order_by(PasswordResetRequest.created_at.desc(), PasswordResetRequest.id.desc())
        .first()
    )
    if latest is None or latest.status != PasswordResetRequest.STATUS_APPROVED:
        return None
    return latest


def submit_password_reset_request(actor, requested_password, username=None, email=None,
                                  full_name=None):
    """Record a self-service reset request for admin review"""
    validate_password(requested_password)
    user = resolve_account(username=username, email=email)
    _check_identity_fields(user, username, email)

    reset_request = _save_new_request(PasswordResetRequest(
        user_id=user.id,
        username=user.username,
        email=user.email,
        full_name=full_name or user.full_name,
        requested_password=requested_password,
        status=PasswordResetRequest.STATUS_PENDING,
        submitted_via=PasswordResetRequest.VIA_SELF_SERVICE,
        created_at=utc_now()
    ))

    logger.info(
        'Password reset request submitted',
        extra={
            'event': 'password_reset_submitted',
            'request_id': reset_request.id,
            'user_id': user.id,
            'actor': _actor_name(actor),
        },
    )
    return reset_request


def manual_password_reset(actor, new_password, username=None, email=None, user_id=None):
    """Create an already-approved request on behalf of a user (admin only)"""
    _require_admin(actor)
    validate_password(new_password)
    user = resolve_account(username=username, email=email, user_id=user_id)

    now = utc_now()
    reset_request = PasswordResetRequest(
        user_id=user.id,
        username=user.username,
        email=user.email,
        full_name=user.full_name,
        requested_password=new_password,
        status=PasswordResetRequest.STATUS_APPROVED,
        submitted_via=PasswordResetRequest.VIA_MANUAL,
        created_at=now
    )
    reset_request.processed_at = now
    reset_request.processed_by = actor.username
    _save_new_request(reset_request)

    logger.info(
        'Manual password reset created',
        extra={
            'event': 'password_reset_manual_created',
            'request_id': reset_request.id,
            'user_id': user.id,
            'actor': actor.username,
        },
    )
    return reset_request


def approve_password_reset(request_id, actor):
    """
    Approve a pending request and email the account a reset link.

    The status flip and the dispatch succeed together or not at all: the
    flip stays uncommitted until the credential store accepts the dispatch.
    """
    _require_admin(actor)
    reset_request = get_password_reset_request(request_id)
    if reset_request.status != PasswordResetRequest.STATUS_PENDING:
        raise InvalidState(current_status=reset_request.status)

    user_id = reset_request.user_id
    if not get_user_by_id(user_id):
        raise AccountNotFound()

    store = get_credential_store()
    try:
        _transition(
            request_id,
            PasswordResetRequest.STATUS_PENDING,
            PasswordResetRequest.STATUS_APPROVED,
            processed_at=utc_now(),
            processed_by=actor.username
        )
        _call_credential_store(store.send_reset_link, user_id, request_id)
        db.session.commit()
    except CredentialStoreError as e:
        db.session.rollback()
        logger.warning(
            'Reset link dispatch failed, approval rolled back',
            extra={
                'event': 'password_reset_dispatch_failed',
                'request_id': request_id,
                'actor': actor.username,
                'error': str(e),
            },
        )
        raise DispatchFailed(request_id=request_id) from e
    except Exception:
        db.session.rollback()
        raise

    logger.info(
        'Password reset request approved',
        extra={
            'event': 'password_reset_approved',
            'request_id': request_id,
            'user_id': user_id,
            'actor': actor.username,
        },
    )
    return get_password_reset_request(request_id)


def deny_password_reset(request_id, actor, reason=None):
    """Deny a pending request (admin only)"""
    _require_admin(actor)
    try:
        _transition(
            request_id,
            PasswordResetRequest.STATUS_PENDING,
            PasswordResetRequest.STATUS_DENIED,
            processed_at=utc_now(),
            processed_by=actor.username,
            denial_reason=reason or None
        )
        db.session.commit()
    except Exception:
        db.session.rollback()
        raise

    logger.info(
        'Password reset request denied',
        extra={
            'event': 'password_reset_denied',
            'request_id': request_id,
            'actor': actor.username,
        },
    )
    return get_password_reset_request(request_id)


def _mark_completed(request_id):
    try:
        _transition(
            request_id,
            PasswordResetRequest.STATUS_APPROVED,
            PasswordResetRequest.STATUS_COMPLETED,
            completed_at=utc_now()
        )
        db.session.commit()
    except Exception:
        db.session.rollback()
        raise


def fallback_match(identity, supplied_password):
    """
    Login-time check run after normal verification has failed.

    Adopts the supplied password when it equals the one staged on the most
    recent approved request for the account. "No active request" and "wrong
    password" both come back as NO_MATCH.
    """
    if not identity or not supplied_password:
        return FallbackOutcome.NO_MATCH

    user = find_account(identity)
    if not user:
        return FallbackOutcome.NO_MATCH

    active = get_active_request(user.id)
    if not active or not active.matches_password(supplied_password):
        return FallbackOutcome.NO_MATCH

    request_id = active.id
    try:
        _call_credential_store(get_credential_store().set_password, user.id, supplied_password)
    except CredentialStoreError as e:
        db.session.rollback()
        logger.warning(
            'Fallback password update failed',
            extra={
                'event': 'password_reset_fallback_update_failed',
                'request_id': request_id,
                'user_id': user.id,
                'error': str(e),
            },
        )
        return FallbackOutcome.UPDATE_FAILED

    try:
        _mark_completed(request_id)
    except InvalidState:
        # A concurrent login completed it first with the same password
        logger.info(
            'Fallback request already completed',
            extra={'event': 'password_reset_fallback_race', 'request_id': request_id},
        )
        return FallbackOutcome.MATCH_AND_UPDATED

    logger.info(
        'Approved password adopted at login',
        extra={
            'event': 'password_reset_completed',
            'request_id': request_id,
            'user_id': user.id,
            'via': 'fallback_match',
        },
    )
    return FallbackOutcome.MATCH_AND_UPDATED


def complete_reset_link(token, new_password):
    """Finish the emailed reset-link flow for an approved request"""
    user_id, request_id = decode_reset_token(token)
    validate_password(new_password)

    reset_request = get_password_reset_request(request_id)
    if reset_request.user_id != user_id:
        raise InvalidResetToken()
    if reset_request.status != PasswordResetRequest.STATUS_APPROVED:
        raise InvalidState(current_status=reset_request.status)
    if not get_user_by_id(user_id):
        raise AccountNotFound()

    try:
        _call_credential_store(get_credential_store().set_password, user_id, new_password)
    except CredentialStoreError as e:
        db.session.rollback()
        raise UpdateFailed(request_id=request_id) from e

    try:
        _mark_completed(request_id)
    except InvalidState:
        # A login fallback completed it while the new password was being set
        logger.info(
            'Reset link request already completed',
            extra={'event': 'password_reset_link_race', 'request_id': request_id},
        )
        return get_password_reset_request(request_id)

    logger.info(
        'Password reset via emailed link',
        extra={
            'event': 'password_reset_completed',
            'request_id': request_id,
            'user_id': user_id,
            'via': 'reset_link',
        },
    )
    return get_password_reset_request(request_id)
