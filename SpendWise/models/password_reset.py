from werkzeug.security import check_password_hash, generate_password_hash
from SpendWise.database import db
from SpendWise.utils.time_utils import utc_now, isoformat_or_none

class PasswordResetRequest(db.Model):
    """A single row of the reset request ledger.

    Rows are append-only: after creation only ``status`` and the audit
    columns change, and nothing is ever deleted.
    """
    __tablename__ = 'password_reset_requests'

    STATUS_PENDING = 'pending'
    STATUS_APPROVED = 'approved'
    STATUS_DENIED = 'denied'
    STATUS_COMPLETED = 'completed'
    STATUSES = (STATUS_PENDING, STATUS_APPROVED, STATUS_DENIED, STATUS_COMPLETED)

    VIA_SELF_SERVICE = 'self_service'
    VIA_MANUAL = 'manual'

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey('users.id'), nullable=False, index=True)
    username = db.Column(db.String(50), nullable=False)
    email = db.Column(db.String(255), nullable=False)
    full_name = db.Column(db.String(120))
    requested_password_hash = db.Column(db.String(255), nullable=False)
    status = db.Column(db.String(20), nullable=False, default=STATUS_PENDING, index=True)
    submitted_via = db.Column(db.String(20), nullable=False, default=VIA_SELF_SERVICE)
    created_at = db.Column(db.DateTime, nullable=False, default=utc_now, index=True)
    processed_at = db.Column(db.DateTime)
    processed_by = db.Column(db.String(50))
    completed_at = db.Column(db.DateTime)
    denial_reason = db.Column(db.String(500))

    __table_args__ = (
        db.CheckConstraint(
            "status IN ('pending', 'approved', 'denied', 'completed')",
            name='check_valid_reset_status'
        ),
        db.CheckConstraint(
            "submitted_via IN ('self_service', 'manual')",
            name='check_valid_reset_origin'
        ),
    )

    def __init__(self, user_id, username, email, requested_password, full_name=None,
                 status=STATUS_PENDING, submitted_via=VIA_SELF_SERVICE, created_at=None):
        self.user_id = user_id
        self.username = username
        self.email = email
        self.full_name = full_name
        self.requested_password_hash = generate_password_hash(requested_password)
        self.status = status
        self.submitted_via = submitted_via
        if created_at:
            self.created_at = created_at

    def matches_password(self, supplied_password):
        """Exact match of the supplied password against the requested one."""
        if not supplied_password:
            return False
        return check_password_hash(self.requested_password_hash, supplied_password)

    def is_terminal(self):
        return self.status in (self.STATUS_DENIED, self.STATUS_COMPLETED)

    def to_dict(self):
        return {
            'id': self.id,
            'user_id': self.user_id,
            'username': self.username,
            'email': self.email,
            'full_name': self.full_name,
            'status': self.status,
            'submitted_via': self.submitted_via,
            'created_at': isoformat_or_none(self.created_at),
            'processed_at': isoformat_or_none(self.processed_at),
            'processed_by': self.processed_by,
            'completed_at': isoformat_or_none(self.completed_at),
            'denial_reason': self.denial_reason
        }

    def __repr__(self):
        return f'<PasswordResetRequest {self.id} {self.username} {self.status}>'
