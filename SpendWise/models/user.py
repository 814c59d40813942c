from werkzeug.security import check_password_hash, generate_password_hash
from SpendWise.database import db
from SpendWise.utils.time_utils import utc_now, isoformat_or_none

class User(db.Model):
    __tablename__ = 'users'

    id = db.Column(db.Integer, primary_key=True)
    username = db.Column(db.String(50), nullable=False, unique=True, index=True)
    email = db.Column(db.String(255), nullable=False, unique=True, index=True)
    full_name = db.Column(db.String(120))
    password = db.Column(db.String(255), nullable=False)
    type = db.Column(db.String(20), nullable=False, index=True)
    created_at = db.Column(db.DateTime, nullable=False, default=utc_now)

    __table_args__ = (
        db.CheckConstraint("type IN ('admin', 'user')", name='check_valid_user_type'),
    )

    __mapper_args__ = {
        'polymorphic_identity': 'user',
        'polymorphic_on': type
    }

    def __init__(self, username, email, password, full_name=None, type='user'):
        self.username = username
        self.email = email.strip().lower() if email else email
        self.full_name = full_name
        self.set_password(password)
        self.type = type

    def get_json(self):
        return {
            'ID': self.id,
            'Username': self.username,
            'Email': self.email,
            'Type': self.type
        }

    def to_dict(self):
        """Convert user to dictionary for API responses (excludes password)"""
        return {
            'id': self.id,
            'username': self.username,
            'email': self.email,
            'full_name': self.full_name,
            'type': self.type,
            'is_admin': self.is_admin(),
            'created_at': isoformat_or_none(self.created_at)
        }

    def set_password(self, password):
        """Create hashed password."""
        self.password = generate_password_hash(password)

    def check_password(self, password):
        """Check hashed password."""
        return check_password_hash(self.password, password)

    def is_admin(self):
        return self.type == 'admin'
