from SpendWise.database import db
from .user import User

class Admin(User):
    __tablename__ = 'admins'

    id = db.Column(db.Integer, db.ForeignKey('users.id', ondelete='CASCADE'), primary_key=True)
    role = db.Column(db.String(20), nullable=False, default='support', index=True)

    __mapper_args__ = {
        'polymorphic_identity': 'admin'
    }

    def __init__(self, username, email, password, role='support', full_name=None):
        super().__init__(username, email, password, full_name=full_name, type='admin')
        self.role = role

    def get_json(self):
        base = super().get_json()
        base['Role'] = self.role
        return base

    def to_dict(self):
        """Convert admin to dictionary for API responses (excludes password)"""
        base_dict = super().to_dict()
        base_dict['role'] = self.role
        return base_dict
