import logging

from SpendWise.controllers.admin import create_admin
from SpendWise.controllers.user import create_user
from SpendWise.database import db

logger = logging.getLogger(__name__)

def initialize():
    """Drop and recreate all tables, then seed one admin and one demo user."""
    logger.info("Starting database initialization", extra={'event': 'db_initialize'})

    db.drop_all()
    db.create_all()

    admin = create_admin('admin', 'admin@spendwise.local', 'admin123', role='support', full_name='SpendWise Admin')
    logger.info(f"Created admin user: {admin.username}")
    demo = create_user('demo', 'demo@spendwise.local', 'demo123', full_name='Demo User')
    logger.info(f"Created demo user: {demo.username}")
