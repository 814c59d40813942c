import os

SECRET_KEY = os.environ.get('SECRET_KEY', 'spendwise-dev-secret')
SQLALCHEMY_DATABASE_URI = 'sqlite:///spendwise.db'
ENV = os.environ.get('ENV', 'development')
SERVICE_NAME = 'spendwise'
LOG_LEVEL = 'INFO'

CORS_ORIGINS = [
    'http://localhost:3000',
    'http://127.0.0.1:3000',
]

# Passwords
PASSWORD_MIN_LENGTH = 6

# Reset links issued when an admin approves a request
PASSWORD_RESET_LINK_TTL_MINUTES = 60
PASSWORD_RESET_URL = 'http://localhost:3000/update-password'

# Credential store calls (dispatch, set password)
CREDENTIAL_STORE_RETRY_ATTEMPTS = 3
CREDENTIAL_STORE_RETRY_DELAY = 0.5

# Outgoing mail. Leave MAIL_HOST empty to log reset links instead of sending.
MAIL_HOST = ''
MAIL_PORT = 587
MAIL_USERNAME = ''
MAIL_PASSWORD = ''
MAIL_FROM = 'SpendWise <no-reply@spendwise.local>'
MAIL_USE_TLS = True
MAIL_USE_SSL = False
MAIL_TIMEOUT_SECONDS = 10
