"""
Service layer for collaborators outside the reset workflow.

The credential store owns login passwords; the mailer delivers reset links.
"""

from .credential_store import (
    CredentialStore,
    DatabaseCredentialStore,
    get_credential_store,
    init_credential_store
)
from .mailer import ResetLinkMailer

__all__ = [
    'CredentialStore',
    'DatabaseCredentialStore',
    'ResetLinkMailer',
    'get_credential_store',
    'init_credential_store'
]
