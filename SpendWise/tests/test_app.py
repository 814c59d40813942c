import logging, smtplib, unittest
from unittest.mock import MagicMock, patch

from flask import Flask

from SpendWise.exceptions import (
    AccountNotFound,
    CredentialStoreError,
    DispatchFailed,
    InvalidState,
    UpdateFailed
)
from SpendWise.database import engine_options_for
from SpendWise.logging_config import HybridDevFormatter, JsonLogFormatter, RedactSecretsFilter
from SpendWise.models import PasswordResetRequest, User
from SpendWise.services.mailer import MailDeliveryError, ResetLinkMailer
from SpendWise.utils.retry import retry_call
from SpendWise.controllers.auth import login, setup_jwt
from SpendWise.controllers.password_reset import FallbackOutcome


LOGGER = logging.getLogger(__name__)

'''
    Unit Tests
'''

class UserUnitTests(unittest.TestCase):

    def test_new_user(self):
        user = User("alice", "Alice@SpendWise.test", "OldPass1", full_name="Alice")
        assert user.username == "alice"
        assert user.email == "alice@spendwise.test"
        assert user.type == "user"
        assert not user.is_admin()

    def test_password_is_hashed(self):
        user = User("alice", "alice@spendwise.test", "OldPass1")
        assert user.password != "OldPass1"
        assert user.check_password("OldPass1")
        assert not user.check_password("oldpass1")

    def test_to_dict_excludes_password(self):
        user = User("alice", "alice@spendwise.test", "OldPass1")
        assert "password" not in user.to_dict()


class PasswordResetRequestUnitTests(unittest.TestCase):

    def test_new_request_defaults(self):
        req = PasswordResetRequest(1, "alice", "alice@spendwise.test", "NewPass1")
        assert req.status == "pending"
        assert req.submitted_via == "self_service"
        assert not req.is_terminal()

    def test_matches_password_is_exact(self):
        req = PasswordResetRequest(1, "alice", "alice@spendwise.test", "NewPass1")
        assert req.matches_password("NewPass1")
        assert not req.matches_password("NewPass1 ")
        assert not req.matches_password("")
        assert not req.matches_password(None)

    def test_terminal_states(self):
        req = PasswordResetRequest(1, "alice", "alice@spendwise.test", "NewPass1",
                                   status=PasswordResetRequest.STATUS_COMPLETED)
        assert req.is_terminal()
        req.status = PasswordResetRequest.STATUS_DENIED
        assert req.is_terminal()
        req.status = PasswordResetRequest.STATUS_APPROVED
        assert not req.is_terminal()


class ErrorKindUnitTests(unittest.TestCase):

    def test_retryable_kinds(self):
        assert DispatchFailed().retryable
        assert UpdateFailed().retryable
        assert not InvalidState().retryable
        assert not AccountNotFound().retryable

    def test_to_dict_carries_code_and_details(self):
        err = InvalidState(current_status="denied")
        assert err.status_code == 409
        assert err.to_dict() == {"code": "INVALID_STATE", "retryable": False, "current_status": "denied"}
        assert str(err) == "This request has already been processed"

    def test_fallback_outcome_flags(self):
        assert not FallbackOutcome.NO_MATCH.matched
        assert FallbackOutcome.UPDATE_FAILED.matched
        assert not FallbackOutcome.UPDATE_FAILED.updated
        assert FallbackOutcome.MATCH_AND_UPDATED.updated


class RetryUnitTests(unittest.TestCase):

    def test_returns_first_success(self):
        func = MagicMock(side_effect=[CredentialStoreError("down"), "ok"])
        assert retry_call(func, 1, attempts=3, exceptions=(CredentialStoreError,)) == "ok"
        assert func.call_count == 2
        func.assert_called_with(1)

    def test_gives_up_after_attempts(self):
        func = MagicMock(side_effect=CredentialStoreError("down"))
        with self.assertRaises(CredentialStoreError):
            retry_call(func, attempts=3, exceptions=(CredentialStoreError,))
        assert func.call_count == 3

    def test_other_errors_are_not_retried(self):
        func = MagicMock(side_effect=KeyError("bug"))
        with self.assertRaises(KeyError):
            retry_call(func, attempts=3, exceptions=(CredentialStoreError,))
        assert func.call_count == 1

    @patch('SpendWise.utils.retry.time.sleep')
    def test_backoff_grows_linearly(self, mock_sleep):
        func = MagicMock(side_effect=[CredentialStoreError("a"), CredentialStoreError("b"), "ok"])
        retry_call(func, attempts=3, delay=0.5, exceptions=(CredentialStoreError,))
        assert [c.args[0] for c in mock_sleep.call_args_list] == [0.5, 1.0]

    def test_giveup_stops_retrying(self):
        func = MagicMock(side_effect=CredentialStoreError("sent?", retryable=False))
        with self.assertRaises(CredentialStoreError):
            retry_call(func, attempts=3, exceptions=(CredentialStoreError,), giveup=lambda e: not e.retryable)
        assert func.call_count == 1


class LoggingUnitTests(unittest.TestCase):

    def _record(self, **extra):
        record = logging.LogRecord("SpendWise.test", logging.INFO, __file__, 1, "hello", None, None)
        for key, value in extra.items():
            setattr(record, key, value)
        return record

    def test_secrets_are_redacted(self):
        record = self._record(event="login", password="OldPass1", token="abc.def.ghi")
        RedactSecretsFilter().filter(record)
        assert record.password == "***"
        assert record.token == "***"
        assert record.event == "login"

    def test_reset_links_are_redacted(self):
        record = self._record(event="reset_link_logged", link="http://x/?token=abc.def.ghi")
        RedactSecretsFilter().filter(record)
        assert record.link == "***"

    def test_json_formatter_includes_extras(self):
        output = JsonLogFormatter("spendwise").format(self._record(event="password_reset_approved", request_id=7))
        assert '"event": "password_reset_approved"' in output
        assert '"request_id": 7' in output
        assert '"service": "spendwise"' in output

    def test_dev_formatter_header(self):
        output = HybridDevFormatter("spendwise").format(self._record())
        assert "| INFO | [SpendWise.test] hello" in output


class MailerUnitTests(unittest.TestCase):

    def test_disabled_mailer_logs_instead_of_sending(self):
        mailer = ResetLinkMailer({'MAIL_HOST': ''})
        with patch('SpendWise.services.mailer.smtplib.SMTP') as mock_smtp:
            sent = mailer.send_reset_link("alice@spendwise.test", "Alice", "http://x/?token=t", 60)
        assert sent is False
        mock_smtp.assert_not_called()

    def test_sends_over_smtp(self):
        mailer = ResetLinkMailer({'MAIL_HOST': 'smtp.test', 'MAIL_PORT': 2525, 'MAIL_USE_TLS': False,
                                  'MAIL_FROM': 'no-reply@spendwise.test'})
        with patch('SpendWise.services.mailer.smtplib.SMTP') as mock_smtp:
            sent = mailer.send_reset_link("alice@spendwise.test", "Alice", "http://x/?token=t", 60)

        assert sent is True
        smtp = mock_smtp.return_value
        message = smtp.send_message.call_args.args[0]
        assert message['To'] == "alice@spendwise.test"
        assert "http://x/?token=t" in message.get_content()

    def test_smtp_failure_raises(self):
        mailer = ResetLinkMailer({'MAIL_HOST': 'smtp.test', 'MAIL_USE_TLS': False})
        with patch('SpendWise.services.mailer.smtplib.SMTP', side_effect=smtplib.SMTPConnectError(421, b'busy')):
            with self.assertRaises(MailDeliveryError) as ctx:
                mailer.send_reset_link("alice@spendwise.test", "Alice", "http://x/?token=t", 60)
        assert ctx.exception.retryable

    def test_missing_mail_host_fails_in_production(self):
        mailer = ResetLinkMailer({'MAIL_HOST': '', 'ENV': 'production'})
        with self.assertRaises(MailDeliveryError) as ctx:
            mailer.send_reset_link("alice@spendwise.test", "Alice", "http://x/?token=t", 60)
        assert not ctx.exception.retryable

    def test_failure_after_handing_over_message_is_not_retryable(self):
        mailer = ResetLinkMailer({'MAIL_HOST': 'smtp.test', 'MAIL_USE_TLS': False})
        with patch('SpendWise.services.mailer.smtplib.SMTP') as mock_smtp:
            mock_smtp.return_value.send_message.side_effect = smtplib.SMTPServerDisconnected('gone')
            with self.assertRaises(MailDeliveryError) as ctx:
                mailer.send_reset_link("alice@spendwise.test", "Alice", "http://x/?token=t", 60)
        assert not ctx.exception.retryable


class DatabaseUnitTests(unittest.TestCase):

    def test_sqlite_drops_pool_options(self):
        options = engine_options_for('sqlite:///:memory:', {'pool_recycle': 10, 'echo': True})
        assert options == {'echo': True}

    def test_postgres_gets_pool_defaults(self):
        options = engine_options_for('postgresql://db/spendwise', {'pool_recycle': 60})
        assert options['pool_recycle'] == 60
        assert options['pool_pre_ping'] is True


'''
    Integration Tests
'''

class AuthIntegrationTests(unittest.TestCase):

    def setUp(self):
        # Bare Flask app; the credential store and fallback are mocked
        self.app = Flask(__name__)
        self.app.config['JWT_SECRET_KEY'] = 'test-secret-key-with-enough-bytes'
        self.app.config['TESTING'] = True
        self.jwt = setup_jwt(self.app)

        self.store = MagicMock()
        self.mock_user = MagicMock()
        self.mock_user.id = 1
        self.mock_user.type = "user"

        self.patches = [
            patch('SpendWise.controllers.auth.get_credential_store', return_value=self.store),
            patch('SpendWise.controllers.auth.find_account', return_value=self.mock_user),
        ]
        for p in self.patches:
            p.start()

    def tearDown(self):
        patch.stopall()

    def test_login_success(self):
        self.store.verify_password.return_value = True

        with self.app.app_context():
            result = login("alice", "OldPass1")

        assert result.ok
        assert result.user is self.mock_user
        assert result.fallback is None

    @patch('SpendWise.controllers.auth.fallback_match', return_value=FallbackOutcome.NO_MATCH)
    def test_login_failure(self, mock_fallback):
        self.store.verify_password.return_value = False

        with self.app.app_context():
            result = login("alice", "wrongpassword")

        assert not result.ok
        assert result.fallback is FallbackOutcome.NO_MATCH
        mock_fallback.assert_called_once_with("alice", "wrongpassword")

    @patch('SpendWise.controllers.auth.fallback_match', return_value=FallbackOutcome.MATCH_AND_UPDATED)
    def test_login_retries_verification_after_fallback(self, mock_fallback):
        self.store.verify_password.side_effect = [False, True]

        with self.app.app_context():
            result = login("alice", "NewPass1")

        assert result.ok
        assert result.fallback is FallbackOutcome.MATCH_AND_UPDATED
        assert self.store.verify_password.call_count == 2

    @patch('SpendWise.controllers.auth.fallback_match', return_value=FallbackOutcome.UPDATE_FAILED)
    def test_login_update_failed(self, mock_fallback):
        self.store.verify_password.return_value = False

        with self.app.app_context():
            result = login("alice", "NewPass1")

        assert not result.ok
        assert result.fallback is FallbackOutcome.UPDATE_FAILED
        assert self.store.verify_password.call_count == 1
