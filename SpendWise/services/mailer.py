"""Outgoing mail for password reset links."""

import logging
import smtplib
import ssl
from email.message import EmailMessage

logger = logging.getLogger(__name__)

RESET_SUBJECT = 'Reset your SpendWise password'

RESET_BODY = """Hi {name},

An administrator approved your SpendWise password reset request.
Use the link below to choose a new password. It expires in {ttl} minutes.

{link}

If you did not ask for this, you can ignore this email.
"""

# Environments allowed to run without an SMTP server
LOG_ONLY_ENVIRONMENTS = frozenset({'development', 'testing'})


class MailDeliveryError(Exception):
    """Reset-link email could not be delivered.

    ``retryable`` is False once the message may already have reached the
    server, so a retry could send the link twice.
    """

    def __init__(self, message, retryable=True):
        super().__init__(message)
        self.retryable = retryable


class ResetLinkMailer:
    """Sends reset-link emails over SMTP.

    When ``MAIL_HOST`` is empty in development or testing, the send is only
    logged (without the link). Anywhere else a missing mail host is a
    delivery failure.
    """

    def __init__(self, config):
        self.host = config.get('MAIL_HOST')
        self.port = int(config.get('MAIL_PORT', 587))
        self.username = config.get('MAIL_USERNAME')
        self.password = config.get('MAIL_PASSWORD')
        self.sender = config.get('MAIL_FROM')
        self.use_tls = bool(config.get('MAIL_USE_TLS', True))
        self.use_ssl = bool(config.get('MAIL_USE_SSL', False))
        self.timeout = config.get('MAIL_TIMEOUT_SECONDS', 10)
        self.log_only_allowed = bool(config.get('TESTING')) or \
            config.get('ENV', 'development') in LOG_ONLY_ENVIRONMENTS

    @property
    def enabled(self):
        return bool(self.host)

    def send_reset_link(self, to_email, name, link, ttl_minutes):
        if not self.enabled:
            if not self.log_only_allowed:
                raise MailDeliveryError('MAIL_HOST is not configured; reset link not sent', retryable=False)
            logger.info(
                'Mail not sent (MAIL_HOST not configured)',
                extra={'event': 'reset_link_logged', 'to': to_email},
            )
            return False

        msg = EmailMessage()
        msg['Subject'] = RESET_SUBJECT
        msg['From'] = self.sender
        msg['To'] = to_email
        msg.set_content(RESET_BODY.format(name=name or to_email, link=link, ttl=ttl_minutes))
        self._deliver(msg)
        logger.info('Reset link sent', extra={'event': 'reset_link_sent', 'to': to_email})
        return True

    def _connect(self):
        if self.use_ssl:
            return smtplib.SMTP_SSL(self.host, self.port, context=ssl.create_default_context(),
                                    timeout=self.timeout)
        return smtplib.SMTP(self.host, self.port, timeout=self.timeout)

    def _deliver(self, msg):
        try:
            smtp = self._connect()
        except (smtplib.SMTPException, OSError) as e:
            raise MailDeliveryError(f"Email send failed to {msg['To']}: {e}") from e

        with smtp:
            try:
                smtp.ehlo()
                if self.use_tls and not self.use_ssl:
                    smtp.starttls(context=ssl.create_default_context())
                    smtp.ehlo()
                if self.username:
                    smtp.login(self.username, self.password)
            except (smtplib.SMTPException, OSError) as e:
                raise MailDeliveryError(f"Email send failed to {msg['To']}: {e}") from e

            # The server may have accepted the message before a failure here
            try:
                smtp.send_message(msg)
            except (smtplib.SMTPException, OSError) as e:
                raise MailDeliveryError(
                    f"Email delivery to {msg['To']} did not complete: {e}",
                    retryable=False
                ) from e
