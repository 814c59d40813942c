"""Bounded retry for calls into unreliable collaborators."""

import logging
import time

logger = logging.getLogger(__name__)


def retry_call(func, *args, attempts=3, delay=0.0, exceptions=(Exception,), giveup=None, **kwargs):
    """Call ``func`` up to ``attempts`` times, re-raising the last failure.

    Sleeps ``delay * attempt`` seconds between attempts. A failure for which
    ``giveup(exc)`` is true is re-raised at once.
    """
    if attempts < 1:
        raise ValueError('attempts must be at least 1')

    for attempt in range(1, attempts + 1):
        try:
            return func(*args, **kwargs)
        except exceptions as e:
            final = attempt == attempts or bool(giveup and giveup(e))
            logger.warning(
                'Call failed',
                extra={
                    'event': 'retry_attempt_failed',
                    'call': getattr(func, '__qualname__', repr(func)),
                    'attempt': attempt,
                    'attempts': attempts,
                    'final': final,
                    'error': str(e),
                },
            )
            if final:
                raise
            if delay:
                time.sleep(delay * attempt)
