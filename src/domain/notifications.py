"""
Best-effort notification delivery.

Email is never allowed to fail a state transition that already happened:
delivery errors are logged with their context and reported as False.
"""

import logging
from collections.abc import Awaitable

logger = logging.getLogger(__name__)


async def deliver(what: str, send: Awaitable[None], *, recipient: str, subject_id: int) -> bool:
    """
    Await a notifier call, logging instead of raising on failure.

    Args:
        what: Human readable email kind, used in log lines
        send: Pending notifier coroutine
        recipient: Address(es) the email goes to
        subject_id: Id of the registration or user the email is about

    Returns:
        True if the notifier accepted the message
    """
    try:
        await send
    except Exception:
        logger.exception(
            "Failed to send %s: recipient=%s subject_id=%s", what, recipient, subject_id
        )
        return False
    logger.info("%s sent: recipient=%s subject_id=%s", what.capitalize(), recipient, subject_id)
    return True
