from __future__ import annotations

import logging

from ..domain.notifier import Notifier
from ..schemas import RegistrationNotice

logger = logging.getLogger("notifications")


class LoggingNotifier(Notifier):
    """Hands registration notices to the log; email delivery lives outside this service."""

    async def send_registration(self, notice: RegistrationNotice) -> None:
        logger.info(
            "registration notice type=%s to=%s payload=%s",
            notice.details.type,
            notice.contact.email,
            notice.model_dump_json(),
        )


async def deliver_quietly(notifier: Notifier, notice: RegistrationNotice) -> bool:
    """Send a notice after the booking is committed; failures are logged, never raised."""
    try:
        await notifier.send_registration(notice)
    except Exception:
        logger.exception("failed to send registration notice for %s", notice.details.type)
        return False
    return True
