"""SMTP email channel.

``smtplib`` is blocking, so delivery runs in a worker thread.
"""

from __future__ import annotations

import asyncio
import logging
import smtplib
import ssl
from collections.abc import Sequence
from email.mime.text import MIMEText

from solana_whale_tracker.alerter.channels.base import BaseChannel
from solana_whale_tracker.alerter.models import FormattedAlert
from solana_whale_tracker.exceptions import ChannelDeliveryFailure

logger = logging.getLogger(__name__)


class EmailChannel(BaseChannel):
    """Emails the plain-text alert to a fixed recipient list."""

    name = "email"

    def __init__(
        self,
        *,
        host: str | None,
        port: int = 587,
        user: str | None = None,
        password: str | None = None,
        sender: str | None = None,
        recipients: Sequence[str] = (),
        use_ssl: bool = False,
        timeout_seconds: float = 10.0,
    ) -> None:
        super().__init__()
        self._host = host
        self._port = port
        self._user = user
        self._password = password
        self._sender = sender
        self._recipients = list(recipients)
        self._use_ssl = use_ssl
        self._timeout = timeout_seconds

    @property
    def is_configured(self) -> bool:
        return bool(self._host and self._sender and self._recipients)

    def _build_message(self, alert: FormattedAlert) -> MIMEText:
        msg = MIMEText(alert.plain_text, "plain", "utf-8")
        msg["Subject"] = alert.title
        msg["From"] = self._sender or ""
        msg["To"] = ", ".join(self._recipients)
        return msg

    def _send_sync(self, msg: MIMEText) -> None:
        assert self._host is not None
        context = ssl.create_default_context()
        if self._use_ssl:
            with smtplib.SMTP_SSL(self._host, self._port, context=context, timeout=self._timeout) as server:
                if self._user and self._password:
                    server.login(self._user, self._password)
                server.send_message(msg)
        else:
            with smtplib.SMTP(self._host, self._port, timeout=self._timeout) as server:
                server.starttls(context=context)
                if self._user and self._password:
                    server.login(self._user, self._password)
                server.send_message(msg)

    async def _deliver(self, alert: FormattedAlert) -> None:
        msg = self._build_message(alert)
        try:
            await asyncio.to_thread(self._send_sync, msg)
        except smtplib.SMTPAuthenticationError as e:
            raise ChannelDeliveryFailure(self.name, f"authentication failed: {e}") from e
        except (smtplib.SMTPException, OSError) as e:
            raise ChannelDeliveryFailure(self.name, str(e)) from e
        logger.debug("Email alert sent to %d recipients", len(self._recipients))
