"""Send-message step handlers (email over SMTP, Telegram bot messages).

Recipient, subject and body fields are taken from the step configuration
first, then from the trigger input, then from the trigger's ``body``
envelope, and every chosen value is run through the template resolver.
"""

from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from email.utils import make_msgid
from typing import (
    Any,
    Dict,
    Optional,
)

import aiosmtplib
import httpx

from app.core.config import settings
from app.core.logging import logger
from app.core.stores.base import CredentialStore
from app.core.workflow.configs import (
    EmailActionConfig,
    TelegramActionConfig,
    parse_step_config,
)
from app.core.workflow.errors import (
    CredentialError,
    StepConfigurationError,
    TransportError,
)
from app.core.workflow.handlers.base import (
    StepHandler,
    first_present,
    load_credential,
    trigger_field,
    utc_now_iso,
)
from app.core.workflow.schema import (
    ExecutionContext,
    Step,
    StepType,
)
from app.core.workflow.templating import resolve


class EmailActionHandler(StepHandler):
    """Sends one email through the SMTP account of an ``email`` credential.

    Credential data keys:
        email: Sender address, also used as the SMTP username.
        appPassword: SMTP password (an app password for Gmail).
        smtpHost / smtpPort: Optional overrides of the configured server.
    """

    step_types = (StepType.EMAIL_ACTION.value,)

    def __init__(
        self,
        credential_store: CredentialStore,
        smtp_host: Optional[str] = None,
        smtp_port: Optional[int] = None,
    ):
        """Initialize the handler."""
        self.credential_store = credential_store
        self.smtp_host = smtp_host or settings.SMTP_HOST
        self.smtp_port = smtp_port or settings.SMTP_PORT

    async def execute(self, step: Step, ctx: ExecutionContext) -> Dict[str, Any]:
        """Resolve the message fields and send the email."""
        config: EmailActionConfig = parse_step_config(step)

        credential = await load_credential(self.credential_store, config.credential_id, "email", "Email")
        from_email = credential.data.get("email")
        app_password = credential.data.get("appPassword")
        if not from_email or not app_password:
            raise CredentialError("Email credential missing email or app password")

        recipient = resolve(first_present(config.to, trigger_field(ctx, "email")), ctx)
        subject = resolve(first_present(config.subject, trigger_field(ctx, "subject")), ctx)
        body = resolve(first_present(config.body, trigger_field(ctx, "message")), ctx)

        if not recipient:
            raise StepConfigurationError("No recipient defined")

        message_id = make_msgid()
        message = MIMEMultipart("alternative")
        message["From"] = from_email
        message["To"] = recipient
        message["Subject"] = subject
        message["Message-ID"] = message_id
        message.attach(MIMEText(body, "plain"))
        message.attach(MIMEText(body.replace("\n", "<br>"), "html"))

        host = credential.data.get("smtpHost") or self.smtp_host
        port = int(credential.data.get("smtpPort") or self.smtp_port)

        try:
            await aiosmtplib.send(
                message,
                hostname=host,
                port=port,
                username=from_email,
                password=app_password,
                use_tls=port == 465,
                start_tls=port == 587,
                timeout=settings.SMTP_TIMEOUT,
            )
        except (aiosmtplib.SMTPException, OSError) as e:
            raise TransportError(f"Failed to send email: {e}") from e

        logger.info("email_sent", step_id=step.id, to=recipient, smtp_host=host)
        return {
            "message": "Email sent successfully",
            "messageId": message_id,
            "from": from_email,
            "to": recipient,
            "subject": subject,
            "sentAt": utc_now_iso(),
        }


class TelegramActionHandler(StepHandler):
    """Sends one message through the Bot API token of a ``telegram`` credential."""

    step_types = (StepType.TELEGRAM_ACTION.value,)

    def __init__(
        self,
        credential_store: CredentialStore,
        http_client: httpx.AsyncClient,
        api_base: Optional[str] = None,
    ):
        """Initialize the handler."""
        self.credential_store = credential_store
        self.http_client = http_client
        self.api_base = (api_base or settings.TELEGRAM_API_BASE).rstrip("/")

    async def execute(self, step: Step, ctx: ExecutionContext) -> Dict[str, Any]:
        """Resolve the chat id and text and post the message."""
        config: TelegramActionConfig = parse_step_config(step)

        credential = await load_credential(self.credential_store, config.credential_id, "telegram", "Telegram")
        bot_token = credential.data.get("botToken")
        if not bot_token:
            raise CredentialError("Bot token not configured in credential")

        chat_id = resolve(first_present(config.chat_id, trigger_field(ctx, "chatId")), ctx)
        text = resolve(first_present(config.message, trigger_field(ctx, "message")), ctx)

        if not chat_id:
            raise StepConfigurationError("No chat ID specified")

        try:
            response = await self.http_client.post(
                f"{self.api_base}/bot{bot_token}/sendMessage",
                json={"chat_id": chat_id, "text": text, "parse_mode": "HTML"},
                timeout=settings.HTTP_TOOL_TIMEOUT,
            )
        except httpx.HTTPError as e:
            raise TransportError(f"Telegram send failed: {str(e) or 'Unknown error'}") from e

        try:
            payload = response.json()
        except ValueError:
            payload = {}
        if not isinstance(payload, dict):
            payload = {}

        if response.is_error or not payload.get("ok"):
            description = payload.get("description") or response.reason_phrase or "Telegram API error"
            raise TransportError(f"Telegram send failed: {description}")

        logger.info("telegram_message_sent", step_id=step.id, chat_id=chat_id)
        return {
            "message": "Telegram message sent successfully",
            "messageId": (payload.get("result") or {}).get("message_id"),
            "chatId": chat_id,
            "text": text,
            "sentAt": utc_now_iso(),
        }
