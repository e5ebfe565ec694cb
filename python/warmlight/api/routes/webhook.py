"""Telegram webhook endpoint.

Telegram POSTs one Update per call and retries on non-2xx responses, so the
handler always answers 200 once the secret is accepted; handling errors are
reported to the user in chat by the dispatcher.
"""

import secrets

from fastapi import APIRouter, Depends, Header

from warmlight.api.deps import get_dispatcher
from warmlight.bot.dispatcher import UpdateDispatcher
from warmlight.errors import ErrorCode, ForbiddenError
from warmlight.logging import get_logger
from warmlight.responses import success_response
from warmlight.schemas.telegram import Update

logger = get_logger(__name__)

router = APIRouter()

SECRET_TOKEN_HEADER = "X-Telegram-Bot-Api-Secret-Token"


def verify_webhook_secret(
    dispatcher: UpdateDispatcher = Depends(get_dispatcher),
    secret_token: str | None = Header(default=None, alias=SECRET_TOKEN_HEADER),
) -> None:
    """Reject calls without the configured secret.

    Raises:
        ForbiddenError: If a secret is configured and the header does not match.
    """
    expected = dispatcher.settings.telegram_webhook_secret
    if not expected:
        return
    if secret_token is None or not secrets.compare_digest(secret_token, expected):
        logger.warning("webhook_secret_rejected")
        raise ForbiddenError(ErrorCode.E_WEBHOOK_FORBIDDEN, "Invalid webhook secret")


@router.post("/telegram/webhook", dependencies=[Depends(verify_webhook_secret)])
def telegram_webhook(
    update: Update,
    dispatcher: UpdateDispatcher = Depends(get_dispatcher),
) -> dict:
    """Handle one Telegram update.

    Runs in the threadpool: the dispatcher does blocking database and Bot API calls.
    """
    dispatcher.handle_update(update)
    return success_response({"ok": True})
