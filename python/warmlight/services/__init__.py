"""Business logic services.

Services own the store work and are called by the bot handlers and the
Celery tasks.
"""

from warmlight.services.migration import migrate_library
from warmlight.services.tokens import issue_token, redeem_token, revoke_token
from warmlight.services.users import get_or_create_user

__all__ = [
    "get_or_create_user",
    "issue_token",
    "redeem_token",
    "revoke_token",
    "migrate_library",
]
