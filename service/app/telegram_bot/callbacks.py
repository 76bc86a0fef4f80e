"""
Inline button payloads.

Callback data format: "action" or "action:argument"
Actions:
- links_page:{page}            : show page N of /links
- delete_link:{fs_object_id}   : delete one shared link
- delete_link:#{digest}        : same, for ids too long to fit
- delete_link_cancel           : abort /delete
- delete_account_confirm       : confirm /deleteaccount
- delete_account_cancel        : abort /deleteaccount

Payloads are parsed once, at the router boundary, into CallbackCommand.
"""

import hashlib
from dataclasses import dataclass
from enum import Enum
from typing import Optional

from app.errors import InvalidCallbackData

MAX_CALLBACK_DATA_BYTES = 64  # Telegram limit
DIGEST_PREFIX = "#"


class CallbackAction(str, Enum):
    LINKS_PAGE = "links_page"
    DELETE_LINK = "delete_link"
    DELETE_LINK_CANCEL = "delete_link_cancel"
    DELETE_ACCOUNT_CONFIRM = "delete_account_confirm"
    DELETE_ACCOUNT_CANCEL = "delete_account_cancel"


ACTIONS_WITH_ARGUMENT = frozenset({CallbackAction.LINKS_PAGE, CallbackAction.DELETE_LINK})


@dataclass(frozen=True)
class CallbackCommand:
    action: CallbackAction
    argument: Optional[str] = None

    @property
    def page(self) -> int:
        return int(self.argument)

    @property
    def digest(self) -> Optional[str]:
        """Object digest carried instead of a full id, if any."""
        if self.argument and self.argument.startswith(DIGEST_PREFIX):
            return self.argument[len(DIGEST_PREFIX):]
        return None

    def _raw(self) -> str:
        return self.action.value if self.argument is None else f"{self.action.value}:{self.argument}"

    def fits(self) -> bool:
        return len(self._raw().encode("utf-8")) <= MAX_CALLBACK_DATA_BYTES

    def encode(self) -> str:
        if not self.fits():
            raise ValueError(f"Callback data too long: {self._raw()!r}")
        return self._raw()


def object_digest(fs_object_id: str) -> str:
    return hashlib.sha256(fs_object_id.encode("utf-8")).hexdigest()[:16]


def links_page(page: int) -> CallbackCommand:
    return CallbackCommand(CallbackAction.LINKS_PAGE, str(page))


def delete_link(fs_object_id: str) -> CallbackCommand:
    """
    Delete button for one object.

    Backend ids are opaque and may not fit in callback data; those are
    sent as a digest and resolved against the file list on press.
    """
    command = CallbackCommand(CallbackAction.DELETE_LINK, fs_object_id)
    if command.fits() and not fs_object_id.startswith(DIGEST_PREFIX):
        return command
    return CallbackCommand(CallbackAction.DELETE_LINK, DIGEST_PREFIX + object_digest(fs_object_id))


def parse_callback_data(data: Optional[str]) -> CallbackCommand:
    """Parse raw callback data, raising InvalidCallbackData on anything unexpected."""
    if not data:
        raise InvalidCallbackData(data, "empty")

    raw_action, _, argument = data.partition(":")

    try:
        action = CallbackAction(raw_action)
    except ValueError:
        raise InvalidCallbackData(data, "unknown action") from None

    if action not in ACTIONS_WITH_ARGUMENT:
        if argument:
            raise InvalidCallbackData(data, "unexpected argument")
        return CallbackCommand(action)

    if not argument:
        raise InvalidCallbackData(data, "missing argument")

    if action == CallbackAction.LINKS_PAGE:
        argument = str(parse_page(argument, data))

    return CallbackCommand(action, argument)


def parse_page(token: Optional[str], data: Optional[str] = None) -> int:
    """Page numbers are positive ASCII integers; anything else is an invalid page."""
    if not token or not (token.isascii() and token.isdigit()) or int(token) < 1:
        raise InvalidCallbackData(data if data is not None else token, "invalid page")
    return int(token)
