from __future__ import annotations

from contextvars import ContextVar


_REQUEST_ID_CTX: ContextVar[str | None] = ContextVar("request_id", default=None)
_BOT_ID_CTX: ContextVar[str | None] = ContextVar("bot_id", default=None)
_INSTANCE_NAME_CTX: ContextVar[str | None] = ContextVar("instance_name", default=None)


def set_request_context(
    *, request_id: str | None = None, bot_id: str | None = None, instance_name: str | None = None
) -> None:
    if request_id is not None:
        _REQUEST_ID_CTX.set(request_id)
    if bot_id is not None:
        _BOT_ID_CTX.set(bot_id)
    if instance_name is not None:
        _INSTANCE_NAME_CTX.set(instance_name)


def get_request_id() -> str | None:
    return _REQUEST_ID_CTX.get()


def get_bot_id() -> str | None:
    return _BOT_ID_CTX.get()


def get_instance_name() -> str | None:
    return _INSTANCE_NAME_CTX.get()


def clear_request_context() -> None:
    _REQUEST_ID_CTX.set(None)
    _BOT_ID_CTX.set(None)
    _INSTANCE_NAME_CTX.set(None)
