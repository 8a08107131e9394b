import contextvars

_request_id: contextvars.ContextVar[str] = contextvars.ContextVar("request_id", default="-")
_actor_email: contextvars.ContextVar[str] = contextvars.ContextVar("actor_email", default="-")


def set_request_id(request_id: str) -> None:
    _request_id.set(request_id)


def get_request_id() -> str:
    return _request_id.get()


def set_actor_email(email: str) -> None:
    _actor_email.set(email)


def get_actor_email() -> str:
    return _actor_email.get()


def clear_context() -> None:
    _request_id.set("-")
    _actor_email.set("-")
