import contextvars

_actor_id: contextvars.ContextVar[str] = contextvars.ContextVar("actor_id", default="-")
_team: contextvars.ContextVar[str] = contextvars.ContextVar("team", default="-")
_request_id: contextvars.ContextVar[str] = contextvars.ContextVar("request_id", default="-")
_route: contextvars.ContextVar[str] = contextvars.ContextVar("route", default="-")


def set_actor(actor_id: str, team: str | None = None) -> None:
    _actor_id.set(actor_id or "-")
    if team:
        _team.set(team)


def get_actor_id() -> str:
    return _actor_id.get()


def get_team() -> str:
    return _team.get()


def set_request(request_id: str, route: str) -> None:
    _request_id.set(request_id)
    _route.set(route)


def get_request_id() -> str:
    return _request_id.get()


def get_route() -> str:
    return _route.get()


def clear_context() -> None:
    for var in (_actor_id, _team, _request_id, _route):
        var.set("-")
