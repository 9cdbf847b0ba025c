from collections import defaultdict, deque
from datetime import datetime, timedelta, timezone
from typing import Deque, Dict

from fastapi import HTTPException, status

from app.core.settings import settings

_failures: Dict[str, Deque[datetime]] = defaultdict(deque)
_lockouts: Dict[str, datetime] = {}


def _prune(employee_id: str, window: timedelta, now: datetime) -> None:
    dq = _failures[employee_id]
    while dq and now - dq[0] > window:
        dq.popleft()


def check_login_lockout(employee_id: str) -> None:
    now = datetime.now(timezone.utc)
    locked_until = _lockouts.get(employee_id)
    if locked_until and locked_until > now:
        raise HTTPException(
            status_code=status.HTTP_429_TOO_MANY_REQUESTS,
            detail={"code": "login_locked", "message": "Too many failed logins; try again later"},
        )
    if locked_until:
        _lockouts.pop(employee_id, None)


def register_login_attempt(employee_id: str, success: bool) -> None:
    """Track failures per employee id; lock the id once the limit is reached."""
    if success:
        _failures.pop(employee_id, None)
        _lockouts.pop(employee_id, None)
        return
    now = datetime.now(timezone.utc)
    window = timedelta(minutes=settings.login_lockout_minutes)
    _prune(employee_id, window, now)
    dq = _failures[employee_id]
    dq.append(now)
    if len(dq) >= settings.login_attempt_limit:
        _lockouts[employee_id] = now + window
        dq.clear()


def reset_login_attempts() -> None:
    _failures.clear()
    _lockouts.clear()
