from functools import wraps
from typing import Callable, Iterable, Optional
from flask import abort
from flask_jwt_extended import verify_jwt_in_request
from erp.constants.modules import LEVEL_READ
from erp.services.policy import check_access


def require_access(
    module: Optional[str] = None,
    level: str = LEVEL_READ,
    admin: bool = False,
    any_roles: Iterable[str] = (),
    all_roles: Iterable[str] = (),
    check: Optional[Callable[[], bool]] = None,
):
    """Guard a view on a verified JWT plus module level / admin flag / role membership.

    The admin claim satisfies every module and role requirement. ``check`` is an extra
    callable evaluated last; returning False denies with 403.
    """
    def outer(fn):
        @wraps(fn)
        def wrapper(*args, **kwargs):
            verify_jwt_in_request()
            denial = check_access(module, level, admin, any_roles, all_roles)
            if denial:
                abort(403, description=denial)
            if check is not None and not check():
                abort(403, description='Access check failed')
            return fn(*args, **kwargs)
        return wrapper
    return outer


def require_session(fn):
    """Any valid token, anonymous signing sessions included."""
    @wraps(fn)
    def wrapper(*args, **kwargs):
        verify_jwt_in_request()
        return fn(*args, **kwargs)
    return wrapper
