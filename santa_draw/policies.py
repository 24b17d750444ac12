from __future__ import annotations

from flask import redirect, session, url_for
from flask.views import MethodView
from flask_login import current_user

from .extensions import login_manager

ADMIN_SESSION_KEY = "is_admin"


def is_admin_user() -> bool:
    return bool(session.get(ADMIN_SESSION_KEY))


def grant_admin() -> None:
    session[ADMIN_SESSION_KEY] = True


def revoke_admin() -> None:
    session.pop(ADMIN_SESSION_KEY, None)


class LoginRequiredMixin(MethodView):
    def dispatch_request(self, *args, **kwargs):
        if not current_user.is_authenticated:
            # Flashes the login message and sends them back to the name picker
            return login_manager.unauthorized()
        return super().dispatch_request(*args, **kwargs)


class AdminRequiredMixin(MethodView):
    def dispatch_request(self, *args, **kwargs):
        if not is_admin_user():
            return redirect(url_for("admin.login"))
        return super().dispatch_request(*args, **kwargs)
