from __future__ import annotations

import random

from flask import Blueprint, current_app, flash, redirect, render_template, request, url_for
from flask.views import MethodView

from ..errors import InvalidInput, StoreUnavailable
from ..policies import AdminRequiredMixin, grant_admin, is_admin_user, revoke_admin
from ..security import verify_admin_password
from ..services import get_store
from ..services.roster import add_participant, clear_roster, reset_draws

admin_bp = Blueprint("admin", __name__, url_prefix="/admin")

WRONG_PASSWORD_MESSAGES = (
    "Nice try! Santa is watching you... 👀",
    "Access Denied! You are on the Naughty List. 📜",
    "Trying to peek? Where is your holiday spirit? 🎄",
    "Ho Ho No! Wrong password. 🎅",
    "Password incorrect. An elf has been dispatched to your location. 🧝",
    "Coal for you this year! Try again. 🪨",
)

CONFIRM_PROMPTS = {
    "reset": "This will clear all current matches.",
    "clear": "This will delete ALL participants.",
}


class LoginView(MethodView):
    def get(self):
        if is_admin_user():
            return redirect(url_for("admin.dashboard"))
        return render_template("admin/login.html")

    def post(self):
        if verify_admin_password(request.form.get("password")):
            grant_admin()
            current_app.logger.info("Admin panel unlocked")
            return redirect(url_for("admin.dashboard"))

        current_app.logger.warning("Rejected admin password from %s", request.remote_addr)
        flash(random.choice(WRONG_PASSWORD_MESSAGES), "error")
        return render_template("admin/login.html"), 401


class LogoutView(MethodView):
    def get(self):
        revoke_admin()
        return redirect(url_for("game.login"))


class DashboardView(AdminRequiredMixin):
    def get(self):
        try:
            participants = get_store().list()
        except StoreUnavailable as e:
            flash(str(e), "error")
            participants = []

        confirm_action = request.args.get("confirm")
        return render_template(
            "admin/dashboard.html",
            participants=participants,
            confirm_action=confirm_action if confirm_action in CONFIRM_PROMPTS else None,
            confirm_prompt=CONFIRM_PROMPTS.get(confirm_action),
        )


class AddParticipantView(AdminRequiredMixin):
    def post(self):
        try:
            p = add_participant(get_store(), request.form.get("name"))
        except (InvalidInput, StoreUnavailable) as e:
            flash(str(e), "error")
        else:
            flash(f"Added {p.name}.", "success")
        return redirect(url_for("admin.dashboard"))


class ConfirmedActionView(AdminRequiredMixin):
    """Destructive roster actions; they only run once the form says confirm=yes."""

    action = ""

    def run(self, store) -> str:
        raise NotImplementedError

    def post(self):
        if request.form.get("confirm") != "yes":
            return redirect(url_for("admin.dashboard", confirm=self.action))
        try:
            message = self.run(get_store())
        except StoreUnavailable as e:
            flash(str(e), "error")
        else:
            current_app.logger.info("Admin action %s: %s", self.action, message)
            flash(message, "success")
        return redirect(url_for("admin.dashboard"))


class ResetDrawsView(ConfirmedActionView):
    action = "reset"

    def run(self, store) -> str:
        count = reset_draws(store)
        return f"Draws reset for {count} participants."


class ClearRosterView(ConfirmedActionView):
    action = "clear"

    def run(self, store) -> str:
        count = clear_roster(store)
        return f"Deleted {count} participants."


admin_bp.add_url_rule("/login", view_func=LoginView.as_view("login"), methods=["GET", "POST"])
admin_bp.add_url_rule("/logout", view_func=LogoutView.as_view("logout"))
admin_bp.add_url_rule("", view_func=DashboardView.as_view("dashboard"))
admin_bp.add_url_rule("/participants", view_func=AddParticipantView.as_view("add_participant"), methods=["POST"])
admin_bp.add_url_rule("/reset", view_func=ResetDrawsView.as_view("reset"), methods=["POST"])
admin_bp.add_url_rule("/clear", view_func=ClearRosterView.as_view("clear"), methods=["POST"])
