from __future__ import annotations

import io

from flask import (
    Blueprint,
    abort,
    current_app,
    flash,
    jsonify,
    redirect,
    render_template,
    request,
    send_file,
    session,
    url_for,
)
from flask.views import MethodView
from flask_login import current_user, login_user, logout_user

from ..errors import AlreadyDrawn, StoreUnavailable, TargetTaken
from ..extensions import db
from ..models import Participant
from ..policies import LoginRequiredMixin
from ..security import issue_ticket_token, read_ticket_token
from ..services import get_store
from ..services.draws import DrawSession, DrawState
from ..services.roster import pending_participants

game_bp = Blueprint("game", __name__)

DRAW_SESSION_KEY = "draw"


def load_draw_session() -> DrawSession:
    cfg = current_app.config
    return DrawSession.from_dict(
        session.get(DRAW_SESSION_KEY),
        steps=cfg["SHUFFLE_STEPS"],
        interval=cfg["SHUFFLE_INTERVAL_MS"] / 1000.0,
    )


def save_draw_session(draw: DrawSession) -> None:
    if draw.state is DrawState.IDLE:
        session.pop(DRAW_SESSION_KEY, None)
    else:
        session[DRAW_SESSION_KEY] = draw.to_dict()


def _wants_json() -> bool:
    return request.accept_mimetypes.best_match(["application/json", "text/html"]) == "application/json"


def _draw_payload(draw: DrawSession) -> dict:
    payload = draw.to_dict()
    payload.pop("shuffle_started_at", None)
    payload["shuffle_steps"] = draw.steps
    payload["shuffle_interval_ms"] = current_app.config["SHUFFLE_INTERVAL_MS"]
    return payload


class LoginView(MethodView):
    """The name picker. Only participants who have not drawn yet are listed."""

    def get(self):
        if current_user.is_authenticated and load_draw_session().state is not DrawState.IDLE:
            return redirect(url_for("game.draw"))

        try:
            roster = get_store().list()
        except StoreUnavailable as e:
            flash(str(e), "error")
            roster = []

        return render_template(
            "game/login.html",
            participants=roster,
            pending=pending_participants(roster),
        )


class EnterView(MethodView):
    def post(self, participant_id: int):
        p = db.session.get(Participant, participant_id)
        if p is None:
            abort(404)
        if p.has_drawn:
            flash(f"{p.name} has already drawn.", "error")
            return redirect(url_for("game.login"))

        try:
            roster = get_store().list()
        except StoreUnavailable as e:
            flash(str(e), "error")
            return redirect(url_for("game.login"))

        draw = load_draw_session()
        draw.exit()
        draw.enter(p.to_entry(), roster)
        login_user(p)
        save_draw_session(draw)
        current_app.logger.info("Participant %s entered the draw (%d cards)", p.id, len(draw.pool))
        return redirect(url_for("game.draw"))


class DrawView(LoginRequiredMixin):
    def get(self):
        draw = load_draw_session()
        if draw.state is DrawState.IDLE:
            return redirect(url_for("game.login"))
        if draw.state is DrawState.COMMITTED:
            return redirect(url_for("game.result"))
        save_draw_session(draw)
        return render_template("game/draw.html", draw=draw, payload=_draw_payload(draw))


class DrawStateView(LoginRequiredMixin):
    def get(self):
        draw = load_draw_session()
        save_draw_session(draw)
        return jsonify(_draw_payload(draw))


class ShuffleView(LoginRequiredMixin):
    def post(self):
        draw = load_draw_session()
        steps = draw.shuffle()
        save_draw_session(draw)

        if _wants_json():
            payload = _draw_payload(draw)
            payload["steps"] = steps or []
            payload["ignored"] = steps is None
            return jsonify(payload)
        return redirect(url_for("game.draw"))


class SelectView(LoginRequiredMixin):
    def post(self):
        draw = load_draw_session()
        try:
            card_id = int(request.form.get("card_id", ""))
        except ValueError:
            card_id = None

        if card_id is None or not draw.select(card_id):
            if draw.state is DrawState.SHUFFLING:
                flash("Hold on, the cards are still shuffling.", "info")
            elif draw.state is DrawState.POOL_READY:
                flash("Shuffle the deck first.", "info")

        save_draw_session(draw)
        return redirect(url_for("game.draw"))


class ConfirmView(LoginRequiredMixin):
    def post(self):
        draw = load_draw_session()
        try:
            target = draw.confirm(get_store())
        except TargetTaken as e:
            flash(f"{e} Pick another card.", "error")
            target = None
        except AlreadyDrawn as e:
            flash(str(e), "error")
            draw.exit()
            save_draw_session(draw)
            logout_user()
            return redirect(url_for("game.login"))
        except StoreUnavailable as e:
            flash(str(e), "error")
            target = None

        save_draw_session(draw)
        if target is None:
            return redirect(url_for("game.draw"))
        return redirect(url_for("game.result"))


class CancelView(LoginRequiredMixin):
    def post(self):
        draw = load_draw_session()
        draw.cancel()
        save_draw_session(draw)
        if draw.state is DrawState.IDLE:
            logout_user()
            return redirect(url_for("game.login"))
        return redirect(url_for("game.draw"))


class ExitView(MethodView):
    def post(self):
        draw = load_draw_session()
        draw.exit()
        save_draw_session(draw)
        if current_user.is_authenticated:
            logout_user()
        return redirect(url_for("game.login"))


class ResultView(LoginRequiredMixin):
    def get(self):
        draw = load_draw_session()
        if draw.state is not DrawState.COMMITTED:
            return redirect(url_for("game.draw"))

        token = issue_ticket_token(draw.actor.name, draw.committed_target.name)
        return render_template(
            "game/result.html",
            picker=draw.actor,
            target=draw.committed_target,
            ticket_url=url_for("game.ticket", token=token),
            ticket_minutes=max(1, current_app.config["TICKET_TTL_SECONDS"] // 60),
        )


class TicketView(MethodView):
    """Serves the ticket as an SVG image to whoever holds a live token."""

    def get(self, token: str):
        try:
            ticket = read_ticket_token(token)
        except ValueError:
            abort(404)

        body = render_template(
            "ticket.svg",
            picker=ticket["picker"],
            target=ticket["target"],
            title=current_app.config["EVENT_TITLE"],
        )
        return send_file(
            io.BytesIO(body.encode("utf-8")),
            mimetype="image/svg+xml",
            as_attachment=bool(request.args.get("download")),
            download_name=f"Secret_Santa_{ticket['picker'] or 'Player'}.svg",
            max_age=0,
        )


game_bp.add_url_rule("/", view_func=LoginView.as_view("login"))
game_bp.add_url_rule("/login/<int:participant_id>", view_func=EnterView.as_view("enter"), methods=["POST"])
game_bp.add_url_rule("/draw", view_func=DrawView.as_view("draw"))
game_bp.add_url_rule("/draw/state", view_func=DrawStateView.as_view("draw_state"))
game_bp.add_url_rule("/draw/shuffle", view_func=ShuffleView.as_view("shuffle"), methods=["POST"])
game_bp.add_url_rule("/draw/select", view_func=SelectView.as_view("select"), methods=["POST"])
game_bp.add_url_rule("/draw/confirm", view_func=ConfirmView.as_view("confirm"), methods=["POST"])
game_bp.add_url_rule("/draw/cancel", view_func=CancelView.as_view("cancel"), methods=["POST"])
game_bp.add_url_rule("/draw/exit", view_func=ExitView.as_view("exit"), methods=["POST"])
game_bp.add_url_rule("/result", view_func=ResultView.as_view("result"))
game_bp.add_url_rule("/ticket/<token>.svg", view_func=TicketView.as_view("ticket"))
