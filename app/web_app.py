from __future__ import annotations

import logging
from typing import Any, Callable

from flask import (
    Flask,
    Response,
    abort,
    current_app,
    g,
    jsonify,
    request,
    session,
)
from sqlalchemy.orm import Session
from werkzeug.exceptions import HTTPException

from models.base import engine, get_session
from app.base_service import ServiceResponse
from app.comment_service import CommentService
from app.config import Settings, configure_logging, get_settings
from app.demo_data import seed_membership_plans
from app.init_db import init_db
from app.member_service import MemberService
from app.query_cache import QueryCache
from app.schemas import (
    AvailabilityRead,
    CommentRead,
    MemberRead,
    PlanRead,
    SessionRead,
    SubscriptionRead,
    TrainerRead,
    UserRead,
    camelize,
    dump,
)
from app.session_service import SessionService
from app.session_utils import SESSION_DURATIONS, duration_options, generate_time_slots
from app.subscription_plan_service import SubscriptionPlanService
from app.subscription_service import SubscriptionService
from app.trainer_service import TrainerService
from app.user_service import UserService

logger = logging.getLogger(__name__)

ERROR_STATUS = {
    "validation_error": 400,
    "schedule_conflict": 400,
    "invalid_transition": 400,
    "duplicate": 409,
    "foreign_key": 400,
    "constraint_violation": 400,
    "not_found": 404,
    "permission_denied": 403,
    "network_error": 503,
    "unexpected": 500,
}

SESSION_ACTIONS = {
    "confirm": "confirm_session",
    "start": "start_session",
    "no-show": "mark_no_show",
}

SUBSCRIPTION_ACTIONS = {
    "cancel": "cancel_subscription",
    "freeze": "freeze_subscription",
    "reactivate": "reactivate_subscription",
}

TEST_MEMBER = {
    "firstName": "Test",
    "lastName": "Member",
    "email": "test.member@example.com",
    "phone": "+1-555-0123",
    "membershipStatus": "active",
    "emergencyContact": {
        "name": "Emergency Contact",
        "phone": "+1-555-0456",
        "relationship": "Spouse",
    },
    "medicalConditions": "None",
    "fitnessGoals": "General fitness and weight loss",
    "preferredTrainingTimes": ["morning", "evening"],
}


# -------------------------------------------------
# Request plumbing
# -------------------------------------------------
def db() -> Session:
    """One SQLAlchemy session per request, closed on teardown."""
    if "db" not in g:
        g.db = current_app.extensions["session_factory"]()
    return g.db


def service(cls):
    return cls(
        db(),
        current_app.extensions["query_cache"],
        current_app.extensions["settings"],
    )


def payload() -> dict:
    return request.get_json(silent=True) or {}


def require_role(*roles: str):
    """Abort with 403 unless the current session role is in the allowed roles."""
    current = session.get("role")
    normalized_current = current.lower() if isinstance(current, str) else current
    allowed = {role.lower() for role in roles}
    if normalized_current not in allowed:
        abort(403)


def error_body(response: ServiceResponse, message: str) -> tuple[Response, int]:
    status = ERROR_STATUS.get(response.code or "", 400)
    body: dict[str, Any] = {"error": response.error, "message": message}
    if response.code:
        body["code"] = response.code
    if response.details:
        body["details"] = response.details
    return jsonify(body), status


def respond(
    response: ServiceResponse,
    key: str,
    *,
    schema=None,
    message: str,
    status: int = 200,
    render: Callable[[Any], Any] | None = None,
):
    """Turn a ServiceResponse into JSON: {key: data} on success, an error body otherwise."""
    if not response.ok:
        return error_body(response, message)
    if render is not None:
        data = render(response.data)
    elif schema is not None:
        data = dump(schema, response.data)
    else:
        data = camelize(response.data)
    body = {key: data}
    if response.details:
        body.update(camelize(response.details))
    return jsonify(body), status


def _flag(name: str) -> bool | None:
    value = request.args.get(name)
    if value is None or value == "":
        return None
    return value.lower() == "true"


def _args(mapping: dict[str, str]) -> dict[str, Any]:
    """Pick non-empty query args, renaming URL names to filter field aliases."""
    return {
        field: request.args[arg]
        for arg, field in mapping.items()
        if request.args.get(arg)
    }


# -------------------------------------------------
# App factory
# -------------------------------------------------
def create_app(
    session_factory: Callable[[], Session] | None = None,
    cache: QueryCache | None = None,
    settings: Settings | None = None,
) -> Flask:
    """
    Build the app. One QueryCache is shared by all request threads of the
    process; deploy it as one process with several threads
    (`gunicorn --workers 1 --threads N`) so every read sees every write.
    """
    settings = settings or get_settings()
    configure_logging(settings.log_level)

    app = Flask(__name__)
    app.config["SECRET_KEY"] = settings.secret_key
    app.extensions["settings"] = settings
    app.extensions["session_factory"] = session_factory or get_session
    app.extensions["query_cache"] = cache or QueryCache(
        stale_seconds=settings.cache_stale_seconds,
        gc_seconds=settings.cache_gc_seconds,
    )

    if session_factory is None:
        # Ensure all ORM tables exist before the first request
        init_db(engine)

    @app.teardown_appcontext
    def _close_db(exc):
        db_session = g.pop("db", None)
        if db_session is not None:
            db_session.close()

    @app.errorhandler(HTTPException)
    def _http_error(exc: HTTPException):
        return jsonify({"error": exc.name, "message": exc.description}), exc.code

    @app.errorhandler(Exception)
    def _unexpected(exc: Exception):
        logger.exception("Unhandled error on %s %s", request.method, request.path)
        return jsonify({"error": "Internal server error", "message": str(exc)}), 500

    register_routes(app)
    return app


def register_routes(app: Flask) -> None:
    # -------------------------------------------------
    # Auth
    # -------------------------------------------------
    @app.post("/api/auth/login")
    def login():
        body = payload()
        result = service(UserService).authenticate(body.get("email", ""), body.get("password", ""))
        if not result.ok:
            return error_body(result, "Failed to sign in")
        user = result.data
        session.clear()
        session["user_id"] = user.id
        session["role"] = user.role
        session["trainer_id"] = user.id if user.role == "trainer" else None
        logger.info("User %s signed in as %s", user.id, user.role)
        return jsonify({"user": dump(UserRead, user)})

    @app.post("/api/auth/logout")
    def logout():
        session.clear()
        return jsonify({"success": True})

    @app.get("/api/auth/me")
    def current_user():
        user_id = session.get("user_id")
        if not user_id:
            abort(401)
        return respond(
            service(UserService).get_user(user_id), "user", schema=UserRead, message="Failed to fetch user"
        )

    @app.put("/api/auth/me")
    def update_current_user():
        user_id = session.get("user_id") or abort(401)
        return respond(
            service(UserService).update_profile(user_id, payload()),
            "user",
            schema=UserRead,
            message="Failed to update profile",
        )

    @app.post("/api/auth/password")
    def change_password():
        user_id = session.get("user_id") or abort(401)
        result = service(UserService).change_password(user_id, payload())
        if not result.ok:
            return error_body(result, "Failed to change password")
        return jsonify({"success": True})

    # -------------------------------------------------
    # Members
    # -------------------------------------------------
    @app.get("/api/members")
    def members_list():
        filters = _args(
            {
                "status": "status",
                "search": "searchTerm",
                "joinDateFrom": "joinDateFrom",
                "joinDateTo": "joinDateTo",
            }
        )
        has_contact = _flag("hasEmergencyContact")
        if has_contact is not None:
            filters["hasEmergencyContact"] = has_contact
        result = service(MemberService).list_members(filters)
        if not result.ok and result.code != "validation_error":
            return jsonify({"error": result.error, "message": "Failed to fetch members"}), 500
        return respond(result, "members", schema=MemberRead, message="Failed to fetch members")

    @app.post("/api/members")
    def members_create():
        result = service(MemberService).create_member(payload())
        if not result.ok:
            return jsonify({"error": result.error, "message": "Failed to create member"}), 400
        return respond(result, "member", schema=MemberRead, message="Failed to create member", status=201)

    @app.get("/api/members/stats")
    def members_stats():
        members = service(MemberService)
        result = members.get_member_stats()
        if not result.ok:
            return jsonify({"error": result.error, "message": "Failed to fetch member statistics"}), 500
        distribution = members.get_status_distribution()
        body = {"stats": camelize(result.data)}
        if distribution.ok:
            body["distribution"] = camelize(distribution.data)
        return jsonify(body)

    @app.get("/api/members/search")
    def members_search():
        result = service(MemberService).search_members(request.args.get("q", ""))
        return respond(result, "members", schema=MemberRead, message="Failed to search members")

    @app.get("/api/members/activities")
    def members_activities():
        limit = request.args.get("limit", default=10, type=int)
        return respond(
            service(MemberService).get_recent_activities(limit),
            "activities",
            message="Failed to fetch recent activities",
        )

    @app.get("/api/members/export")
    def members_export():
        filters = _args({"status": "status", "search": "searchTerm"})
        result = service(MemberService).export_members_csv(filters)
        if not result.ok:
            return error_body(result, "Failed to export members")
        return Response(
            result.data["content"],
            mimetype="text/csv",
            headers={"Content-Disposition": f'attachment; filename="{result.data["filename"]}"'},
        )

    @app.post("/api/members/bulk-delete")
    def members_bulk_delete():
        ids = payload().get("ids")
        if not ids or not isinstance(ids, list):
            return jsonify({"error": "Invalid member IDs provided"}), 400
        result = service(MemberService).delete_members(ids)
        if not result.ok:
            return jsonify({"error": result.error, "message": "Failed to delete members"}), 400
        return jsonify(
            {"success": True, "message": f"Successfully deleted {result.data['deleted']} members"}
        )

    @app.get("/api/members/<member_id>")
    def member_detail(member_id: str):
        result = service(MemberService).get_member(member_id)
        if not result.ok:
            status = 404 if "not found" in (result.error or "") else 500
            return jsonify({"error": result.error, "message": "Failed to fetch member"}), status
        return respond(result, "member", schema=MemberRead, message="Failed to fetch member")

    @app.put("/api/members/<member_id>")
    def member_update(member_id: str):
        result = service(MemberService).update_member({**payload(), "id": member_id})
        if not result.ok:
            return jsonify({"error": result.error, "message": "Failed to update member"}), 400
        return respond(result, "member", schema=MemberRead, message="Failed to update member")

    @app.delete("/api/members/<member_id>")
    def member_delete(member_id: str):
        result = service(MemberService).delete_member(member_id)
        if not result.ok:
            return jsonify({"error": result.error, "message": "Failed to delete member"}), 400
        return jsonify({"success": True})

    @app.post("/api/members/<member_id>/freeze")
    def member_freeze(member_id: str):
        result = service(MemberService).freeze_member(member_id)
        if not result.ok:
            return jsonify({"error": result.error, "message": "Failed to freeze membership"}), 400
        return jsonify({"success": True, "message": "Membership frozen successfully"})

    @app.delete("/api/members/<member_id>/freeze")
    def member_unfreeze(member_id: str):
        result = service(MemberService).unfreeze_member(member_id)
        if not result.ok:
            return jsonify({"error": result.error, "message": "Failed to unfreeze membership"}), 400
        return jsonify({"success": True, "message": "Membership unfrozen successfully"})

    @app.get("/api/members/<member_id>/subscriptions")
    def member_subscriptions(member_id: str):
        return respond(
            service(SubscriptionService).get_member_subscriptions(member_id),
            "subscriptions",
            schema=SubscriptionRead,
            message="Failed to fetch subscriptions",
        )

    @app.get("/api/members/<member_id>/sessions")
    def member_sessions(member_id: str):
        return respond(
            service(SessionService).get_member_sessions(
                member_id, request.args.get("startDate"), request.args.get("endDate")
            ),
            "sessions",
            schema=SessionRead,
            message="Failed to fetch sessions",
        )

    # -------------------------------------------------
    # Setup / diagnostics
    # -------------------------------------------------
    @app.post("/api/setup/membership-plans")
    def setup_membership_plans():
        require_role("admin")
        created = seed_membership_plans(db())
        if not created:
            return jsonify({"message": "Membership plans already exist"})
        return jsonify(
            {
                "message": "Membership plans created successfully",
                "plans": dump(PlanRead, created),
            }
        )

    @app.post("/api/setup/training-sessions-schema")
    def setup_training_sessions_schema():
        require_role("admin")
        tables = init_db(db().get_bind())
        return jsonify(
            {
                "success": True,
                "message": "Training session schema is up to date",
                "tables": tables,
            }
        )

    @app.post("/api/test/create-member")
    def test_create_member():
        members = service(MemberService)
        result = members.create_member(TEST_MEMBER)
        if not result.ok:
            return (
                jsonify(
                    {
                        "success": False,
                        "error": result.error,
                        "message": "Failed to create test member",
                        "testData": TEST_MEMBER,
                    }
                ),
                400,
            )
        created = dump(MemberRead, result.data)
        cleanup = members.delete_member(result.data.id)
        logger.info("Test member cleanup: %s", "successful" if cleanup.ok else "failed")
        return jsonify(
            {
                "success": True,
                "message": "Member creation test successful",
                "createdMember": created,
                "testData": TEST_MEMBER,
            }
        )

    # -------------------------------------------------
    # Training sessions
    # -------------------------------------------------
    @app.get("/api/sessions")
    def sessions_list():
        filters = _args(
            {
                "memberId": "memberId",
                "trainerId": "trainerId",
                "status": "status",
                "type": "type",
                "sessionRoom": "sessionRoom",
                "startDate": "startDate",
                "endDate": "endDate",
            }
        )
        return respond(
            service(SessionService).list_sessions(filters),
            "sessions",
            schema=SessionRead,
            message="Failed to fetch sessions",
        )

    @app.post("/api/sessions")
    def sessions_create():
        require_role("admin", "trainer")
        result = service(SessionService).create_session(
            payload(), created_by=session.get("user_id")
        )
        return respond(result, "session", schema=SessionRead, message="Failed to create session", status=201)

    @app.get("/api/sessions/stats")
    def sessions_stats():
        return respond(
            service(SessionService).get_session_stats(
                request.args.get("startDate"),
                request.args.get("endDate"),
                trainer_id=request.args.get("trainerId"),
                member_id=request.args.get("memberId"),
            ),
            "stats",
            message="Failed to load session stats",
        )

    @app.get("/api/sessions/options")
    def sessions_options():
        """Choices for the booking form: lengths, per-type defaults and start times."""
        return jsonify(
            {
                "durations": duration_options(),
                "defaultDurations": SESSION_DURATIONS,
                "timeSlots": generate_time_slots(),
            }
        )

    @app.get("/api/sessions/recent")
    def sessions_recent():
        limit = request.args.get("limit", default=10, type=int)
        return respond(
            service(SessionService).get_recent_sessions(limit),
            "sessions",
            schema=SessionRead,
            message="Failed to fetch sessions",
        )

    @app.post("/api/sessions/check-conflicts")
    def sessions_check_conflicts():
        body = payload()
        result = service(SessionService).check_conflicts(
            body.get("trainerId", ""),
            body.get("scheduledDate"),
            body.get("duration", 60),
            body.get("excludeSessionId"),
        )
        if not result.ok:
            return error_body(result, "Failed to check conflicts")
        report = result.data
        return jsonify({**report.to_dict(), "hasConflicts": report.has_conflicts})

    @app.get("/api/sessions/<session_id>")
    def session_detail(session_id: str):
        return respond(
            service(SessionService).get_session(session_id),
            "session",
            schema=SessionRead,
            message="Failed to fetch session",
        )

    @app.put("/api/sessions/<session_id>")
    def session_update(session_id: str):
        require_role("admin", "trainer")
        return respond(
            service(SessionService).update_session({**payload(), "id": session_id}),
            "session",
            schema=SessionRead,
            message="Failed to update session",
        )

    @app.delete("/api/sessions/<session_id>")
    def session_delete(session_id: str):
        require_role("admin", "trainer")
        result = service(SessionService).delete_session(session_id)
        if not result.ok:
            return error_body(result, "Failed to delete session")
        return jsonify({"success": True})

    @app.post("/api/sessions/<session_id>/reschedule")
    def session_reschedule(session_id: str):
        require_role("admin", "trainer")
        body = payload()
        return respond(
            service(SessionService).reschedule_session(
                session_id, body.get("scheduledDate"), body.get("duration")
            ),
            "session",
            schema=SessionRead,
            message="Failed to reschedule session",
        )

    @app.post("/api/sessions/<session_id>/complete")
    def session_complete(session_id: str):
        require_role("admin", "trainer")
        return respond(
            service(SessionService).complete_session(session_id, payload()),
            "session",
            schema=SessionRead,
            message="Failed to complete session",
        )

    @app.post("/api/sessions/<session_id>/cancel")
    def session_cancel(session_id: str):
        require_role("admin", "trainer")
        return respond(
            service(SessionService).cancel_session(session_id, payload().get("reason")),
            "session",
            schema=SessionRead,
            message="Failed to cancel session",
        )

    @app.post("/api/sessions/<session_id>/<action>")
    def session_action(session_id: str, action: str):
        require_role("admin", "trainer")
        method = SESSION_ACTIONS.get(action)
        if method is None:
            abort(404)
        return respond(
            getattr(service(SessionService), method)(session_id),
            "session",
            schema=SessionRead,
            message=f"Failed to {action} session",
        )

    # -------------------------------------------------
    # Session comments
    # -------------------------------------------------
    @app.get("/api/sessions/<session_id>/comments")
    def comments_list(session_id: str):
        include_private = session.get("role") in ("admin", "trainer")
        return respond(
            service(CommentService).list_comments(session_id, include_private=include_private),
            "comments",
            schema=CommentRead,
            message="Failed to fetch comments",
        )

    @app.post("/api/sessions/<session_id>/comments")
    def comments_create(session_id: str):
        require_role("admin", "trainer")
        return respond(
            service(CommentService).add_comment(
                {**payload(), "sessionId": session_id}, user_id=session.get("user_id")
            ),
            "comment",
            schema=CommentRead,
            message="Failed to add comment",
            status=201,
        )

    @app.put("/api/comments/<comment_id>")
    def comment_update(comment_id: str):
        require_role("admin", "trainer")
        user_id = None if session.get("role") == "admin" else session.get("user_id")
        return respond(
            service(CommentService).update_comment({**payload(), "id": comment_id}, user_id=user_id),
            "comment",
            schema=CommentRead,
            message="Failed to update comment",
        )

    @app.delete("/api/comments/<comment_id>")
    def comment_delete(comment_id: str):
        require_role("admin", "trainer")
        user_id = None if session.get("role") == "admin" else session.get("user_id")
        result = service(CommentService).delete_comment(comment_id, user_id=user_id)
        if not result.ok:
            return error_body(result, "Failed to delete comment")
        return jsonify({"success": True})

    # -------------------------------------------------
    # Trainers & availability
    # -------------------------------------------------
    @app.get("/api/trainers")
    def trainers_list():
        filters = _args(
            {
                "search": "searchTerm",
                "specialization": "specialization",
                "hourlyRateMin": "hourlyRateMin",
                "hourlyRateMax": "hourlyRateMax",
                "sortBy": "sortBy",
                "sortOrder": "sortOrder",
            }
        )
        active = _flag("isActive")
        if active is not None:
            filters["isActive"] = active
        return respond(
            service(TrainerService).list_trainers(filters),
            "trainers",
            schema=TrainerRead,
            message="Failed to fetch trainers",
        )

    @app.post("/api/trainers")
    def trainers_create():
        require_role("admin")
        return respond(
            service(TrainerService).create_trainer(payload()),
            "trainer",
            schema=TrainerRead,
            message="Failed to create trainer",
            status=201,
        )

    @app.get("/api/trainers/stats")
    def trainers_stats():
        return respond(
            service(TrainerService).get_trainer_stats(), "stats", message="Failed to fetch trainer statistics"
        )

    @app.get("/api/trainers/<trainer_id>")
    def trainer_detail(trainer_id: str):
        return respond(
            service(TrainerService).get_trainer(trainer_id),
            "trainer",
            schema=TrainerRead,
            message="Failed to fetch trainer",
        )

    @app.put("/api/trainers/<trainer_id>")
    def trainer_update(trainer_id: str):
        require_role("admin")
        return respond(
            service(TrainerService).update_trainer({**payload(), "id": trainer_id}),
            "trainer",
            schema=TrainerRead,
            message="Failed to update trainer",
        )

    @app.delete("/api/trainers/<trainer_id>")
    def trainer_delete(trainer_id: str):
        require_role("admin")
        result = service(TrainerService).delete_trainer(trainer_id)
        if not result.ok:
            return error_body(result, "Failed to delete trainer")
        return jsonify({"success": True})

    @app.get("/api/trainers/<trainer_id>/sessions")
    def trainer_sessions(trainer_id: str):
        return respond(
            service(SessionService).get_trainer_sessions(
                trainer_id, request.args.get("startDate"), request.args.get("endDate")
            ),
            "sessions",
            schema=SessionRead,
            message="Failed to fetch sessions",
        )

    @app.get("/api/trainers/<trainer_id>/availability")
    def trainer_availability(trainer_id: str):
        return respond(
            service(TrainerService).list_availability(trainer_id, request.args.get("day") or None),
            "availability",
            schema=AvailabilityRead,
            message="Failed to fetch availability",
        )

    def _ensure_trainer_self(trainer_id: str) -> None:
        """Trainers may only edit their own windows; admins may edit anyone's."""
        require_role("admin", "trainer")
        if session.get("role") == "trainer" and session.get("trainer_id") != trainer_id:
            abort(403)

    @app.post("/api/trainers/<trainer_id>/availability")
    def trainer_availability_add(trainer_id: str):
        _ensure_trainer_self(trainer_id)
        return respond(
            service(TrainerService).add_availability({**payload(), "trainerId": trainer_id}),
            "availability",
            schema=AvailabilityRead,
            message="Failed to add availability",
            status=201,
        )

    @app.put("/api/availability/<availability_id>")
    def availability_update(availability_id: str):
        require_role("admin", "trainer")
        body = payload()
        return respond(
            service(TrainerService).update_availability(
                availability_id, body.get("startTime"), body.get("endTime")
            ),
            "availability",
            schema=AvailabilityRead,
            message="Failed to update availability",
        )

    @app.delete("/api/availability/<availability_id>")
    def availability_delete(availability_id: str):
        require_role("admin", "trainer")
        result = service(TrainerService).remove_availability(availability_id)
        if not result.ok:
            return error_body(result, "Failed to remove availability")
        return jsonify({"success": True})

    # -------------------------------------------------
    # Subscriptions
    # -------------------------------------------------
    @app.get("/api/subscriptions")
    def subscriptions_list():
        return respond(
            service(SubscriptionService).list_subscriptions(
                status=request.args.get("status") or None,
                search=request.args.get("search") or None,
            ),
            "subscriptions",
            schema=SubscriptionRead,
            message="Failed to fetch subscriptions",
        )

    @app.post("/api/subscriptions")
    def subscriptions_create():
        require_role("admin")
        return respond(
            service(SubscriptionService).create_subscription(payload()),
            "subscription",
            schema=SubscriptionRead,
            message="Failed to create subscription",
            status=201,
        )

    @app.get("/api/subscriptions/stats")
    def subscriptions_stats():
        return respond(
            service(SubscriptionService).get_subscription_stats(),
            "stats",
            message="Failed to fetch subscription statistics",
        )

    @app.get("/api/subscriptions/<subscription_id>")
    def subscription_detail(subscription_id: str):
        return respond(
            service(SubscriptionService).get_subscription(subscription_id),
            "subscription",
            schema=SubscriptionRead,
            message="Failed to fetch subscription",
        )

    @app.put("/api/subscriptions/<subscription_id>")
    def subscription_update(subscription_id: str):
        require_role("admin")
        return respond(
            service(SubscriptionService).update_subscription({**payload(), "id": subscription_id}),
            "subscription",
            schema=SubscriptionRead,
            message="Failed to update subscription",
        )

    @app.post("/api/subscriptions/<subscription_id>/<action>")
    def subscription_action(subscription_id: str, action: str):
        require_role("admin")
        method = SUBSCRIPTION_ACTIONS.get(action)
        if method is None:
            abort(404)
        return respond(
            getattr(service(SubscriptionService), method)(subscription_id),
            "subscription",
            schema=SubscriptionRead,
            message=f"Failed to {action} subscription",
        )

    # -------------------------------------------------
    # Membership plans
    # -------------------------------------------------
    @app.get("/api/plans")
    def plans_list():
        filters = _args(
            {
                "duration": "duration",
                "priceMin": "priceMin",
                "priceMax": "priceMax",
                "search": "searchTerm",
                "sortBy": "sortBy",
                "sortOrder": "sortOrder",
            }
        )
        for name in ("isActive", "includesPersonalTraining"):
            flag = _flag(name)
            if flag is not None:
                filters[name] = flag
        return respond(
            service(SubscriptionPlanService).list_plans(filters),
            "plans",
            schema=PlanRead,
            message="Failed to fetch subscription plans",
        )

    @app.get("/api/plans/active")
    def plans_active():
        return respond(
            service(SubscriptionService).get_active_plans(),
            "plans",
            schema=PlanRead,
            message="Failed to fetch subscription plans",
        )

    @app.post("/api/plans")
    def plans_create():
        require_role("admin")
        return respond(
            service(SubscriptionPlanService).create_plan(payload()),
            "plan",
            schema=PlanRead,
            message="Failed to create subscription plan",
            status=201,
        )

    @app.get("/api/plans/stats")
    def plans_stats():
        return respond(
            service(SubscriptionPlanService).get_plan_stats(),
            "stats",
            message="Failed to fetch plan statistics",
        )

    @app.get("/api/plans/<plan_id>")
    def plan_detail(plan_id: str):
        return respond(
            service(SubscriptionPlanService).get_plan(plan_id),
            "plan",
            schema=PlanRead,
            message="Failed to fetch subscription plan",
        )

    @app.put("/api/plans/<plan_id>")
    def plan_update(plan_id: str):
        require_role("admin")
        return respond(
            service(SubscriptionPlanService).update_plan({**payload(), "id": plan_id}),
            "plan",
            schema=PlanRead,
            message="Failed to update subscription plan",
        )

    @app.delete("/api/plans/<plan_id>")
    def plan_delete(plan_id: str):
        require_role("admin")
        result = service(SubscriptionPlanService).delete_plan(plan_id)
        if not result.ok:
            return error_body(result, "Failed to delete subscription plan")
        return jsonify({"success": True})

    @app.post("/api/plans/<plan_id>/toggle")
    def plan_toggle(plan_id: str):
        require_role("admin")
        return respond(
            service(SubscriptionPlanService).toggle_plan_status(
                plan_id, bool(payload().get("isActive"))
            ),
            "plan",
            schema=PlanRead,
            message="Failed to update subscription plan",
        )


if __name__ == "__main__":
    create_app().run(debug=True)
