"""Goals API endpoints.

Provides REST API for:
- Feasibility preview and goal creation
- Effort logs (12h cooldown) and log history
- Missed-day reflections
- Accountability once a goal's countdown lapses

All endpoints require auth; goals owned by other users read as not found.
"""

from fastapi import APIRouter, Depends, Request

from ikioi.core.auth import get_current_user_id
from ikioi.core.logging import get_request_id
from ikioi.features.goals.models import (
    AccountabilityRequest,
    CreateGoalRequest,
    LogEffortRequest,
    ReflectionRequest,
    UpdateStatusRequest,
)
from ikioi.features.goals.service import GoalService, get_goal_service


router = APIRouter(prefix="/v1/goals", tags=["goals"])


def _rid(request: Request) -> str:
    return getattr(request.state, "request_id", None) or get_request_id()


# ===== GOALS =====

@router.post("/feasibility")
async def preview_feasibility(
    body: CreateGoalRequest,
    request: Request,
    user_id: str = Depends(get_current_user_id),
    service: GoalService = Depends(get_goal_service),
):
    """Score proposed goal parameters without saving them."""
    result = service.preview_feasibility(body.to_params())
    return {"data": result.to_dict(), "request_id": _rid(request)}


@router.post("", status_code=201)
async def create_goal(
    body: CreateGoalRequest,
    request: Request,
    user_id: str = Depends(get_current_user_id),
    service: GoalService = Depends(get_goal_service),
):
    rid = _rid(request)
    goal, feasibility = service.create_goal(user_id, body.to_params(), request_id=rid)
    return {
        "data": {"goal": service.describe(goal), "feasibility": feasibility.to_dict()},
        "request_id": rid,
    }


@router.get("")
async def list_goals(
    request: Request,
    user_id: str = Depends(get_current_user_id),
    service: GoalService = Depends(get_goal_service),
):
    """List goals newest first, the dashboard summary and the goal (if any) awaiting accountability."""
    today = service.today()
    goals = service.list_goals(user_id)
    pending = service.pending_accountability(user_id)
    return {
        "data": {
            "goals": [service.describe(goal, today) for goal in goals],
            "summary": service.summary(user_id),
            "pendingAccountabilityGoalId": pending.id if pending else None,
        },
        "request_id": _rid(request),
    }


@router.get("/accountability/pending")
async def get_pending_accountability(
    request: Request,
    user_id: str = Depends(get_current_user_id),
    service: GoalService = Depends(get_goal_service),
):
    pending = service.pending_accountability(user_id)
    return {
        "data": service.describe(pending) if pending else None,
        "request_id": _rid(request),
    }


@router.get("/{goal_id}")
async def get_goal(
    goal_id: str,
    request: Request,
    user_id: str = Depends(get_current_user_id),
    service: GoalService = Depends(get_goal_service),
):
    goal = service.get_goal(user_id, goal_id)
    return {"data": service.describe(goal), "request_id": _rid(request)}


@router.patch("/{goal_id}/status")
async def update_goal_status(
    goal_id: str,
    body: UpdateStatusRequest,
    request: Request,
    user_id: str = Depends(get_current_user_id),
    service: GoalService = Depends(get_goal_service),
):
    rid = _rid(request)
    goal = service.update_status(user_id, goal_id, body.status, request_id=rid)
    return {"data": service.describe(goal), "request_id": rid}


@router.delete("/{goal_id}")
async def delete_goal(
    goal_id: str,
    request: Request,
    user_id: str = Depends(get_current_user_id),
    service: GoalService = Depends(get_goal_service),
):
    rid = _rid(request)
    service.delete_goal(user_id, goal_id, request_id=rid)
    return {"data": {"deleted": True, "id": goal_id}, "request_id": rid}


# ===== EFFORT LOGS =====

@router.get("/{goal_id}/cooldown")
async def get_cooldown(
    goal_id: str,
    request: Request,
    user_id: str = Depends(get_current_user_id),
    service: GoalService = Depends(get_goal_service),
):
    status = service.cooldown_status(user_id, goal_id)
    return {"data": status.to_dict(), "request_id": _rid(request)}


@router.post("/{goal_id}/logs", status_code=201)
async def log_effort(
    goal_id: str,
    body: LogEffortRequest,
    request: Request,
    user_id: str = Depends(get_current_user_id),
    service: GoalService = Depends(get_goal_service),
):
    """Record today's effort.

    429 cooldown_active while the previous log is under 12 hours old.
    """
    rid = _rid(request)
    result = service.log_effort(
        user_id,
        goal_id,
        effort_rating=body.effort_rating,
        difficulty=body.difficulty,
        feel_option=body.feel_option,
        message=body.message,
        time_spent_minutes=body.time_spent_minutes,
        request_id=rid,
    )
    data = result.to_dict()
    data["goal"] = service.describe(result.goal)
    return {"data": data, "request_id": rid}


@router.get("/{goal_id}/logs")
async def get_log_history(
    goal_id: str,
    request: Request,
    user_id: str = Depends(get_current_user_id),
    service: GoalService = Depends(get_goal_service),
):
    history = service.log_history(user_id, goal_id)
    return {"data": history, "request_id": _rid(request)}


# ===== MISSES & ACCOUNTABILITY =====

@router.post("/{goal_id}/reflections", status_code=201)
async def submit_reflection(
    goal_id: str,
    body: ReflectionRequest,
    request: Request,
    user_id: str = Depends(get_current_user_id),
    service: GoalService = Depends(get_goal_service),
):
    rid = _rid(request)
    result = service.submit_reflection(
        user_id,
        goal_id,
        reason=body.reason,
        reason_details=body.reason_details,
        request_id=rid,
    )
    data = result.to_dict()
    data["goal"] = service.describe(result.goal)
    return {"data": data, "request_id": rid}


@router.post("/{goal_id}/accountability")
async def resolve_accountability(
    goal_id: str,
    body: AccountabilityRequest,
    request: Request,
    user_id: str = Depends(get_current_user_id),
    service: GoalService = Depends(get_goal_service),
):
    rid = _rid(request)
    goal = service.resolve_accountability(user_id, goal_id, body.completed, request_id=rid)
    return {"data": service.describe(goal), "request_id": rid}
