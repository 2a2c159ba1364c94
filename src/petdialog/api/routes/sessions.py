"""/sessions routes: read and manage conversation state."""
from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, Field

from dialogcore.runtime import DialogRuntime
from petdialog.api.deps import get_runtime

router = APIRouter(prefix="/sessions")


class FeedbackRequest(BaseModel):  # noqa: D401
    positive: bool
    engagement: float = Field(0.0, ge=0.0, le=1.0)


@router.get("/{session_id}/history")
def history(
    session_id: str,
    limit: int = 0,
    rt: DialogRuntime = Depends(get_runtime),
):  # noqa: D401
    items = rt.store.history(session_id, limit)
    return {
        "session_id": session_id,
        "exchanges": [ex.to_dict() for ex in items],
    }


@router.get("/{session_id}/summary")
def summary(session_id: str, rt: DialogRuntime = Depends(get_runtime)):
    return {"session_id": session_id, **rt.store.summary(session_id).to_dict()}


@router.post("/{session_id}/feedback")
def feedback(
    session_id: str,
    req: FeedbackRequest,
    rt: DialogRuntime = Depends(get_runtime),
):  # noqa: D401
    applied = rt.store.record_feedback(session_id, req.positive, req.engagement)
    return {"session_id": session_id, "applied": applied}


@router.delete("/{session_id}")
def clear(session_id: str, rt: DialogRuntime = Depends(get_runtime)):
    if not rt.store.clear(session_id):
        raise HTTPException(status_code=404, detail="session not found")
    return {"session_id": session_id, "cleared": True}
