"""/generate route: resolve one response through the orchestrator."""
from __future__ import annotations

import logging
from typing import Dict, List

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, Field

from dialogcore.dialog.types import DialogContext
from dialogcore.errors import NoFallbackError
from dialogcore.runtime import DialogRuntime
from petdialog.api.deps import get_runtime

router = APIRouter()

_log = logging.getLogger("dialog.api")


class GenerateRequest(BaseModel):  # noqa: D401
    session_id: str = Field(min_length=1)
    trigger: str = Field(min_length=1)
    current_mood: float = Field(50.0, ge=0.0, le=100.0)
    current_animation: str = "idle"
    time_of_day: str = ""
    relationship_level: str = ""
    personality_traits: Dict[str, float] = Field(default_factory=dict)
    current_stats: Dict[str, float] = Field(default_factory=dict)
    conversation_turn: int = Field(0, ge=0)
    last_response: str = ""
    fallback_responses: List[str] = Field(default_factory=list)
    fallback_animation: str = ""

    def to_context(self) -> DialogContext:
        return DialogContext(**self.model_dump())


@router.post("/generate")
def generate(
    req: GenerateRequest, rt: DialogRuntime = Depends(get_runtime)
):  # noqa: D401
    try:
        resp = rt.generate(req.to_context())
    except NoFallbackError as e:
        _log.warning("generate without fallback failed sid=%s", req.session_id)
        raise HTTPException(
            status_code=422,
            detail={"error_type": e.code, "message": str(e)},
        ) from e
    return resp.to_dict()
