"""Pydantic models for the submit-flag endpoint."""

from __future__ import annotations

from pydantic import Field

from ctfscore.schemas import CamelModel


class SubmitFlagRequest(CamelModel):
    event_id: str = Field(min_length=1, max_length=64)
    challenge_id: str = Field(min_length=1, max_length=64)
    flag_text: str = Field(max_length=1024)


class SubmitFlagResponse(CamelModel):
    correct: bool
    already_solved: bool
    attempts_left: int
    cooldown_remaining: int
    score_awarded: int | None = None
