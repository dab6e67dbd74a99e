"""Time-series models — samples and refresh status."""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel

StatusState = Literal["idle", "loading", "ok", "error"]


class Sample(BaseModel):
    """One (minute bucket, basket value) point."""

    ts: int  # epoch millis, truncated to the minute
    value: float


class Status(BaseModel):
    """Outcome of the most recent refresh run."""

    state: StatusState = "idle"
    message: str = ""
    updated_at: int | None = None  # epoch millis
