from __future__ import annotations

from typing import Dict, List, Optional

from pydantic import BaseModel, Field


class AttemptRecord(BaseModel):
    source: str
    ok: bool
    error: str = ""
    elapsed_s: float = 0.0


class RemovalReport(BaseModel):
    """Per-image metadata emitted by the batch runner."""

    image_path: str
    output_path: str
    width: int
    height: int
    source: Optional[str] = None
    attempts: List[AttemptRecord] = Field(default_factory=list)
    foreground_fraction: float = 0.0
    background: str = "transparent"
    timings: Dict[str, float] = Field(default_factory=dict)
    status: str = "ok"
