from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field

from gpiochardev.models.config import LineConfig


class ChipInfo(BaseModel):
    """Chip information model."""

    model_config = ConfigDict(frozen=True)

    name: str
    label: str
    lines: int


class LineInfo(BaseModel):
    """Line information model."""

    model_config = ConfigDict(frozen=True)

    offset: int
    name: str = ""
    consumer: str = ""
    used: bool = False
    config: LineConfig = Field(default_factory=LineConfig)
