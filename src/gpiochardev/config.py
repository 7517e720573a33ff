from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

from gpiochardev.models import AbiVersion, Direction, EdgeDetection, LineConfig

LoggerLevels = Literal["critical", "error", "warning", "info", "debug"]


class LoggerConfig(BaseModel):
    default: LoggerLevels | None = None
    logs: dict[str, LoggerLevels] = Field(default_factory=dict)


class MonitorConfig(BaseModel):
    """Settings of the monitor command."""

    model_config = ConfigDict(frozen=True)

    chip: str
    offsets: list[int] = Field(min_length=1)
    active_low: bool = False
    rising_edge: bool = False
    falling_edge: bool = False
    num_events: int = Field(default=0, ge=0)
    silent: bool = False
    abi: AbiVersion = AbiVersion.AUTO

    @property
    def edge_detection(self) -> EdgeDetection:
        # Neither or both flags given means both edges.
        if self.rising_edge == self.falling_edge:
            return EdgeDetection.BOTH
        if self.rising_edge:
            return EdgeDetection.RISING
        return EdgeDetection.FALLING

    def line_config(self) -> LineConfig:
        return LineConfig.of(
            direction=Direction.INPUT,
            edge_detection=self.edge_detection,
            active_low=True if self.active_low else None,
        )
