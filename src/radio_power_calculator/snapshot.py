from __future__ import annotations

from enum import Enum
from typing import Any, NamedTuple

from pydantic import BaseModel, ConfigDict, Field, field_validator

from .config import ComponentKind, ConsumerId, normalize_consumer_id


POWER_DATA_UNAVAILABLE = -1


class ProcessState(str, Enum):
    unspecified = "unspecified"
    foreground = "foreground"
    background = "background"
    foreground_service = "foreground_service"
    cached = "cached"


class AttributionKey(NamedTuple):
    consumer_id: ConsumerId
    process_state: ProcessState


def attribution_keys(consumer_id: ConsumerId) -> list[AttributionKey]:
    return [AttributionKey(consumer_id, state) for state in ProcessState]


class StateActivity(BaseModel):
    """Activity counted while the consumer was in one process state."""

    model_config = ConfigDict(frozen=True)

    idle_duration_ms: int = Field(0, ge=0)
    rx_duration_ms: int = Field(0, ge=0)
    tx_duration_ms: int = Field(0, ge=0)
    measured_energy_uj: int | None = None

    @field_validator("measured_energy_uj")
    @classmethod
    def _validate_measured_energy(cls, v: int | None) -> int | None:
        if v is not None and v < 0 and v != POWER_DATA_UNAVAILABLE:
            raise ValueError(f"measured_energy_uj must be >= 0 or {POWER_DATA_UNAVAILABLE}: {v}")
        return v

    @property
    def duration_ms(self) -> int:
        return self.idle_duration_ms + self.rx_duration_ms + self.tx_duration_ms


class ActivityCounterSnapshot(StateActivity):
    """Accumulated controller activity for one consumer or for the whole device.

    ``measured_energy_uj`` of ``None`` or ``POWER_DATA_UNAVAILABLE`` means the
    device has no energy measurement for this component. ``reported_power_mah``
    is the value reported by the controller itself, 0 when not reported.
    ``rx_bytes``/``tx_bytes`` are carried into the result for display only.
    """

    reported_power_mah: float = Field(0.0, ge=0.0)
    rx_bytes: int = Field(0, ge=0)
    tx_bytes: int = Field(0, ge=0)
    per_state: dict[ProcessState, StateActivity] | None = None

    def state(self, process_state: ProcessState) -> StateActivity:
        if self.per_state is None:
            return _EMPTY_STATE
        return self.per_state.get(process_state, _EMPTY_STATE)


_EMPTY_STATE = StateActivity()


class UsageSnapshot(BaseModel):
    model_config = ConfigDict(frozen=True)

    component: ComponentKind = ComponentKind.bluetooth
    activity_reporting_supported: bool = True
    device: ActivityCounterSnapshot | None = None
    consumers: dict[ConsumerId, ActivityCounterSnapshot | None] = Field(default_factory=dict)

    @field_validator("consumers", mode="before")
    @classmethod
    def _normalize_consumer_ids(cls, v: Any) -> Any:
        if not isinstance(v, dict):
            return v
        out: dict[Any, Any] = {}
        for raw_id, snap in v.items():
            consumer_id = normalize_consumer_id(raw_id)
            if consumer_id in out:
                raise ValueError(f"duplicate consumer id after normalization: {raw_id!r} -> {consumer_id!r}")
            out[consumer_id] = snap
        return out
