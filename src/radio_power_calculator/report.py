from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_serializer

from .config import AttributionQuery, ComponentKind, ConsumerId, ControllerConstants, InputPaths
from .models import PowerModel
from .snapshot import AttributionKey


class AttributionResult(BaseModel):
    model_config = ConfigDict(frozen=True)

    duration_ms: int = Field(..., ge=0)
    power_mah: float = Field(..., ge=0.0)
    power_model: PowerModel
    per_key_power_mah: dict[AttributionKey, float] | None = None
    is_aggregated: bool = False
    rx_bytes: int = Field(0, ge=0)
    tx_bytes: int = Field(0, ge=0)

    @field_serializer("per_key_power_mah", when_used="json")
    def _serialize_per_key(self, v: dict[AttributionKey, float] | None) -> dict[str, float] | None:
        if v is None:
            return None
        return {key.process_state.value: power for key, power in v.items()}

    def power_for(self, key: AttributionKey) -> float:
        if self.per_key_power_mah is None:
            raise KeyError(key)
        return self.per_key_power_mah[key]


class AggregateAttributionResult(BaseModel):
    """Device-wide figures for one component.

    ``power_mah`` is never smaller than ``consumers_power_mah``. The
    ``system_only_*`` fields hold the clamped residual left after subtracting
    every tracked consumer; ``system_*`` add the consumers folded into the
    system bucket on top of that residual.
    """

    model_config = ConfigDict(frozen=True)

    duration_ms: int = Field(..., ge=0)
    power_mah: float = Field(..., ge=0.0)
    power_model: PowerModel

    consumers_duration_ms: int = Field(..., ge=0)
    consumers_power_mah: float = Field(..., ge=0.0)

    system_only_duration_ms: int = Field(..., ge=0)
    system_only_power_mah: float = Field(..., ge=0.0)

    aggregated_consumer_ids: list[ConsumerId] = Field(default_factory=list)
    system_duration_ms: int = Field(0, ge=0)
    system_power_mah: float = Field(0.0, ge=0.0)

    clamped_duration_ms: int = Field(0, ge=0)
    clamped_power_mah: float = Field(0.0, ge=0.0)
    model_disagreement: bool = False


class AttributionReport(BaseModel):
    generated_at: str
    component: ComponentKind
    query: AttributionQuery
    paths: InputPaths | None = None
    constants: ControllerConstants
    consumers: dict[ConsumerId, AttributionResult]
    aggregate: AggregateAttributionResult
    notes: list[str] = Field(default_factory=list)

    def consumer(self, consumer_id: ConsumerId) -> AttributionResult:
        return self.consumers[consumer_id]

    def summary(self) -> dict[str, Any]:
        return {
            "component": self.component.value,
            "power_mah": self.aggregate.power_mah,
            "system_only_power_mah": self.aggregate.system_only_power_mah,
            "consumers": len(self.consumers),
        }
