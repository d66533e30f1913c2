from __future__ import annotations

from enum import Enum
from pathlib import Path
from typing import Any, Union

import yaml
from pydantic import ValidationError
from pydantic import BaseModel, ConfigDict, Field, field_validator


ConsumerId = Union[int, str]


def normalize_consumer_id(value: Any) -> Any:
    # JSON object keys are always strings; numeric uids are kept as ints.
    if isinstance(value, str) and value.lstrip("-").isdigit():
        return int(value)
    return value


class ComponentKind(str, Enum):
    bluetooth = "bluetooth"
    wifi = "wifi"


def controller_item(kind: ComponentKind, state: str) -> str:
    """Power profile item name, e.g. ``bluetooth.controller.rx``."""
    return f"{kind.value}.controller.{state}"


class ControllerConstants(BaseModel):
    """Average current draw (mA) of one controller in each activity state."""

    model_config = ConfigDict(frozen=True)

    idle_ma: float = Field(0.0, ge=0.0)
    rx_ma: float = Field(0.0, ge=0.0)
    tx_ma: float = Field(0.0, ge=0.0)
    voltage_mv: float | None = Field(default=None, ge=0.0)

    @property
    def is_usable(self) -> bool:
        return self.idle_ma != 0 and self.rx_ma != 0 and self.tx_ma != 0


class PowerProfile(BaseModel):
    model_config = ConfigDict(frozen=True)

    name: str | None = None
    items: dict[str, float] = Field(default_factory=dict)

    @field_validator("items")
    @classmethod
    def _validate_items(cls, v: dict[str, float]) -> dict[str, float]:
        for name, value in v.items():
            if value < 0:
                raise ValueError(f"power profile item must be non-negative: {name}={value}")
        return v

    def average_power(self, name: str) -> float:
        return self.items.get(name, 0.0)

    def controller_constants(self, kind: ComponentKind) -> ControllerConstants:
        voltage = self.items.get(controller_item(kind, "voltage"))
        return ControllerConstants(
            idle_ma=self.average_power(controller_item(kind, "idle")),
            rx_ma=self.average_power(controller_item(kind, "rx")),
            tx_ma=self.average_power(controller_item(kind, "tx")),
            voltage_mv=voltage,
        )

    @classmethod
    def from_yaml(cls, path: str | Path) -> "PowerProfile":
        data = _load_yaml(path)
        # A bare mapping of item -> value is accepted as well as {name, items}.
        if "items" not in data:
            data = {"items": data}
        try:
            return cls.model_validate(data)
        except ValidationError as exc:
            raise ValueError(f"Invalid power profile: {path}\n{exc}") from exc


class AttributionQuery(BaseModel):
    model_config = ConfigDict(frozen=True)

    per_state_breakdown: bool = False
    force_profile_model: bool = False
    system_consumer_ids: tuple[ConsumerId, ...] = ()

    @field_validator("system_consumer_ids", mode="before")
    @classmethod
    def _normalize_system_consumer_ids(cls, v: Any) -> Any:
        if isinstance(v, (list, tuple)):
            return tuple(normalize_consumer_id(x) for x in v)
        return v

    @classmethod
    def from_yaml(cls, path: str | Path) -> "AttributionQuery":
        data = _load_yaml(path)
        try:
            return cls.model_validate(data)
        except ValidationError as exc:
            raise ValueError(f"Invalid attribution query: {path}\n{exc}") from exc


def _load_yaml(path: str | Path) -> dict[str, Any]:
    p = Path(path)
    if not p.exists():
        raise FileNotFoundError(str(path))
    try:
        return yaml.safe_load(p.read_text(encoding="utf-8")) or {}
    except yaml.YAMLError as exc:  # pragma: no cover
        raise ValueError(f"Failed to parse YAML: {p}") from exc


class InputPaths(BaseModel):
    profile: str
    snapshot: str
