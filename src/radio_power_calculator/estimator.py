from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from datetime import datetime, timezone
from typing import Mapping, NamedTuple

from .config import (
    AttributionQuery,
    ComponentKind,
    ConsumerId,
    ControllerConstants,
    InputPaths,
    PowerProfile,
)
from .models import PowerModel, select_power_model
from .report import AggregateAttributionResult, AttributionReport, AttributionResult
from .snapshot import (
    ActivityCounterSnapshot,
    AttributionKey,
    ProcessState,
    StateActivity,
    UsageSnapshot,
    attribution_keys,
)


logger = logging.getLogger("radio_power_calculator.estimator")

MS_PER_HOUR = 1000 * 60 * 60
MICROJOULES_PER_MAH = 3600 * 1000 * 1000


class ConsumerPower(NamedTuple):
    duration_ms: int
    power_mah: float
    per_key_power_mah: dict[AttributionKey, float] | None


def measured_energy_to_mah(measured_energy_uj: int) -> float:
    return measured_energy_uj / MICROJOULES_PER_MAH


def profile_power_mah(constants: ControllerConstants, idle_ms: int, rx_ms: int, tx_ms: int) -> float:
    return (idle_ms * constants.idle_ma + rx_ms * constants.rx_ma + tx_ms * constants.tx_ma) / MS_PER_HOUR


def _state_profile_power(constants: ControllerConstants, activity: StateActivity) -> float:
    return profile_power_mah(constants, activity.idle_duration_ms, activity.rx_duration_ms, activity.tx_duration_ms)


def _state_measured_power(activity: StateActivity) -> float:
    if activity.measured_energy_uj is None or activity.measured_energy_uj < 0:
        return 0.0
    return measured_energy_to_mah(activity.measured_energy_uj)


def compute_for_consumer(
    snapshot: ActivityCounterSnapshot | None,
    constants: ControllerConstants,
    model: PowerModel,
    keys: list[AttributionKey] | None = None,
) -> ConsumerPower:
    """Duration and power for one snapshot under an already selected model.

    ``keys`` requests a per-process-state split; the unspecified state is
    skipped since it equals the whole-consumer total.
    """
    state_keys = [k for k in keys if k.process_state != ProcessState.unspecified] if keys is not None else None

    def zeros() -> dict[AttributionKey, float] | None:
        return None if state_keys is None else {k: 0.0 for k in state_keys}

    if snapshot is None or model == PowerModel.undefined:
        return ConsumerPower(0, 0.0, zeros())

    duration_ms = snapshot.duration_ms

    if model == PowerModel.measured_energy:
        assert snapshot.measured_energy_uj is not None
        per_key = None
        if state_keys is not None:
            per_key = {k: _state_measured_power(snapshot.state(k.process_state)) for k in state_keys}
        return ConsumerPower(duration_ms, measured_energy_to_mah(snapshot.measured_energy_uj), per_key)

    if model == PowerModel.reported_power:
        # The controller reports a single figure with no per-state split.
        return ConsumerPower(duration_ms, snapshot.reported_power_mah, zeros())

    power_mah = _state_profile_power(constants, snapshot)
    per_key = None
    if state_keys is not None:
        per_key = {k: _state_profile_power(constants, snapshot.state(k.process_state)) for k in state_keys}
    return ConsumerPower(duration_ms, power_mah, per_key)


def _select_for(
    snapshot: ActivityCounterSnapshot | None,
    constants: ControllerConstants,
    query: AttributionQuery,
) -> PowerModel:
    if snapshot is None:
        return select_power_model(None, 0.0, constants.is_usable, query.force_profile_model)
    return select_power_model(
        snapshot.measured_energy_uj,
        snapshot.reported_power_mah,
        constants.is_usable,
        query.force_profile_model,
    )


def aggregate(
    consumers: Mapping[ConsumerId, ActivityCounterSnapshot | None],
    device: ActivityCounterSnapshot | None,
    constants: ControllerConstants,
    query: AttributionQuery,
) -> tuple[AggregateAttributionResult, dict[ConsumerId, AttributionResult]]:
    results: dict[ConsumerId, AttributionResult] = {}
    total_duration_ms = 0
    total_power_mah = 0.0
    system_ids = set(query.system_consumer_ids)
    aggregated: list[ConsumerId] = []
    aggregated_duration_ms = 0
    aggregated_power_mah = 0.0

    for consumer_id, snapshot in consumers.items():
        model = _select_for(snapshot, constants, query)
        keys = attribution_keys(consumer_id) if query.per_state_breakdown else None
        computed = compute_for_consumer(snapshot, constants, model, keys)
        is_aggregated = consumer_id in system_ids
        results[consumer_id] = AttributionResult(
            duration_ms=computed.duration_ms,
            power_mah=computed.power_mah,
            power_model=model,
            per_key_power_mah=computed.per_key_power_mah,
            is_aggregated=is_aggregated,
            rx_bytes=snapshot.rx_bytes if snapshot is not None else 0,
            tx_bytes=snapshot.tx_bytes if snapshot is not None else 0,
        )
        total_duration_ms += computed.duration_ms
        total_power_mah += computed.power_mah
        if is_aggregated:
            aggregated.append(consumer_id)
            aggregated_duration_ms += computed.duration_ms
            aggregated_power_mah += computed.power_mah

    device_model = _select_for(device, constants, query)
    device_power = compute_for_consumer(device, constants, device_model)

    raw_duration_ms = device_power.duration_ms - total_duration_ms
    raw_power_mah = device_power.power_mah - total_power_mah
    system_only_duration_ms = max(0, raw_duration_ms)
    system_only_power_mah = max(0.0, raw_power_mah)

    logger.debug("active: time=%d power=%.6f mAh", system_only_duration_ms, system_only_power_mah)
    model_disagreement = total_power_mah > device_power.power_mah
    if model_disagreement:
        logger.warning(
            "Consumer power %.6f mAh exceeds device-wide %.6f mAh (device model=%s)",
            total_power_mah,
            device_power.power_mah,
            device_model.value,
        )

    aggregate_result = AggregateAttributionResult(
        duration_ms=device_power.duration_ms,
        power_mah=max(device_power.power_mah, total_power_mah),
        power_model=device_model,
        consumers_duration_ms=total_duration_ms,
        consumers_power_mah=total_power_mah,
        system_only_duration_ms=system_only_duration_ms,
        system_only_power_mah=system_only_power_mah,
        aggregated_consumer_ids=aggregated,
        system_duration_ms=system_only_duration_ms + aggregated_duration_ms,
        system_power_mah=system_only_power_mah + aggregated_power_mah,
        clamped_duration_ms=max(0, -raw_duration_ms),
        clamped_power_mah=max(0.0, -raw_power_mah),
        model_disagreement=model_disagreement,
    )
    return aggregate_result, results


class PowerCalculator(ABC):
    """Attributes one hardware component's consumption to its consumers."""

    kind: ComponentKind

    def is_component_supported(self, kind: ComponentKind) -> bool:
        return kind == self.kind

    @abstractmethod
    def calculate(
        self,
        usage: UsageSnapshot,
        query: AttributionQuery,
        paths: dict[str, str] | None = None,
    ) -> AttributionReport | None:
        """Return the report, or None when the hardware has no activity reporting."""


class ControllerActivityPowerCalculator(PowerCalculator):
    def __init__(self, kind: ComponentKind, constants: ControllerConstants) -> None:
        self.kind = kind
        self.constants = constants

    @classmethod
    def from_profile(cls, kind: ComponentKind, profile: PowerProfile) -> "ControllerActivityPowerCalculator":
        return cls(kind, profile.controller_constants(kind))

    def calculate(
        self,
        usage: UsageSnapshot,
        query: AttributionQuery,
        paths: dict[str, str] | None = None,
    ) -> AttributionReport | None:
        if not self.is_component_supported(usage.component):
            raise ValueError(f"{self.kind.value} calculator cannot attribute {usage.component.value} usage")
        if not usage.activity_reporting_supported:
            logger.debug("%s activity reporting unsupported; skipping", self.kind.value)
            return None

        aggregate_result, consumers = aggregate(usage.consumers, usage.device, self.constants, query)

        paths_obj = None
        if paths is not None:
            paths_obj = InputPaths(**paths)

        notes = ["Duration is idle + rx + tx; only power is estimated."]
        if not self.constants.is_usable:
            notes.append(f"{self.kind.value} controller constants incomplete; profile estimate unavailable.")
        if aggregate_result.model_disagreement:
            notes.append("Consumer power exceeds device-wide power; aggregate reports the consumer sum.")

        return AttributionReport(
            generated_at=datetime.now(timezone.utc).isoformat(),
            component=self.kind,
            query=query,
            paths=paths_obj,
            constants=self.constants,
            consumers=consumers,
            aggregate=aggregate_result,
            notes=notes,
        )


def calculator_for(kind: ComponentKind, profile: PowerProfile) -> PowerCalculator:
    # Bluetooth and Wi-Fi controllers share the idle/rx/tx activity model.
    return ControllerActivityPowerCalculator.from_profile(ComponentKind(kind), profile)


def estimate_attribution(
    usage: UsageSnapshot,
    profile: PowerProfile,
    query: AttributionQuery | None = None,
    paths: dict[str, str] | None = None,
) -> AttributionReport | None:
    calculator = calculator_for(usage.component, profile)
    return calculator.calculate(usage, query or AttributionQuery(), paths=paths)
