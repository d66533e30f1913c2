from pathlib import Path

import pytest

from radio_power_calculator.config import AttributionQuery, ComponentKind, PowerProfile
from radio_power_calculator.io import load_usage_snapshot
from radio_power_calculator.snapshot import ActivityCounterSnapshot, POWER_DATA_UNAVAILABLE


def test_profile_yaml_bare_mapping(tmp_path: Path) -> None:
    path = tmp_path / "profile.yaml"
    path.write_text(
        """
bluetooth.controller.idle: 1
bluetooth.controller.rx: 50
bluetooth.controller.tx: 100
""".lstrip(),
        encoding="utf-8",
    )
    profile = PowerProfile.from_yaml(path)
    constants = profile.controller_constants(ComponentKind.bluetooth)
    assert (constants.idle_ma, constants.rx_ma, constants.tx_ma) == (1.0, 50.0, 100.0)
    assert constants.is_usable
    assert not profile.controller_constants(ComponentKind.wifi).is_usable


def test_partial_controller_constants_are_unusable() -> None:
    profile = PowerProfile(items={"wifi.controller.idle": 2.0, "wifi.controller.rx": 120.0})
    constants = profile.controller_constants(ComponentKind.wifi)
    assert constants.tx_ma == 0.0
    assert not constants.is_usable


def test_profile_negative_item_rejected(tmp_path: Path) -> None:
    path = tmp_path / "profile.yaml"
    path.write_text("items:\n  bluetooth.controller.rx: -5\n", encoding="utf-8")
    with pytest.raises(ValueError, match="Invalid power profile"):
        PowerProfile.from_yaml(path)


def test_profile_missing_file(tmp_path: Path) -> None:
    with pytest.raises(FileNotFoundError):
        PowerProfile.from_yaml(tmp_path / "nope.yaml")


def test_negative_duration_rejected() -> None:
    with pytest.raises(ValueError):
        ActivityCounterSnapshot(idle_duration_ms=-1)


def test_measured_energy_sentinel_accepted_other_negatives_rejected() -> None:
    snap = ActivityCounterSnapshot(measured_energy_uj=POWER_DATA_UNAVAILABLE)
    assert snap.measured_energy_uj == POWER_DATA_UNAVAILABLE
    with pytest.raises(ValueError, match="measured_energy_uj"):
        ActivityCounterSnapshot(measured_energy_uj=-7)


def test_snapshot_yaml_numeric_consumer_ids(tmp_path: Path) -> None:
    path = tmp_path / "usage.yaml"
    path.write_text(
        """
component: wifi
device: {idle_duration_ms: 10}
consumers:
  "1002": {rx_duration_ms: 5}
  com.example.app: null
""".lstrip(),
        encoding="utf-8",
    )
    usage = load_usage_snapshot(path)
    assert usage.component == ComponentKind.wifi
    assert set(usage.consumers) == {1002, "com.example.app"}
    assert usage.consumers["com.example.app"] is None


def test_snapshot_unsupported_suffix(tmp_path: Path) -> None:
    path = tmp_path / "usage.txt"
    path.write_text("{}", encoding="utf-8")
    with pytest.raises(ValueError, match="Unsupported snapshot format"):
        load_usage_snapshot(path)


def test_snapshot_invalid_process_state(tmp_path: Path) -> None:
    path = tmp_path / "usage.json"
    path.write_text('{"consumers": {"1": {"per_state": {"sleeping": {}}}}}', encoding="utf-8")
    with pytest.raises(ValueError, match="Invalid usage snapshot"):
        load_usage_snapshot(path)


def test_query_yaml(tmp_path: Path) -> None:
    path = tmp_path / "query.yaml"
    path.write_text("per_state_breakdown: true\nsystem_consumer_ids: ['1002', bt_stack]\n", encoding="utf-8")
    query = AttributionQuery.from_yaml(path)
    assert query.per_state_breakdown
    assert not query.force_profile_model
    assert query.system_consumer_ids == (1002, "bt_stack")


def test_snapshot_colliding_consumer_ids_rejected(tmp_path: Path) -> None:
    path = tmp_path / "usage.json"
    path.write_text(
        '{"consumers": {"1": {"idle_duration_ms": 100}, "01": {"idle_duration_ms": 200}}}',
        encoding="utf-8",
    )
    with pytest.raises(ValueError, match="duplicate consumer id"):
        load_usage_snapshot(path)


def test_snapshot_error_reports_field_details(tmp_path: Path) -> None:
    path = tmp_path / "usage.yaml"
    path.write_text("device:\n  rx_duration_ms: -3\n", encoding="utf-8")
    with pytest.raises(ValueError, match="(?s)Invalid usage snapshot.*rx_duration_ms"):
        load_usage_snapshot(path)


def test_snapshot_json_must_be_object(tmp_path: Path) -> None:
    path = tmp_path / "usage.json"
    path.write_text("[1, 2]", encoding="utf-8")
    with pytest.raises(ValueError, match="must be a JSON object"):
        load_usage_snapshot(path)
