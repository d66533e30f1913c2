from __future__ import annotations

from enum import Enum

from .snapshot import POWER_DATA_UNAVAILABLE


class PowerModel(str, Enum):
    undefined = "undefined"
    power_profile = "power_profile"
    reported_power = "reported_power"
    measured_energy = "measured_energy"


def has_measured_energy(measured_energy_uj: int | None) -> bool:
    return measured_energy_uj is not None and measured_energy_uj >= 0 and measured_energy_uj != POWER_DATA_UNAVAILABLE


def select_power_model(
    measured_energy_uj: int | None,
    reported_power_mah: float,
    have_profile_constants: bool,
    force_profile_model: bool,
) -> PowerModel:
    """Pick the best available power model for one snapshot.

    Measured energy always wins. A controller-reported value is used next
    unless the caller forces the profile model; profile estimation needs all
    three controller constants. Falls back to ``PowerModel.undefined`` rather
    than raising.
    """
    if has_measured_energy(measured_energy_uj):
        return PowerModel.measured_energy
    if not force_profile_model and reported_power_mah != 0 and have_profile_constants:
        return PowerModel.reported_power
    if have_profile_constants:
        return PowerModel.power_profile
    return PowerModel.undefined
