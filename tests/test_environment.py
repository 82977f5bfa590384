"""Tests for the environment resolver and its baseline scorer."""

from __future__ import annotations

import pytest

from ambient_context.engine import environment as environment_module
from ambient_context.engine.environment import resolve_environment, score_environment_baseline
from ambient_context.engine.location import resolve_location_type
from ambient_context.engine.models import (
    DeviceSignal,
    EnvironmentBaseline,
    EnvironmentSignal,
    EnvironmentSource,
    EnvironmentType,
    GpsSignal,
    LocationSignal,
    LocationType,
    MovementResolution,
    MovementType,
    NetworkType,
    SignalSnapshot,
    TemporalSignal,
    WifiSignal,
)

_STATIONARY = MovementResolution(movement_type=MovementType.STATIONARY)
_WALKING = MovementResolution(movement_type=MovementType.WALKING)
_VEHICLE = MovementResolution(movement_type=MovementType.VEHICLE)
_UNKNOWN = MovementResolution()


# ── Location type ─────────────────────────────────────────────


class TestLocationType:
    def test_priority_order(self):
        loc = LocationSignal(is_home=True, is_work=True, is_gym=True, nearest_label="cafe")
        assert resolve_location_type(SignalSnapshot(location=loc)) == LocationType.HOME

    def test_work_before_gym(self):
        loc = LocationSignal(is_work=True, is_gym=True)
        assert resolve_location_type(SignalSnapshot(location=loc)) == LocationType.WORK

    def test_nearest_label_is_frequent(self):
        loc = LocationSignal(nearest_label="cafe")
        assert resolve_location_type(SignalSnapshot(location=loc)) == LocationType.FREQUENT

    def test_empty_label_is_unknown(self):
        loc = LocationSignal(nearest_label="")
        assert resolve_location_type(SignalSnapshot(location=loc)) == LocationType.UNKNOWN

    def test_no_location_group(self):
        assert resolve_location_type(SignalSnapshot()) == LocationType.UNKNOWN


# ── Baseline scorer ──────────────────────────────────────────


class TestBaseline:
    def test_no_signal_is_even(self):
        base = score_environment_baseline()
        assert base.indoor_confidence == 0.5
        assert base.outdoor_confidence == 0.5
        assert base.source == EnvironmentSource.UNKNOWN
        assert base.environment == EnvironmentType.UNKNOWN

    def test_saved_place_alone(self):
        base = score_environment_baseline(is_saved_place=True)
        assert base.indoor_confidence == pytest.approx(0.6)
        assert base.outdoor_confidence == pytest.approx(0.4)
        assert base.source == EnvironmentSource.SAVED_PLACE
        assert base.environment == EnvironmentType.UNKNOWN

    def test_sharp_gps_fix_leans_outdoor(self):
        base = score_environment_baseline(accuracy=8)
        assert base.outdoor_confidence == pytest.approx(0.6)
        assert base.source == EnvironmentSource.GPS

    def test_multiple_sources_are_mixed(self):
        base = score_environment_baseline(accuracy=60, network_type=NetworkType.WIFI)
        assert base.indoor_confidence == pytest.approx(0.85 / 1.35)
        assert base.source == EnvironmentSource.MIXED

    def test_known_wifi_label_boost_is_capped(self):
        base = score_environment_baseline(wifi_connected=True, wifi_label="home", wifi_confidence=1.0)
        # indoor 0.5 + 0.15 + 0.35 = 1.0 vs outdoor 0.5
        assert base.indoor_confidence == pytest.approx(1.0 / 1.5)
        assert base.source == EnvironmentSource.WIFI
        assert base.environment == EnvironmentType.INDOOR

    def test_fast_and_cellular_is_outdoor(self):
        base = score_environment_baseline(speed=8, network_type=NetworkType.CELLULAR, accuracy=5)
        assert base.environment == EnvironmentType.OUTDOOR


# ── Resolver adjustments ─────────────────────────────────────


class TestResolveEnvironment:
    def test_home_at_night_while_still(self, home_still_night_signals):
        env = resolve_environment(home_still_night_signals, _STATIONARY, LocationType.HOME)
        assert env.environment == EnvironmentType.INDOOR
        assert env.indoor_confidence == pytest.approx(0.85)
        assert env.outdoor_confidence == pytest.approx(0.19)
        assert env.signals_used == ["saved_place", "nighttime", "saved_location"]
        assert env.conflicts == []

    def test_vehicle_movement_leans_outdoor(self):
        env = resolve_environment(SignalSnapshot(), _VEHICLE, LocationType.UNKNOWN)
        assert env.indoor_confidence == pytest.approx(0.25)
        assert env.outdoor_confidence == pytest.approx(0.75)
        assert env.environment == EnvironmentType.OUTDOOR
        assert env.signals_used == ["movement_vehicle"]

    def test_moving_while_confidently_indoor(self, monkeypatch):
        monkeypatch.setattr(
            environment_module,
            "score_environment_baseline",
            lambda **_: EnvironmentBaseline(
                indoor_confidence=0.8, outdoor_confidence=0.2, source=EnvironmentSource.WIFI
            ),
        )
        env = resolve_environment(SignalSnapshot(), _WALKING, LocationType.UNKNOWN)
        assert env.conflicts == ["moving_vs_indoor"]
        assert env.signals_used == ["wifi"]

    def test_active_at_night(self):
        signals = SignalSnapshot(temporal=TemporalSignal(hour=23))
        env = resolve_environment(signals, _WALKING, LocationType.UNKNOWN)
        assert env.conflicts == ["night_active"]
        assert env.outdoor_confidence == pytest.approx(0.55)
        assert env.indoor_confidence == pytest.approx(0.45)

    def test_unknown_movement_at_night_is_not_flagged(self):
        signals = SignalSnapshot(temporal=TemporalSignal(hour=23))
        env = resolve_environment(signals, _UNKNOWN, LocationType.UNKNOWN)
        assert env.conflicts == []

    def test_daytime_has_no_night_adjustment(self):
        signals = SignalSnapshot(temporal=TemporalSignal(hour=14))
        env = resolve_environment(signals, _STATIONARY, LocationType.UNKNOWN)
        assert "nighttime" not in env.signals_used

    def test_wifi_without_label_on_cellular(self):
        signals = SignalSnapshot(
            wifi=WifiSignal(connected=True),
            environment=EnvironmentSignal(network_type="CELLULAR"),
        )
        env = resolve_environment(signals, _STATIONARY, LocationType.UNKNOWN)
        assert "wifi_vs_cellular" in env.conflicts

    def test_known_wifi_place_while_driving(self):
        signals = SignalSnapshot(
            wifi=WifiSignal(connected=True, label="work", confidence=0.9),
            gps=GpsSignal(speed=5.0),
        )
        env = resolve_environment(signals, _VEHICLE, LocationType.UNKNOWN)
        assert "wifi_place_vs_speed" in env.conflicts
        assert "wifi_label" in env.signals_used

    def test_charging_at_speed(self):
        signals = SignalSnapshot(
            device=DeviceSignal(is_charging=True),
            gps=GpsSignal(speed=4.0),  # 14.4 km/h
        )
        env = resolve_environment(signals, _VEHICLE, LocationType.UNKNOWN)
        assert env.conflicts == ["charging_vs_moving"]
        assert "charging_vehicle" in env.signals_used

    def test_near_tie_stays_unknown(self):
        env = resolve_environment(SignalSnapshot(), _STATIONARY, LocationType.UNKNOWN)
        assert env.environment == EnvironmentType.UNKNOWN

    def test_confidences_stay_in_unit_range(self):
        signals = SignalSnapshot(
            gps=GpsSignal(accuracy=3, speed=30.0),
            environment=EnvironmentSignal(
                network_type="cellular", magnetometer_variance=1.0, pressure_std=0.5
            ),
            wifi=WifiSignal(connected=True, label="gym", confidence=1.0),
            temporal=TemporalSignal(hour=23),
            device=DeviceSignal(is_charging=True),
        )
        for movement in (_STATIONARY, _WALKING, _VEHICLE, _UNKNOWN):
            for loc in LocationType:
                env = resolve_environment(signals, movement, loc)
                assert 0.0 <= env.indoor_confidence <= 1.0
                assert 0.0 <= env.outdoor_confidence <= 1.0
