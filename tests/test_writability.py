"""Tests for switch writability learning."""

from __future__ import annotations

from custom_components.wifipool.wifipool.writability import (
    WritabilityLearner,
    default_writable,
)

O1 = "dev.o1"
I2 = "dev.i2"


def test_defaults_follow_channel_direction():
    assert default_writable(O1) is True
    assert default_writable(I2) is False

    learner = WritabilityLearner([O1, I2])

    assert learner.writable_channels() == [O1]
    assert learner.is_writable(I2) is False
    assert learner.overrides == {}


def test_rejection_demotes_and_success_promotes():
    learner = WritabilityLearner([O1, I2])
    notified: list[str] = []
    learner.async_add_listener(lambda: notified.append("changed"))

    assert learner.record_sensor_rejection(O1) is True
    assert learner.is_writable(O1) is False
    assert learner.record_write_success(I2) is True
    assert learner.is_writable(I2) is True

    assert learner.writable_channels() == [I2]
    assert learner.overrides == {O1: False, I2: True}
    assert notified == ["changed", "changed"]


def test_no_notification_without_change():
    learner = WritabilityLearner([O1])
    notified: list[str] = []
    remove = learner.async_add_listener(lambda: notified.append("changed"))

    assert learner.record_write_success(O1) is False
    assert notified == []

    remove()
    learner.record_sensor_rejection(O1)
    assert notified == []


def test_persisted_overrides_survive_restart():
    learner = WritabilityLearner([O1, I2], overrides={O1: False, "dev.o9": True, I2: "x"})

    assert learner.is_writable(O1) is False
    assert learner.is_writable(I2) is False
    assert learner.overrides == {O1: False}
