import dataclasses

import pytest

from tello_link.errors import MalformedTelemetry
from tello_link.state import TelemetrySnapshot, parse_state

SAMPLE = (
    "pitch:1;roll:-2;yaw:30;vgx:4;vgy:-5;vgz:6;templ:63;temph:65;tof:10;h:20;"
    "bat:87;baro:182.63;time:12;agx:-3.00;agy:1.00;agz:-999.00;\r\n"
)


def test_partial_payload_keeps_documented_defaults():
    snapshot = parse_state("pitch:5;roll:-3;bat:77")

    assert snapshot.pitch == 5
    assert snapshot.roll == -3
    assert snapshot.bat == 77
    assert snapshot == dataclasses.replace(
        TelemetrySnapshot(), pitch=5, roll=-3, bat=77
    )
    assert snapshot.yaw == -45
    assert snapshot.baro == pytest.approx(584.55)


def test_full_payload_parses_every_field():
    snapshot = parse_state(SAMPLE)

    assert snapshot.as_dict() == {
        "pitch": 1,
        "roll": -2,
        "yaw": 30,
        "vgx": 4,
        "vgy": -5,
        "vgz": 6,
        "templ": 63,
        "temph": 65,
        "tof": 10,
        "h": 20,
        "bat": 87,
        "baro": pytest.approx(182.63),
        "time": 12.0,
        "agx": -3.0,
        "agy": 1.0,
        "agz": -999.0,
    }
    assert isinstance(snapshot.tof, int)
    assert isinstance(snapshot.time, float)


def test_unknown_keys_and_empty_segments_are_skipped():
    snapshot = parse_state(";mid:-1;x:0;;pitch:7;")

    assert snapshot == TelemetrySnapshot(pitch=7)


def test_empty_payload_yields_defaults():
    assert parse_state("") == TelemetrySnapshot()


def test_value_keeps_text_after_first_colon():
    # "a:b:c" splits into key "a" and value "b:c", which is malformed for ints
    snapshot = parse_state("pitch:1:2;roll:3")

    assert snapshot.pitch == 0
    assert snapshot.roll == 3


def test_malformed_value_falls_back_to_default(caplog):
    with caplog.at_level("WARNING"):
        snapshot = parse_state("pitch:abc;roll:4;bat:300;baro:high")

    assert snapshot.pitch == 0
    assert snapshot.roll == 4
    assert snapshot.bat == 92
    assert snapshot.baro == pytest.approx(584.55)
    assert "pitch" in caplog.text


def test_strict_mode_raises_typed_error():
    with pytest.raises(MalformedTelemetry) as excinfo:
        parse_state("roll:4;pitch:abc", strict=True)

    assert excinfo.value.key == "pitch"
    assert excinfo.value.value == "abc"
    assert isinstance(excinfo.value, ValueError)


def test_known_key_without_value_is_malformed():
    with pytest.raises(MalformedTelemetry):
        parse_state("tof", strict=True)


def test_snapshot_is_immutable():
    snapshot = TelemetrySnapshot()

    with pytest.raises(dataclasses.FrozenInstanceError):
        snapshot.pitch = 3  # type: ignore[misc]
