from pathlib import Path

from tello_link.config import load_config, save_config
from tello_link.transport import Endpoint


def test_load_config_defaults(tmp_path: Path) -> None:
    config_path = tmp_path / "tello-link.cfg"
    config = load_config(config_path)

    assert config.drone.command_peer == Endpoint("192.168.10.1", 8889)
    assert config.drone.command_bind == Endpoint("0.0.0.0", 8889)
    assert config.drone.state_bind == Endpoint("0.0.0.0", 8890)
    assert config.drone.video_bind == Endpoint("0.0.0.0", 11111)
    assert config.commands.timeout_seconds == 12.0
    assert config.commands.close_timeout_seconds == 1.0
    assert config.telemetry.timeout_seconds == 12.0
    assert config.telemetry.strict is False
    assert config.video.timeout_seconds == 3.0
    assert (config.video.width, config.video.height) == (960, 720)
    assert config.video.frame_size == 960 * 720 * 3
    assert config.video.decoder == "ffmpeg"
    assert config.logging.path is None
    assert config.logging.log_traffic is False
    assert config.status.enabled is False


def test_load_config_parses_host_with_port(tmp_path: Path) -> None:
    config_path = tmp_path / "tello-link.cfg"
    config_path.write_text("[drone]\nhost = 10.0.0.5:9000\n", encoding="utf-8")

    config = load_config(config_path)

    assert config.drone.host == "10.0.0.5"
    assert config.drone.command_port == 9000
    assert config.raw.get("drone", "host") == "10.0.0.5"
    assert config.raw.get("drone", "command_port") == "9000"


def test_load_config_overrides_defaults(tmp_path: Path) -> None:
    config_path = tmp_path / "tello-link.cfg"
    config_path.write_text(
        """
[drone]
video_bind = 127.0.0.1:12000

[commands]
timeout_seconds = 5

[telemetry]
strict = true

[video]
width = 320
height = 240
decoder = /usr/local/bin/ffmpeg

[logging]
level = DEBUG
path = ~/tello.log
log_traffic = yes

[status]
enabled = yes
port = 8080
        """.strip()
        + "\n",
        encoding="utf-8",
    )

    config = load_config(config_path)

    assert config.drone.video_bind == Endpoint("127.0.0.1", 12000)
    assert config.commands.timeout_seconds == 5.0
    assert config.telemetry.strict is True
    assert config.video.frame_size == 320 * 240 * 3
    assert config.video.decoder == "/usr/local/bin/ffmpeg"
    assert config.logging.level == "DEBUG"
    assert config.logging.path == Path("~/tello.log").expanduser()
    assert config.logging.log_traffic is True
    assert config.status.enabled is True
    assert config.status.port == 8080


def test_load_config_invalid_values_fall_back(tmp_path: Path) -> None:
    config_path = tmp_path / "tello-link.cfg"
    config_path.write_text(
        "[drone]\nstate_bind = nowhere\n\n[video]\nwidth = wide\ntimeout_seconds = -4\n",
        encoding="utf-8",
    )

    config = load_config(config_path)

    assert config.drone.state_bind == Endpoint("0.0.0.0", 8890)
    assert config.video.width == 960
    assert config.video.timeout_seconds == 0.1


def test_save_config_round_trips(tmp_path: Path) -> None:
    config_path = tmp_path / "nested" / "tello-link.cfg"
    config = load_config(config_path)
    config.raw.set("drone", "host", "10.1.1.1")

    save_config(config)

    assert load_config(config_path).drone.host == "10.1.1.1"
