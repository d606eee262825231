import logging

import pytest

from tello_link.logging import QUIET_LOGGERS, TRAFFIC_LOGGERS, configure_logging


@pytest.fixture(autouse=True)
def restore_logging():
    root = logging.getLogger()
    handlers = list(root.handlers)
    level = root.level
    names = (*QUIET_LOGGERS, *TRAFFIC_LOGGERS)
    levels = {name: logging.getLogger(name).level for name in names}
    yield
    for handler in list(root.handlers):
        root.removeHandler(handler)
        if handler not in handlers:
            handler.close()
    for handler in handlers:
        root.addHandler(handler)
    root.setLevel(level)
    for name, previous in levels.items():
        logging.getLogger(name).setLevel(previous)


def test_debug_level_keeps_traffic_loggers_at_info():
    configure_logging("DEBUG")

    assert logging.getLogger().level == logging.DEBUG
    assert not logging.getLogger("tello_link.transport").isEnabledFor(logging.DEBUG)
    assert logging.getLogger("tello_link.session").isEnabledFor(logging.INFO)
    assert logging.getLogger("tello_link.video").isEnabledFor(logging.DEBUG)
    assert not logging.getLogger("asyncio").isEnabledFor(logging.INFO)


def test_log_traffic_enables_datagram_debug():
    configure_logging("DEBUG", log_traffic=True, log_network=True)

    assert logging.getLogger("tello_link.transport").isEnabledFor(logging.DEBUG)
    assert logging.getLogger("asyncio").isEnabledFor(logging.DEBUG)


def test_log_path_adds_file_handler(tmp_path):
    log_path = tmp_path / "logs" / "tello-link.log"

    configure_logging("INFO", log_path=log_path)
    logging.getLogger("tello_link.test").info("battery %d%%", 80)
    for handler in logging.getLogger().handlers:
        handler.flush()

    assert "battery 80%" in log_path.read_text(encoding="utf-8")
