import logging

from marker_locator.logging_utils import add_file_handler, setup_logger


def test_setup_logger_adds_single_handler():
    logger = setup_logger("unit-a")
    again = setup_logger("unit-a")

    assert logger is again
    assert logger.name == "marker_locator.unit-a"
    assert len(logger.handlers) == 1


def test_file_handler_stamps_node_name(tmp_path):
    logger = setup_logger("unit-b")
    log_path = tmp_path / "node.log"
    handler = add_file_handler(logger, "unit-b", str(log_path))
    try:
        logger.info("hello %d", 3)
    finally:
        handler.close()
        logger.removeHandler(handler)

    text = log_path.read_text()
    assert "[unit-b] hello 3" in text
    assert "INFO" in text
