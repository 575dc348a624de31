# tests/test_logger.py
import logging
from logging.handlers import RotatingFileHandler

import pytest
import requests

from httpretry.logger import LOGGER_NAME, log_response, log_stem, setup_logger


@pytest.fixture(autouse=True)
def clean_package_logger():
    pkg_logger = logging.getLogger(LOGGER_NAME)
    before = list(pkg_logger.handlers)
    level = pkg_logger.level
    yield pkg_logger
    for handler in list(pkg_logger.handlers):
        if handler not in before:
            pkg_logger.removeHandler(handler)
            handler.close()
    pkg_logger.setLevel(level)


def _added(pkg_logger):
    return [h for h in pkg_logger.handlers if h.get_name() and h.get_name().startswith("httpretry.")]


def test_dotted_directory_name_is_used_as_is(tmp_path):
    log_dir = tmp_path / "run.logs"
    log_path = setup_logger(log_dir)

    assert log_path.parent == log_dir
    assert log_path.name.startswith("httpretry_")
    assert "Logging to:" in log_path.read_text()


def test_file_named_after_download(tmp_path):
    log_path = setup_logger(tmp_path, download="https://example.com/data/archive.tar.gz?sig=1")
    assert log_path.name.startswith("archive.tar.gz_")
    assert log_path.suffix == ".log"


def test_log_stem():
    assert log_stem("https://example.com/a/b.bin") == "b.bin"
    assert log_stem("/tmp/out/file.iso") == "file.iso"
    assert log_stem("https://example.com/") == "httpretry"
    assert log_stem(None) == "httpretry"


def test_getter_records_reach_the_file(tmp_path):
    log_path = setup_logger(tmp_path, level=logging.WARNING)
    logging.getLogger("httpretry.getter").warning("Retrying %s in %.1fs", "u", 0.5)
    logging.getLogger("httpretry.getter").info("not written")

    text = log_path.read_text()
    assert "WARNING httpretry.getter: Retrying u in 0.5s" in text
    assert "not written" not in text


def test_root_logger_left_alone(tmp_path):
    root_handlers = list(logging.getLogger().handlers)
    setup_logger(tmp_path, console=True)
    assert logging.getLogger().handlers == root_handlers


def test_second_call_replaces_handlers(tmp_path, clean_package_logger):
    first = setup_logger(tmp_path / "a", console=True)
    second = setup_logger(tmp_path / "b", console=True)

    names = sorted(h.get_name() for h in _added(clean_package_logger))
    assert names == ["httpretry.console", "httpretry.file"]
    logging.getLogger("httpretry.download").info("after switch")
    assert "after switch" in second.read_text()
    assert "after switch" not in first.read_text()


def test_rotating_file(tmp_path, clean_package_logger):
    setup_logger(tmp_path, max_bytes=1024, backup_count=2)
    (handler,) = _added(clean_package_logger)
    assert isinstance(handler, RotatingFileHandler)
    assert handler.maxBytes == 1024
    assert handler.backupCount == 2


def test_log_response_records_status_and_errors(caplog):
    caplog.set_level(logging.DEBUG)
    observe = log_response(logging.getLogger("test.responses"), level=logging.DEBUG)

    res = requests.Response()
    res.status_code = 206
    res.url = "https://example.com/x"
    res.headers["Content-Length"] = "3"
    res.headers["Content-Range"] = "bytes 2-4/5"
    observe(res, None)
    observe(None, requests.ConnectionError("refused"))

    messages = [(r.levelno, r.getMessage()) for r in caplog.records if r.name == "test.responses"]
    assert (logging.DEBUG, "HTTP 206 https://example.com/x (Content-Length=3, Content-Range=bytes 2-4/5)") in messages
    assert (logging.WARNING, "HTTP error: refused") in messages


def test_log_response_default_logger(caplog):
    caplog.set_level(logging.INFO)
    res = requests.Response()
    res.status_code = 200
    res.url = "https://example.com/y"
    log_response()(res, None)
    assert any(r.name == "httpretry.responses" for r in caplog.records)
