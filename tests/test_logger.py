import logging
from logging.handlers import RotatingFileHandler

from cimawatch import logger


def test_build_handlers_respects_env_flags(monkeypatch, tmp_path) -> None:
    monkeypatch.setenv("LOG_TO_STDOUT", "false")
    monkeypatch.setenv("LOG_TO_FILE", "true")
    monkeypatch.setenv("LOG_FILE", str(tmp_path / "logs" / "cima_watch.log"))

    handlers = logger._build_handlers(logging.DEBUG, logging.Formatter(logger.LOG_FORMAT))
    try:
        assert len(handlers) == 1
        assert isinstance(handlers[0], RotatingFileHandler)
        assert handlers[0].level == logging.DEBUG
        assert (tmp_path / "logs").is_dir()
    finally:
        for handler in handlers:
            handler.close()


def test_setup_logging_quiets_http_libraries(monkeypatch) -> None:
    monkeypatch.setattr(logger, "_configured", False)
    monkeypatch.setenv("LOG_LEVEL", "DEBUG")
    monkeypatch.setattr(logging.getLogger(), "level", logging.getLogger().level)
    for name in logger.QUIET_LOGGERS:
        monkeypatch.setattr(logging.getLogger(name), "level", logging.NOTSET)

    logger.setup_logging()

    assert logging.getLogger("urllib3").level == logging.WARNING
    assert logging.getLogger("requests").level == logging.WARNING
