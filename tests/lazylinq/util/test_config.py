"""Tests for lazylinq.util.config module."""
import logging
from logging.handlers import TimedRotatingFileHandler

import pytest
from pydantic import ValidationError

import lazylinq
from lazylinq.util.config import (
    LoggingSettings, configure_logging, load_settings, parse_pairs
)

TOUCHED_LOGGERS = ["lazylinq", "lazylinq.pipe.core", "lazylinq.linq.deferred"]


@pytest.fixture
def clean_loggers():
    saved = {name: (logging.getLogger(name).level, list(logging.getLogger(name).handlers))
             for name in TOUCHED_LOGGERS}
    yield
    for name, (level, handlers) in saved.items():
        target = logging.getLogger(name)
        for handler in list(target.handlers):
            if handler not in handlers:
                target.removeHandler(handler)
                handler.close()
        target.setLevel(level)


def managed(target):
    return [h for h in target.handlers if getattr(h, "lazylinq_managed", False)]


class TestParsePairs:

    def test_pairs(self):
        assert parse_pairs("a:1, b : two") == {"a": "1", "b": "two"}

    def test_value_keeps_extra_colons(self):
        assert parse_pairs("lazylinq:C:/logs/x.log") == {"lazylinq": "C:/logs/x.log"}

    def test_empty_entries_skipped(self):
        assert parse_pairs("a:1,,") == {"a": "1"}
        assert parse_pairs("") == {}

    def test_missing_value(self):
        with pytest.raises(ValueError, match="Expected 'name:value', got 'lazylinq'"):
            parse_pairs("lazylinq")


class TestLoggingSettings:

    def test_defaults(self):
        settings = LoggingSettings()
        assert settings.base_level == "WARNING"
        assert settings.levels == {}
        assert settings.files == {}

    def test_pair_strings_and_level_case(self):
        settings = LoggingSettings(base_level="info", levels="lazylinq.pipe.core:debug", files="lazylinq:q.log")
        assert settings.base_level == "INFO"
        assert settings.levels == {"lazylinq.pipe.core": "DEBUG"}
        assert settings.files == {"lazylinq": "q.log"}

    def test_unknown_level_rejected(self):
        with pytest.raises(ValidationError):
            LoggingSettings(base_level="LOUD")
        with pytest.raises(ValidationError):
            LoggingSettings(levels={"lazylinq": "chatty"})

    def test_frozen(self):
        settings = LoggingSettings()
        with pytest.raises(ValidationError):
            settings.base_level = "DEBUG"


class TestLoadSettings:

    def test_missing_file(self, tmp_path):
        settings = load_settings(path=str(tmp_path / "absent.toml"), environ={})
        assert settings == LoggingSettings()

    def test_reads_logging_table(self, tmp_path):
        path = tmp_path / "lazylinq.toml"
        path.write_text('[logging]\nbase_level = "error"\n'
                        '[logging.levels]\n"lazylinq.linq.deferred" = "DEBUG"\n')
        settings = load_settings(path=str(path), environ={})
        assert settings.base_level == "ERROR"
        assert settings.levels == {"lazylinq.linq.deferred": "DEBUG"}

    def test_other_tables_ignored(self, tmp_path):
        path = tmp_path / "lazylinq.toml"
        path.write_text('[other]\nbase_level = "DEBUG"\n')
        assert load_settings(path=str(path), environ={}).base_level == "WARNING"

    def test_environment_overrides_file(self, tmp_path):
        path = tmp_path / "lazylinq.toml"
        path.write_text('[logging]\nbase_level = "ERROR"\n')
        environ = {
            "LAZYLINQ_LOG_BASE_LEVEL": "info",
            "LAZYLINQ_LOG_LEVELS": "lazylinq.pipe.core:DEBUG",
        }
        settings = load_settings(path=str(path), environ=environ)
        assert settings.base_level == "INFO"
        assert settings.levels == {"lazylinq.pipe.core": "DEBUG"}

    def test_config_path_from_environment(self, tmp_path):
        path = tmp_path / "custom.toml"
        path.write_text('[logging]\nbase_level = "CRITICAL"\n')
        settings = load_settings(environ={"LAZYLINQ_CONFIG": str(path)})
        assert settings.base_level == "CRITICAL"

    def test_default_path_in_home(self, tmp_path, monkeypatch):
        monkeypatch.setenv("HOME", str(tmp_path))
        (tmp_path / ".lazylinq.toml").write_text('[logging]\nbase_level = "DEBUG"\n')
        assert load_settings(environ={}).base_level == "DEBUG"


class TestConfigureLogging:

    def test_exported_from_package(self):
        assert lazylinq.configure_logging is configure_logging

    def test_levels(self, clean_loggers):
        settings = configure_logging(LoggingSettings(base_level="ERROR", levels="lazylinq.pipe.core:debug"))
        package = logging.getLogger("lazylinq")
        assert settings.levels == {"lazylinq.pipe.core": "DEBUG"}
        assert package.level == logging.ERROR
        assert logging.getLogger("lazylinq.pipe.core").level == logging.DEBUG
        assert len(managed(package)) == 1

    def test_overrides_and_mapping(self, clean_loggers):
        settings = configure_logging({"base_level": "ERROR"}, base_level="INFO")
        assert settings.base_level == "INFO"
        assert logging.getLogger("lazylinq").level == logging.INFO

    def test_reads_settings_when_none_given(self, clean_loggers, monkeypatch, tmp_path):
        monkeypatch.setenv("LAZYLINQ_CONFIG", str(tmp_path / "absent.toml"))
        monkeypatch.setenv("LAZYLINQ_LOG_LEVELS", "lazylinq.linq.deferred:DEBUG")
        monkeypatch.delenv("LAZYLINQ_LOG_BASE_LEVEL", raising=False)
        monkeypatch.delenv("LAZYLINQ_LOG_FILES", raising=False)
        configure_logging()
        assert logging.getLogger("lazylinq.linq.deferred").level == logging.DEBUG

    def test_reconfigure_does_not_duplicate_handlers(self, clean_loggers):
        configure_logging(LoggingSettings())
        configure_logging(LoggingSettings())
        assert len(managed(logging.getLogger("lazylinq"))) == 1

    def test_foreign_handlers_kept(self, clean_loggers):
        package = logging.getLogger("lazylinq")
        foreign = logging.NullHandler()
        package.addHandler(foreign)
        configure_logging(LoggingSettings())
        assert foreign in package.handlers

    def test_log_file(self, clean_loggers, tmp_path):
        log_path = tmp_path / "lazylinq.log"
        configure_logging(LoggingSettings(base_level="INFO", files={"lazylinq": str(log_path)}))
        file_handlers = [h for h in managed(logging.getLogger("lazylinq"))
                         if isinstance(h, TimedRotatingFileHandler)]
        assert len(file_handlers) == 1
        logging.getLogger("lazylinq.pipe.core").info("written to file")
        file_handlers[0].flush()
        assert "written to file" in log_path.read_text()

    def test_pipeline_debug_records(self, clean_loggers, caplog):
        configure_logging(LoggingSettings(levels={"lazylinq.linq.deferred": "DEBUG"}))
        with caplog.at_level(logging.DEBUG, logger="lazylinq.linq.deferred"):
            assert lazylinq.DeferredSequence.from_([1, 2]).take(1).to_list() == [1]
        assert "Replaying 1 deferred commands" in caplog.text
