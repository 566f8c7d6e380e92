"""Logging configuration for lazylinq.

The library only logs; it never installs handlers on import.  Applications
that want to see what pipelines are doing call :func:`configure_logging`,
either with explicit settings or with the ``[logging]`` table of
``~/.lazylinq.toml``:

    [logging]
    base_level = "WARNING"
    levels = { "lazylinq.linq.deferred" = "DEBUG" }
    files = { "lazylinq" = "/var/log/lazylinq.log" }

``LAZYLINQ_LOG_BASE_LEVEL``, ``LAZYLINQ_LOG_LEVELS`` and
``LAZYLINQ_LOG_FILES`` override the file; the last two take
``"logger:value,logger:value"`` lists.  ``LAZYLINQ_CONFIG`` points at a
different file.
"""
import logging
import os
import tomllib
from logging.handlers import TimedRotatingFileHandler
from typing import Dict, Mapping, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator

logger = logging.getLogger(__name__)

ENV_PREFIX = "LAZYLINQ_"
CONFIG_PATH_VARIABLE = ENV_PREFIX + "CONFIG"
DEFAULT_CONFIG_PATH = "~/.lazylinq.toml"
PACKAGE_LOGGER = "lazylinq"
LOG_FORMAT = '%(asctime)s - %(levelname)s:%(name)s:%(message)s'

_ENV_FIELDS = {
    "base_level": ENV_PREFIX + "LOG_BASE_LEVEL",
    "levels": ENV_PREFIX + "LOG_LEVELS",
    "files": ENV_PREFIX + "LOG_FILES",
}


def parse_pairs(text: str) -> Dict[str, str]:
    """Parse "name:value,name:value" into a dict.

    Only the first colon separates name and value, so values may be paths
    containing colons.  Empty entries are skipped.

    Raises:
        ValueError: If an entry has no value.
    """
    pairs = {}
    for entry in text.split(","):
        if not entry.strip():
            continue
        name, separator, value = entry.partition(":")
        if not separator or not value.strip():
            raise ValueError(f"Expected 'name:value', got '{entry.strip()}'")
        pairs[name.strip()] = value.strip()
    return pairs


def _level_name(level: str) -> str:
    name = str(level).strip().upper()
    if name not in logging.getLevelNamesMapping():
        raise ValueError(f"Unknown logging level '{level}'")
    return name


class LoggingSettings(BaseModel):
    """Which lazylinq loggers to enable, at what level and where to write.

    Examples:
        LoggingSettings(levels="lazylinq.pipe.core:debug")
        LoggingSettings(levels={"lazylinq": "INFO"}, files={"lazylinq": "query.log"})
    """

    model_config = ConfigDict(frozen=True)

    base_level: str = "WARNING"
    levels: Dict[str, str] = Field(default_factory=dict)
    files: Dict[str, str] = Field(default_factory=dict)

    @field_validator("levels", "files", mode="before")
    @classmethod
    def _split_pairs(cls, value):
        if isinstance(value, str):
            return parse_pairs(value)
        return value

    @field_validator("base_level")
    @classmethod
    def _check_base_level(cls, value: str) -> str:
        return _level_name(value)

    @field_validator("levels")
    @classmethod
    def _check_levels(cls, value: Dict[str, str]) -> Dict[str, str]:
        return {name: _level_name(level) for name, level in value.items()}


def load_settings(path: Optional[str] = None,
                  environ: Optional[Mapping[str, str]] = None) -> LoggingSettings:
    """Read LoggingSettings from the config file and the environment.

    Args:
        path: TOML file to read.  Defaults to $LAZYLINQ_CONFIG, then
            ~/.lazylinq.toml.  A missing file is not an error.
        environ: Environment to read overrides from.  Defaults to os.environ.

    Raises:
        pydantic.ValidationError: If a level name or pair list is malformed.
    """
    environ = os.environ if environ is None else environ
    path = path or environ.get(CONFIG_PATH_VARIABLE) or DEFAULT_CONFIG_PATH
    config_path = os.path.expanduser(path)

    values = {}
    if os.path.exists(config_path):
        logger.debug(f"Reading logging settings from {config_path}")
        with open(config_path, 'rb') as f:
            values.update(tomllib.load(f).get("logging", {}))

    for field, variable in _ENV_FIELDS.items():
        if variable in environ:
            values[field] = environ[variable]
            logger.debug(f"Set logging {field} from environment variable {variable}")

    return LoggingSettings(**values)


def _target(name: str) -> logging.Logger:
    return logging.getLogger(None if name == "root" else name)


def _remove_managed_handlers(target: logging.Logger):
    for existing in list(target.handlers):
        if getattr(existing, "lazylinq_managed", False):
            target.removeHandler(existing)
            existing.close()


def _add_managed_handler(target: logging.Logger, handler: logging.Handler, formatter: logging.Formatter):
    handler.setFormatter(formatter)
    handler.lazylinq_managed = True
    target.addHandler(handler)


def configure_logging(settings: Union[LoggingSettings, Mapping, None] = None, **overrides) -> LoggingSettings:
    """Apply logging settings to the lazylinq loggers.

    The package logger gets base_level and a console handler.  Each entry
    in levels sets the level of that logger, whose records reach the
    console handler through propagation.  Each entry in files adds a daily
    rotating file handler to that logger.  Handlers an earlier call added to
    those loggers are removed first; handlers installed by anything else
    are kept.

    Args:
        settings: LoggingSettings, or a mapping of its fields.  Defaults to
            load_settings().
        **overrides: Individual fields replacing those of settings.

    Returns:
        The settings that were applied.

    Examples:
        >>> configure_logging(levels="lazylinq.linq.deferred:DEBUG")
    """
    if settings is None:
        settings = load_settings()
    elif not isinstance(settings, LoggingSettings):
        settings = LoggingSettings(**settings)
    if overrides:
        settings = LoggingSettings(**{**settings.model_dump(), **overrides})

    formatter = logging.Formatter(LOG_FORMAT)
    targets = {PACKAGE_LOGGER, *settings.levels, *settings.files}
    for name in targets:
        _remove_managed_handlers(_target(name))

    package = logging.getLogger(PACKAGE_LOGGER)
    package.setLevel(settings.base_level)
    _add_managed_handler(package, logging.StreamHandler(), formatter)

    for name, level in settings.levels.items():
        _target(name).setLevel(level)

    for name, file_name in settings.files.items():
        file_handler = TimedRotatingFileHandler(file_name, when='midnight', backupCount=7)
        _add_managed_handler(_target(name), file_handler, formatter)

    logger.debug(f"Configured logging: {settings}")
    return settings
