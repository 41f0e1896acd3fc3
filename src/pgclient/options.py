"""
Connection options and conninfo rendering.
"""
import logging
import pathlib
import sys
from collections.abc import Mapping
from dataclasses import dataclass, fields, replace
from typing import Any

from pgclient.exceptions import ValidationError
from psycopg.conninfo import conninfo_to_dict, make_conninfo

__all__ = [
    'DatabaseOptions',
    'load_options',
]

logger = logging.getLogger(__name__)

# DatabaseOptions field -> libpq conninfo keyword
CONNINFO_KEYWORDS = {
    'hostname': 'host',
    'port': 'port',
    'database': 'dbname',
    'username': 'user',
    'password': 'password',
    'timeout': 'connect_timeout',
    'appname': 'application_name',
    'sslmode': 'sslmode',
}

_INT_FIELDS = {'port', 'timeout'}


def scriptname() -> str | None:
    """Name of the running script without extension, None in a console.
    """
    if not sys.argv or not sys.argv[0]:
        return None
    return pathlib.Path(sys.argv[0]).stem or None


def _section(config: Any, section: str) -> Any:
    if isinstance(config, Mapping):
        return config[section]
    return getattr(config, section)


def _read(source: Any, name: str) -> Any:
    if isinstance(source, Mapping):
        return source.get(name)
    return getattr(source, name, None)


@dataclass
class DatabaseOptions:
    """Options

    Fields map onto libpq conninfo keywords, see `CONNINFO_KEYWORDS`.
    A port or timeout of 0 leaves the choice to the driver.
    """
    hostname: str = None
    port: int = 0
    database: str = None
    username: str = None
    password: str = None
    timeout: int = 0
    appname: str = None
    sslmode: str = None

    def __post_init__(self):
        for name in _INT_FIELDS:
            value = getattr(self, name)
            try:
                setattr(self, name, int(value or 0))
            except (TypeError, ValueError) as exc:
                raise ValidationError(f'{name} must be an integer, got {value!r}') from exc
        if not 0 <= self.port <= 65535:
            raise ValidationError(f'port must be between 0 and 65535, got {self.port}')
        if self.timeout < 0:
            raise ValidationError(f'timeout must be non-negative, got {self.timeout}')
        self.appname = self.appname or scriptname() or 'python_console'

    def __str__(self) -> str:
        masked = replace(self, password='***' if self.password else None)
        return masked.to_conninfo()

    def to_conninfo(self) -> str:
        """Render the space-separated key=value connection string.
        """
        params = {}
        for field in fields(self):
            value = getattr(self, field.name)
            if value in (None, '') or (field.name in _INT_FIELDS and not value):
                continue
            params[CONNINFO_KEYWORDS[field.name]] = value
        return make_conninfo('', **params)

    @classmethod
    def from_conninfo(cls, conninfo: str) -> 'DatabaseOptions':
        """Parse a conninfo string or postgresql:// URI.
        """
        parsed = conninfo_to_dict(conninfo)
        reverse = {v: k for k, v in CONNINFO_KEYWORDS.items()}
        kwargs = {}
        for key, value in parsed.items():
            if key in reverse:
                kwargs[reverse[key]] = value
            else:
                logger.debug(f'Ignoring unsupported conninfo keyword {key}')
        return cls(**kwargs)

    @classmethod
    def from_config(cls, config: Any, section: str = 'postgresql') -> 'DatabaseOptions':
        """Read options from a config namespace or mapping, e.g. `config.postgresql`.
        """
        try:
            source = _section(config, section)
        except (KeyError, AttributeError) as exc:
            raise ValidationError(f'No configuration section named {section!r}') from exc
        kwargs = {}
        for field in fields(cls):
            value = _read(source, field.name)
            if value is not None:
                kwargs[field.name] = value
        return cls(**kwargs)


def load_options(options: 'DatabaseOptions | Mapping[str, Any] | str',
                 config: Any | None = None, **kw: Any) -> DatabaseOptions:
    """Build DatabaseOptions from any supported source.

    Args:
        options: Can be:
                - DatabaseOptions object
                - Section name, read from `config`
                - conninfo string or URI
                - Dictionary of options
        config: Configuration object (for loading named sections)
        **kw: Fields overriding the loaded options
    """
    if isinstance(options, DatabaseOptions):
        loaded = options
    elif isinstance(options, Mapping):
        loaded = DatabaseOptions(**options)
    elif isinstance(options, str) and config is not None:
        loaded = DatabaseOptions.from_config(config, options)
    elif isinstance(options, str):
        loaded = DatabaseOptions.from_conninfo(options)
    else:
        raise ValidationError(f'Unsupported options type: {type(options).__name__}')

    valid = {field.name for field in fields(DatabaseOptions)}
    unknown = set(kw) - valid
    if unknown:
        raise ValidationError(f'Unknown options: {sorted(unknown)}')
    if kw:
        loaded = replace(loaded, **kw)
    return loaded
