"""Runtime configuration for a wrapped program, and diagnostic logging setup."""

import os
import sys
from dataclasses import dataclass, field, replace
from types import ModuleType
from typing import Mapping, Optional

from loguru import logger

CONFIG_DEFAULT = dict(
    CMDWRAP_LOG_LEVEL="WARNING",
    CMDWRAP_LEGACY_SYNTAX="1",
)

_FALSE_WORDS = ("0", "false", "no", "off")


def _program_name() -> str:
    return os.path.basename(sys.argv[0]) if sys.argv and sys.argv[0] else "cmdwrap"


@dataclass
class WrapConfig:
    """What the help banner shows and how dispatch behaves."""
    title: Optional[str] = None
    version: str = ""
    copyright: str = ""
    program_name: str = field(default_factory=_program_name)
    # Default log folder; a -L directive on the command line takes precedence.
    log_folder: Optional[str] = None
    legacy_syntax: bool = True
    log_level: str = "WARNING"

    @property
    def banner_title(self) -> str:
        return self.title or self.program_name

    def with_env(self, environ: Optional[Mapping[str, str]] = None) -> 'WrapConfig':
        env = {**CONFIG_DEFAULT, **(os.environ if environ is None else environ)}
        return replace(
            self,
            log_level=str(env["CMDWRAP_LOG_LEVEL"]).upper(),
            legacy_syntax=str(env["CMDWRAP_LEGACY_SYNTAX"]).strip().lower() not in _FALSE_WORDS,
        )

    @classmethod
    def from_module(cls, module: Optional[ModuleType], environ: Optional[Mapping[str, str]] = None) -> 'WrapConfig':
        """Read __title__, __version__ and __copyright__ from the host module."""
        title = getattr(module, "__title__", None) if module else None
        version = getattr(module, "__version__", "") if module else ""
        copyright_ = getattr(module, "__copyright__", "") if module else ""
        config = cls(
            title=title,
            version=str(version or ""),
            copyright=str(copyright_ or "").replace("©", "(C)"),
        )
        return config.with_env(environ)


def configure_logging(level: str = "WARNING", sink=None) -> None:
    """Route loguru diagnostics to stderr at `level`, away from command output."""
    logger.remove()
    logger.add(sink or sys.stderr, level=level, colorize=False,
               format="{time:HH:mm:ss} {level: <8} {name}: {message}")
