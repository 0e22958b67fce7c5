# obadgen/settings.py
import logging
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Optional

from obadgen.constants import CRYPTO_PK, LOG_LEVEL

TRACE = 5
logging.addLevelName(TRACE, "TRACE")


class Verbosity(Enum):
    NONE = "none"
    ERRORS = "errors"
    WARNINGS = "warnings"
    INFO = "info"
    DEBUG = "debug"
    TRACE = "trace"

    def up(self, steps: int = 1) -> "Verbosity":
        """Increases the verbosity by ``steps``, halting at TRACE."""
        members = list(Verbosity)
        return members[min(members.index(self) + steps, len(members) - 1)]

    def down(self, steps: int = 1) -> "Verbosity":
        """Decreases the verbosity by ``steps``, halting at NONE."""
        members = list(Verbosity)
        return members[max(members.index(self) - steps, 0)]

    def to_logging_level(self) -> int:
        return {
            Verbosity.NONE: logging.CRITICAL + 10,
            Verbosity.ERRORS: logging.ERROR,
            Verbosity.WARNINGS: logging.WARNING,
            Verbosity.INFO: logging.INFO,
            Verbosity.DEBUG: logging.DEBUG,
            Verbosity.TRACE: TRACE,
        }[self]


def default_verbosity() -> Verbosity:
    try:
        return Verbosity(LOG_LEVEL.lower())
    except ValueError:
        return Verbosity.INFO


@dataclass
class Settings:
    verbosity: Verbosity = Verbosity.INFO
    # Location of the Open Badge Assertion JSON-LD to be baked
    assertion_loc: Optional[Path] = None
    # Hosted assertion URL to be baked instead of an assertion document
    verify_url: Optional[str] = None
    # Location of the private key required for signing, if signing is used
    sign_key_loc: Optional[Path] = None
    # Multibase encoded private key, used if no key file is given
    private_key: Optional[str] = CRYPTO_PK
    key_id: Optional[str] = None
    # Location of the to be baked Open Badge image
    source_image_loc: Optional[Path] = None
    # Location of the baked Open Badge image
    baked_loc: Optional[Path] = None
    fail_if_verify_present: bool = True
