"""Progress output in the buildpack console style.

Phase markers are written as `-----> message`, details as indented lines, to
the binary sink the caller streams build output to. Each line is mirrored to
the module logger so a compile is observable without a sink.
"""

import logging
from typing import BinaryIO

logger = logging.getLogger(__name__)

STEP_PREFIX = "-----> "
LOG_PREFIX = "       "


def _emit(out: BinaryIO | None, line: str) -> None:
    if out is None:
        return
    out.write(f"{line}\n".encode())
    out.flush()


def step(out: BinaryIO | None, message: str) -> None:
    """Announce the start of a phase."""
    logger.info(message)
    _emit(out, STEP_PREFIX + message)


def log(out: BinaryIO | None, message: str) -> None:
    """Report a detail of the current phase."""
    logger.debug(message)
    _emit(out, LOG_PREFIX + message)
