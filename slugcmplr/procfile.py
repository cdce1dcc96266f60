"""Procfile parsing and serialization.

A Procfile maps process names to the commands that start them, one
`<process>: <command>` pair per line. Order carries no meaning.
"""

from __future__ import annotations

import logging
import re
from pathlib import Path
from typing import TextIO

from .errors import ProcfileError

logger = logging.getLogger(__name__)

PROCFILE = "Procfile"

_LINE = re.compile(r"^(?P<process>[A-Za-z0-9_-]+): (?P<command>.*)$")


class Procfile(dict[str, str]):
    """Process name to command mapping.

    Example:
        >>> procfile = Procfile.parse("web: bin/server\\nworker: bin/jobs\\n")
        >>> procfile.entrypoint("web")
        'bin/server'
        >>> procfile.processes()
        ['web', 'worker']
    """

    def add(self, process: str, command: str) -> Procfile:
        """Define process, replacing any previous command."""
        self[process] = command
        return self

    def remove(self, process: str) -> Procfile:
        self.pop(process, None)
        return self

    def entrypoint(self, process: str) -> str | None:
        return self.get(process)

    def defined(self, process: str) -> bool:
        return process in self

    def processes(self) -> list[str]:
        return list(self)

    def dumps(self) -> str:
        return "".join(f"{process}: {command}\n" for process, command in self.items())

    def write(self, out: TextIO) -> int:
        """Write the Procfile to out, leaving it open.

        Returns:
            Number of characters written
        """
        return out.write(self.dumps())

    @classmethod
    def parse(cls, text: str) -> Procfile:
        """Parse Procfile content.

        Raises:
            ProcfileError: On the first line not of the form `<process>: <command>`
        """
        procfile = cls()
        for number, line in enumerate(text.splitlines(), start=1):
            match = _LINE.match(line)
            if match is None:
                raise ProcfileError(f"invalid Procfile line {number}: {line!r}")
            procfile.add(match["process"], match["command"])
        return procfile

    @classmethod
    def read(cls, path: Path | str) -> Procfile:
        """Read and parse the Procfile at path.

        Raises:
            ProcfileError: If the file is missing or malformed
        """
        path = Path(path)
        try:
            text = path.read_text(encoding="utf-8")
        except FileNotFoundError as e:
            raise ProcfileError(f"No Procfile found at {path}") from e

        try:
            procfile = cls.parse(text)
        except ProcfileError as e:
            raise ProcfileError(f"{path}: {e}") from e

        logger.debug(f"Read {len(procfile)} process types from {path}")
        return procfile
