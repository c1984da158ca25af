"""File-backed, append-only log of parsed DSL diagnostics.

The log is a single pretty-printed JSON array. Every mutation reads the whole
array, changes it in memory and writes it back through a temporary file that
is renamed over the original, so a reader never sees a half-written file.
Mutations inside one process are serialised by a lock; separate processes
writing the same file remain last-writer-wins.
"""

from __future__ import annotations

import json
import os
import tempfile
from pathlib import Path
from threading import Lock
from typing import Any, List, Optional, Tuple

from mcp.server.fastmcp.utilities.logging import get_logger

from structurizr_dsl_mcp.diagnostics import Diagnostic

logger = get_logger(__name__)

DEFAULT_MAX_RECENT = 100


class DiagnosticLogWriteError(RuntimeError):
    """Raised when the log file cannot be written."""

    def __init__(self, path: Path, cause: BaseException) -> None:
        super().__init__(f"Failed to write DSL error log {path}: {cause}")
        self.path = path
        self.cause = cause


class DiagnosticLog:
    def __init__(self, path: str | os.PathLike[str], *, max_recent: int = DEFAULT_MAX_RECENT) -> None:
        if max_recent < 1:
            raise ValueError("max_recent must be >= 1")
        self.path = Path(path)
        self.max_recent = max_recent
        self.last_warning: Optional[str] = None
        self._lock = Lock()

    def ensure_exists(self) -> None:
        """Create the parent directory and an empty log when missing."""

        with self._lock:
            if self.path.exists():
                return
            try:
                self.path.parent.mkdir(parents=True, exist_ok=True)
            except OSError as exc:
                raise DiagnosticLogWriteError(self.path, exc) from exc
            self._write([])

    def entries(self) -> List[Diagnostic]:
        """Return every stored diagnostic in insertion order."""

        with self._lock:
            return self._read()

    def append(self, diagnostic: Diagnostic) -> int:
        """Append ``diagnostic`` and return the new log length."""

        with self._lock:
            current = self._read()
            current.append(diagnostic)
            self._write(current)
            return len(current)

    def recent(self, count: int) -> List[Diagnostic]:
        """Return up to ``count`` of the newest diagnostics, oldest first."""

        count = self._clamp(count)
        with self._lock:
            current = self._read()
        return current[-count:]

    def unique_recent(self, count: int) -> List[Diagnostic]:
        """Like :meth:`recent`, collapsing repeats of the same file/line/message.

        The newest occurrence of each error is kept; results stay in insertion
        order.
        """

        count = self._clamp(count)
        with self._lock:
            current = self._read()

        seen: set[Tuple[str, int, str]] = set()
        picked: List[Diagnostic] = []
        for diagnostic in reversed(current):
            if len(picked) >= count:
                break
            if diagnostic.key in seen:
                continue
            seen.add(diagnostic.key)
            picked.append(diagnostic)
        picked.reverse()
        return picked

    def clear(self) -> None:
        with self._lock:
            self._write([])
            self.last_warning = None

    def _clamp(self, count: int) -> int:
        if isinstance(count, bool) or not isinstance(count, int):
            raise TypeError(f"count must be an integer, got {type(count).__name__}")
        if count < 1:
            raise ValueError(f"count must be >= 1, got {count}")
        return min(count, self.max_recent)

    def _read(self) -> List[Diagnostic]:
        self.last_warning = None
        try:
            raw_text = self.path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return []
        except (OSError, UnicodeDecodeError) as exc:
            return self._read_failed(f"could not read {self.path}: {exc}")

        if not raw_text.strip():
            return []

        try:
            payload: Any = json.loads(raw_text)
        except json.JSONDecodeError as exc:
            return self._read_failed(f"{self.path} is not valid JSON: {exc}")

        if not isinstance(payload, list):
            return self._read_failed(f"{self.path} does not contain a JSON array")

        diagnostics: List[Diagnostic] = []
        skipped = 0
        for item in payload:
            try:
                diagnostics.append(Diagnostic.from_record(item))
            except (TypeError, ValueError):
                skipped += 1
        if skipped:
            self.last_warning = f"skipped {skipped} malformed entries in {self.path}"
            logger.warning("DSL error log: %s", self.last_warning)
        return diagnostics

    def _read_failed(self, reason: str) -> List[Diagnostic]:
        self.last_warning = f"{reason}; treating the log as empty"
        logger.warning("DSL error log: %s", self.last_warning)
        return []

    def _write(self, diagnostics: List[Diagnostic]) -> None:
        records = [diagnostic.to_record() for diagnostic in diagnostics]
        tmp_name: Optional[str] = None
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(
                prefix=f".{self.path.name}.", suffix=".tmp", dir=self.path.parent
            )
            with os.fdopen(fd, "w", encoding="utf-8") as handle:
                json.dump(records, handle, indent=2, ensure_ascii=False)
                handle.write("\n")
            os.replace(tmp_name, self.path)
            tmp_name = None
        except (OSError, ValueError) as exc:
            # ValueError covers text json cannot encode, e.g. lone surrogates.
            raise DiagnosticLogWriteError(self.path, exc) from exc
        finally:
            if tmp_name is not None:
                try:
                    os.unlink(tmp_name)
                except OSError:
                    pass


__all__ = ["DEFAULT_MAX_RECENT", "DiagnosticLog", "DiagnosticLogWriteError"]
