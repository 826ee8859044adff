"""
Append-only debug log keyed by run identifier.

Each run gets its own directory holding ``prompts.log`` (every prompt sent to a
text or image backend) and, once rendered, a ``story.pdf`` snapshot.
"""

from __future__ import annotations

import asyncio
import logging
import os
from datetime import datetime, timezone
from pathlib import Path

logger = logging.getLogger(__name__)

PROMPTS_FILENAME = "prompts.log"
DOCUMENT_FILENAME = "story.pdf"
_SEPARATOR = "-" * 80


class DebugLogSink:
    """
    Writes prompt records and document snapshots under ``root/<run_id>/``.

    Write failures are logged and swallowed; debugging output must never fail a run.
    """

    def __init__(self, root: str | Path | None = None) -> None:
        self._root = Path(root or os.getenv("SOCIALLY_DEBUG_LOG_DIR") or "debug_logs")
        self._pending: set[asyncio.Future[None]] = set()

    @property
    def root(self) -> Path:
        return self._root

    def run_directory(self, run_id: str) -> Path:
        return self._root / run_id

    def log_prompt(self, run_id: str, kind: str, content: str) -> None:
        """Synchronously append one record to the run's prompt log."""
        timestamp = datetime.now(timezone.utc).isoformat()
        entry = f"[{timestamp}] [{kind}]\n{content}\n\n{_SEPARATOR}\n\n"
        try:
            log_dir = self.run_directory(run_id)
            log_dir.mkdir(parents=True, exist_ok=True)
            with (log_dir / PROMPTS_FILENAME).open("a", encoding="utf-8") as handle:
                handle.write(entry)
        except OSError:
            logger.exception("Failed to write to debug log for run %s.", run_id)

    def emit_prompt(self, run_id: str, kind: str, content: str) -> None:
        """
        Fire-and-forget variant of :meth:`log_prompt`.

        Inside an event loop the write runs in a worker thread and this returns
        immediately; :meth:`drain` waits for outstanding writes.
        """
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            self.log_prompt(run_id, kind, content)
            return

        future = loop.run_in_executor(None, self.log_prompt, run_id, kind, content)
        self._pending.add(future)
        future.add_done_callback(self._pending.discard)

    async def drain(self) -> None:
        if self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)

    def save_document(self, run_id: str, pdf_bytes: bytes) -> Path | None:
        """Store the rendered story snapshot; returns the written path or ``None``."""
        try:
            log_dir = self.run_directory(run_id)
            log_dir.mkdir(parents=True, exist_ok=True)
            target = log_dir / DOCUMENT_FILENAME
            target.write_bytes(pdf_bytes)
        except OSError:
            logger.exception("Failed to save debug document for run %s.", run_id)
            return None
        return target
