# FILE: promptlab/pipeline/enricher.py
"""
Context enricher.

Splices the text of referenced context files in front of the user prompt:

    Context:
    === File: notes.txt ===
    <file text>

    User Request:
    <prompt>

A file whose row is missing or whose storage path cannot be read is logged
and skipped; the call never fails because of a missing file.
"""

import asyncio
import logging
from pathlib import Path
from typing import List, Optional, Sequence, Tuple

from sqlalchemy.orm import Session, sessionmaker

from promptlab.memory import models

logger = logging.getLogger(__name__)


class PromptEnricher:

    def __init__(self, session_factory: sessionmaker):
        if session_factory is None:
            raise ValueError("session_factory is required")
        self._session_factory = session_factory

    async def enrich(
        self,
        prompt: str,
        context_file_ids: Optional[Sequence[str]],
    ) -> Tuple[str, Optional[str]]:
        """Return (enriched prompt, first referenced context file id)."""
        if not context_file_ids:
            return prompt, None

        files = await asyncio.to_thread(self._load_file_rows, list(context_file_ids))
        if not files:
            logger.warning("[enricher] None of the referenced context files exist: %s", list(context_file_ids))
            return prompt, None

        first_context_file_id = files[0][0]

        sections: List[str] = []
        for file_id, file_name, storage_path in files:
            text = await self._read_file(file_id, storage_path)
            if text is None:
                continue
            sections.append(f"=== File: {file_name} ===\n{text}\n")

        context_content = "\n".join(sections)
        if not context_content.strip():
            return prompt, first_context_file_id

        enriched = f"Context:\n{context_content}\n\nUser Request:\n{prompt}"
        logger.info("[enricher] Enriched prompt with %d context file(s)", len(sections))
        return enriched, first_context_file_id

    def _load_file_rows(self, context_file_ids: List[str]) -> List[Tuple[str, str, str]]:
        db: Session = self._session_factory()
        try:
            rows = (
                db.query(models.ContextFile)
                .filter(models.ContextFile.id.in_(context_file_ids))
                .all()
            )
            by_id = {row.id: (row.id, row.file_name, row.storage_path) for row in rows}
        finally:
            db.close()

        # Keep the caller's reference order, drop duplicates and unknown ids
        ordered: List[Tuple[str, str, str]] = []
        seen = set()
        for file_id in context_file_ids:
            if file_id in by_id and file_id not in seen:
                ordered.append(by_id[file_id])
                seen.add(file_id)
            elif file_id not in by_id:
                logger.warning("[enricher] Context file record not found: %s", file_id)
        return ordered

    async def _read_file(self, file_id: str, storage_path: str) -> Optional[str]:
        path = Path(storage_path)
        try:
            if not await asyncio.to_thread(path.is_file):
                logger.warning("[enricher] Context file not found at path: %s (FileId: %s)", storage_path, file_id)
                return None
            return await asyncio.to_thread(path.read_text, encoding="utf-8")
        except (OSError, UnicodeDecodeError) as exc:
            logger.error("[enricher] Error reading context file %s: %s", file_id, exc)
            return None
