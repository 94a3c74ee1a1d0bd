"""Durable storage collaborator backed by JSON files.

Layout under the data directory::

    profiles/<profile_id>/interview.json
    profiles/<profile_id>/summaries.json
    profiles/<profile_id>/qa.json
    sessions/<session_id>/context.json
    sessions/<session_id>/tasks.json
    sessions/<session_id>/questions.json

Reads degrade to empty defaults; writes raise :class:`StorageError` so the
caller can surface a warning while keeping its in-memory state.
"""

from __future__ import annotations

import json
import re
import threading
from pathlib import Path
from typing import Any, Dict, List, Optional, Protocol, Sequence

from pydantic import ValidationError

from ...errors import StorageError
from ...logging_config import logger
from ...models import (
    ClarificationQuestion,
    InterviewSummary,
    QARecord,
    QuestionStatus,
    SessionContext,
    SessionSummary,
    Task,
)


_SAFE_NAME = re.compile(r"[^A-Za-z0-9_.-]+")


class SessionStore(Protocol):
    def load_interview_summary(self, profile_id: str) -> Optional[InterviewSummary]:
        ...

    def load_session_summaries(self, profile_id: str, *, limit: int = 10) -> List[SessionSummary]:
        ...

    def load_answered_questions(self, profile_id: str) -> List[QARecord]:
        ...

    def save_interview_summary(self, profile_id: str, summary: InterviewSummary) -> None:
        ...

    def append_session_summary(self, profile_id: str, summary: SessionSummary) -> None:
        ...

    def save_tasks(self, session_id: str, tasks: Sequence[Task]) -> None:
        ...

    def save_questions(
        self, profile_id: str, session_id: str, questions: Sequence[ClarificationQuestion]
    ) -> None:
        ...

    def save_session_context(self, context: SessionContext) -> None:
        ...


def _safe(name: str) -> str:
    cleaned = _SAFE_NAME.sub("_", (name or "").strip()).strip(".")
    return cleaned or "default"


class JsonSessionStore:
    """One lock per store; every write replaces its file atomically."""

    def __init__(self, root: Path) -> None:
        self._root = Path(root)
        self._lock = threading.Lock()

    @property
    def root(self) -> Path:
        return self._root

    # ------------------------------------------------------------------
    # Paths
    # ------------------------------------------------------------------
    def _profile_dir(self, profile_id: str) -> Path:
        return self._root / "profiles" / _safe(profile_id)

    def _session_dir(self, session_id: str) -> Path:
        return self._root / "sessions" / _safe(session_id)

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------
    def _read_json(self, path: Path, default: Any) -> Any:
        with self._lock:
            try:
                return json.loads(path.read_text(encoding="utf-8"))
            except FileNotFoundError:
                return default
            except (OSError, ValueError) as exc:
                logger.warning(
                    "store read failed; using defaults",
                    extra={"path": str(path), "error": str(exc)},
                )
                return default

    def load_interview_summary(self, profile_id: str) -> Optional[InterviewSummary]:
        data = self._read_json(self._profile_dir(profile_id) / "interview.json", None)
        if not isinstance(data, dict):
            return None
        try:
            return InterviewSummary.model_validate(data)
        except ValidationError as exc:
            logger.warning(
                "interview summary invalid; ignoring",
                extra={"profile_id": profile_id, "error": str(exc)},
            )
            return None

    def _load_summary_records(self, profile_id: str) -> List[SessionSummary]:
        data = self._read_json(self._profile_dir(profile_id) / "summaries.json", [])
        if not isinstance(data, list):
            return []
        summaries: List[SessionSummary] = []
        for item in data:
            try:
                summaries.append(SessionSummary.model_validate(item))
            except ValidationError:
                logger.debug("skipping malformed session summary", extra={"profile_id": profile_id})
        return summaries

    def load_session_summaries(self, profile_id: str, *, limit: int = 10) -> List[SessionSummary]:
        """Latest summary per session, newest first."""

        latest: Dict[str, SessionSummary] = {}
        for summary in self._load_summary_records(profile_id):
            latest[summary.session_id] = summary
        ordered = sorted(latest.values(), key=lambda summary: summary.date, reverse=True)
        return ordered[: max(limit, 0)]

    def load_answered_questions(self, profile_id: str) -> List[QARecord]:
        data = self._read_json(self._profile_dir(profile_id) / "qa.json", [])
        if not isinstance(data, list):
            return []
        records: List[QARecord] = []
        for item in data:
            try:
                records.append(QARecord.model_validate(item))
            except ValidationError:
                logger.debug("skipping malformed qa record", extra={"profile_id": profile_id})
        return records

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------
    def _write_json(self, path: Path, payload: Any) -> None:
        temp_path = path.with_suffix(".tmp")
        with self._lock:
            try:
                path.parent.mkdir(parents=True, exist_ok=True)
                temp_path.write_text(json.dumps(payload, indent=2, default=str), encoding="utf-8")
                temp_path.replace(path)
            except (OSError, TypeError, ValueError) as exc:
                logger.error("store write failed", extra={"path": str(path), "error": str(exc)})
                raise StorageError(f"failed to write {path.name}: {exc}") from exc
            finally:
                if temp_path.exists():
                    try:
                        temp_path.unlink()
                    except OSError:  # pragma: no cover - best-effort cleanup
                        pass

    def save_interview_summary(self, profile_id: str, summary: InterviewSummary) -> None:
        self._write_json(self._profile_dir(profile_id) / "interview.json", summary.model_dump(mode="json"))

    def append_session_summary(self, profile_id: str, summary: SessionSummary) -> None:
        records = [item.model_dump(mode="json") for item in self._load_summary_records(profile_id)]
        records.append(summary.model_dump(mode="json"))
        self._write_json(self._profile_dir(profile_id) / "summaries.json", records)

    def save_tasks(self, session_id: str, tasks: Sequence[Task]) -> None:
        self._write_json(self._session_dir(session_id) / "tasks.json", [task.to_record() for task in tasks])

    def save_questions(
        self, profile_id: str, session_id: str, questions: Sequence[ClarificationQuestion]
    ) -> None:
        self._write_json(
            self._session_dir(session_id) / "questions.json",
            [question.model_dump(mode="json") for question in questions],
        )

        answered = [
            QARecord(question=item.question, answer=item.answer or "", answered_at=item.answered_at)
            for item in questions
            if item.status == QuestionStatus.ANSWERED and item.answer
        ]
        if not answered:
            return
        merged: Dict[str, QARecord] = {record.question: record for record in self.load_answered_questions(profile_id)}
        for record in answered:
            merged[record.question] = record
        self._write_json(
            self._profile_dir(profile_id) / "qa.json",
            [record.model_dump(mode="json") for record in merged.values()],
        )

    def save_session_context(self, context: SessionContext) -> None:
        self._write_json(self._session_dir(context.session_id) / "context.json", context.to_record())


__all__ = ["JsonSessionStore", "SessionStore"]
