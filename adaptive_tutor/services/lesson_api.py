"""HTTP client for the tutor API (same methods as LLMService)."""

from typing import Optional

import httpx

from adaptive_tutor.config import settings
from adaptive_tutor.errors import (
    MalformedResponseError,
    ModelGatewayError,
    PayloadValidationError,
)
from adaptive_tutor.extraction import parse_pending, parse_session_view
from adaptive_tutor.models import Difficulty, HistoryEntry, PendingView, SessionView


class LessonAPIClient:
    def __init__(self, base_url: Optional[str] = None, client: Optional[httpx.Client] = None):
        self.base = (base_url or settings.API_BASE_URL).rstrip("/")
        self.client = client or httpx.Client(timeout=settings.API_TIMEOUT)
        self.headers = {"content-type": "application/json"}

    def _send(self, method: str, path: str, **kwargs) -> dict:
        try:
            r = self.client.request(method, f"{self.base}{path}", headers=self.headers, **kwargs)
        except httpx.HTTPError as e:
            raise ModelGatewayError(f"Tutor API unreachable: {e}") from e
        try:
            body = r.json()
        except ValueError:
            body = {"error": r.text}
        if r.is_success:
            return body
        error = body.get("error", r.reason_phrase) if isinstance(body, dict) else r.reason_phrase
        if r.status_code == 400:
            raise PayloadValidationError(error)
        if isinstance(body, dict) and "raw" in body:
            raise MalformedResponseError(error, raw=body["raw"], cleaned=body.get("cleaned", ""))
        raise ModelGatewayError(f"{error} (HTTP {r.status_code})")

    @staticmethod
    def _payload(grade, subject, topic, history, difficulty) -> dict:
        return {
            "grade": grade,
            "subject": subject,
            "topic": topic,
            "history": [entry.model_dump(mode="json", exclude_none=True) for entry in history],
            "difficulty": difficulty,
        }

    def list_topics(self, grade: str, subject: str = settings.DEFAULT_SUBJECT) -> list[str]:
        """Get topics for a grade and subject."""
        body = self._send("GET", "/api/topics", params={"grade": grade, "subject": subject})
        return body.get("topics", [])

    def lesson(
        self,
        grade: str,
        subject: str,
        topic: str,
        history: list[HistoryEntry],
        difficulty: Difficulty = "medium",
        reveal: bool = False,
    ) -> SessionView:
        """Run one lesson turn on the server."""
        payload = self._payload(grade, subject, topic, history, difficulty)
        payload["reveal"] = reveal
        body = self._send("POST", "/api/lesson", json=payload)
        return parse_session_view(body, raw=str(body))

    def generate_question(
        self,
        grade: str,
        subject: str,
        topic: str,
        history: list[HistoryEntry],
        difficulty: Difficulty = "medium",
    ) -> PendingView:
        """Ask the server for a fresh question."""
        payload = self._payload(grade, subject, topic, history, difficulty)
        body = self._send("POST", "/api/generate-question", json=payload)
        return parse_pending(body, raw=str(body))

    def close(self) -> None:
        self.client.close()
