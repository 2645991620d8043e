"""Async client turning a transcript into formatted text or a summary.

The credential is read from the store on every call so a key saved in
the middle of a session is picked up by the next request.  HTTP errors are
classified by status code alone; the service gives no body guarantees for
non-2xx responses.
"""

from __future__ import annotations

import logging
from typing import Any, Optional

import httpx

from config import DEFAULT_ENDPOINT
from errors import InvalidCredential, MissingCredential, TransientFailure
from interfaces import CredentialStore
from models import AIRequest, SummaryStyle, TransformKind

logger = logging.getLogger(__name__)

NO_RESPONSE_MESSAGE = "AIからの応答がありませんでした。"
INVALID_CREDENTIAL_STATUSES = (400, 403)

FORMAT_INSTRUCTION = (
    "あなたは優秀な日本語の校正者です。以下のテキスト（音声認識結果）を、"
    "誤字脱字・誤変換を推測して修正し、フィラーを削除して、"
    "読みやすい「です・ます」調の自然なビジネス文書に整形してください。"
)

SUMMARY_INSTRUCTIONS = {
    SummaryStyle.CONCISE: "概要を1〜2行で述べ、重要なポイントを箇条書きで3〜5点挙げてください。",
    SummaryStyle.DETAILED: "詳細に分析し、文脈や論理構成を含めて丁寧に解説してください。",
    SummaryStyle.MINUTES: (
        "会議の議事録として、【概要】【主な議題】【決定事項】【ネクストアクション】"
        "の形式でまとめてください。"
    ),
}


def build_prompt(request: AIRequest) -> str:
    if request.kind == TransformKind.FORMAT:
        return f"{FORMAT_INSTRUCTION}\n\nテキスト:\n{request.source_text}"
    style = request.style or SummaryStyle.CONCISE
    return (
        f"以下のテキストを要約してください。\n{SUMMARY_INSTRUCTIONS[style]}"
        f"\n\nテキスト:\n{request.source_text}"
    )


def build_payload(prompt: str) -> dict:
    return {"contents": [{"parts": [{"text": prompt}]}]}


def extract_text(data: Any) -> str:
    """Pull the first candidate's text out of a generateContent response."""
    if not isinstance(data, dict):
        return ""
    candidates = data.get("candidates")
    if not isinstance(candidates, list) or not candidates:
        return ""
    content = candidates[0].get("content") if isinstance(candidates[0], dict) else None
    if not isinstance(content, dict):
        return ""
    parts = content.get("parts")
    if not isinstance(parts, list) or not parts or not isinstance(parts[0], dict):
        return ""
    text = parts[0].get("text")
    return text if isinstance(text, str) else ""


class AITransformGateway:
    def __init__(
        self,
        credentials: CredentialStore,
        endpoint: str = DEFAULT_ENDPOINT,
        timeout_s: float = 60.0,
        http: Optional[httpx.AsyncClient] = None,
    ) -> None:
        self._credentials = credentials
        self.endpoint = endpoint
        self.timeout_s = timeout_s
        self._http = http
        self._owns_http = http is None

    async def _get_http(self) -> httpx.AsyncClient:
        if self._http is None:
            self._http = httpx.AsyncClient(timeout=self.timeout_s)
        return self._http

    async def transform(
        self,
        kind: TransformKind,
        source_text: str,
        style: Optional[SummaryStyle] = None,
    ) -> str:
        credential = (self._credentials.get_api_key() or "").strip()
        if not credential:
            raise MissingCredential()

        request = AIRequest(source_text=source_text, kind=kind, style=style)
        http = await self._get_http()
        try:
            response = await http.post(
                self.endpoint,
                params={"key": credential},
                json=build_payload(build_prompt(request)),
            )
        except (httpx.HTTPError, httpx.InvalidURL) as exc:
            logger.warning("AI request failed: %s", exc)
            raise TransientFailure(f"AI request failed: {exc}") from exc

        status = response.status_code
        if status in INVALID_CREDENTIAL_STATUSES:
            logger.warning("AI service rejected the credential (%d)", status)
            raise InvalidCredential(status)
        if not response.is_success:
            logger.warning("AI service returned %d", status)
            raise TransientFailure(f"API Error: {status}", status_code=status)

        try:
            data = response.json()
        except ValueError:
            logger.warning("AI response was not JSON")
            return NO_RESPONSE_MESSAGE
        return extract_text(data) or NO_RESPONSE_MESSAGE

    async def aclose(self) -> None:
        if self._http is not None and self._owns_http:
            await self._http.aclose()
        self._http = None
