"""
Text intelligence adapter for VoxRelay.

Calls the Deepgram read API to summarize text and detect sentiment,
topics and intents.
"""

from __future__ import annotations

from typing import Any

import httpx
import structlog

from vr_common.errors import AdapterFailure

logger = structlog.get_logger()

ADAPTER_NAME = "text_intelligence"

DEFAULT_FEATURES: dict[str, str] = {
    "summarize": "true",
    "sentiment": "true",
    "topics": "true",
    "intents": "true",
}


class TextAnalyzer:
    """Thin async client for Deepgram text intelligence.

    Args:
        api_key: Deepgram API key.
        http_client: Shared ``httpx.AsyncClient``.
        url: Read API endpoint.
        language: Language of the submitted text.
    """

    def __init__(
        self,
        api_key: str,
        http_client: httpx.AsyncClient,
        *,
        url: str = "https://api.deepgram.com/v1/read",
        language: str = "en",
    ) -> None:
        self._api_key = api_key
        self._http = http_client
        self._url = url
        self._language = language

    async def analyze(self, text: str) -> dict[str, Any]:
        """Return the provider's analysis of *text*.

        Raises:
            AdapterFailure: On transport errors or non-2xx responses.
        """
        params = {**DEFAULT_FEATURES, "language": self._language}
        try:
            resp = await self._http.post(
                self._url,
                params=params,
                json={"text": text},
                headers={"Authorization": f"Token {self._api_key}"},
            )
            resp.raise_for_status()
            result: dict[str, Any] = resp.json()
        except (httpx.HTTPError, ValueError) as exc:
            logger.error("text_analysis_failed", url=self._url, error=str(exc))
            raise AdapterFailure(ADAPTER_NAME, "Text analysis failed") from exc

        logger.debug("text_analysis_complete", chars=len(text))
        return result
