"""
Video frame analysis adapter for VoxRelay.

Sends a base64 JPEG frame to an OpenAI vision-capable chat model with a
fixed emotion/environment prompt, then derives objects, scene, mood and
emotion scores from the reply with :mod:`analysis.scene`.
"""

from __future__ import annotations

import structlog
from openai import AsyncOpenAI

from vr_common.errors import AdapterFailure
from vr_common.models import VideoAnalysis

from analysis.scene import describe

logger = structlog.get_logger()

ADAPTER_NAME = "vision"

FRAME_PROMPT = (
    "Analyze this image focusing on emotions and environment. Respond in plain "
    "conversational English without any markdown formatting, bullet points, or "
    "numbered lists. Provide a natural description covering: the scene and "
    "environment, key objects visible, the general setting, detailed emotion "
    "analysis including happiness, sadness, excitement, calmness, and stress "
    "levels, plus overall mood assessment. Focus on emotional state and "
    "atmosphere rather than personal identification. Keep the response flowing "
    "and natural like you're describing what you see to a friend. when the image "
    "is completely dark or unclear, respond with 'The image is too dark or "
    "unclear to analyze.'"
)
NO_DESCRIPTION = "No description available"


class VisionAnalyzer:
    """Describe video frames with an OpenAI vision model.

    The OpenAI client is constructed once per process and injected here.

    Args:
        client: Shared ``AsyncOpenAI`` client.
        model: Chat model identifier.
        max_tokens: Completion token cap.
        temperature: Sampling temperature.
        detail: Image detail level sent with the frame.
    """

    def __init__(
        self,
        client: AsyncOpenAI,
        *,
        model: str = "gpt-4.1-mini",
        max_tokens: int = 300,
        temperature: float = 0.3,
        detail: str = "low",
    ) -> None:
        self._client = client
        self._model = model
        self._max_tokens = max_tokens
        self._temperature = temperature
        self._detail = detail

    async def analyze_frame(self, base64_image: str) -> VideoAnalysis:
        """Analyze one base64-encoded JPEG frame.

        Raises:
            AdapterFailure: If the provider call fails.
        """
        try:
            response = await self._client.chat.completions.create(
                model=self._model,
                messages=[
                    {
                        "role": "user",
                        "content": [
                            {"type": "text", "text": FRAME_PROMPT},
                            {
                                "type": "image_url",
                                "image_url": {
                                    "url": f"data:image/jpeg;base64,{base64_image}",
                                    "detail": self._detail,
                                },
                            },
                        ],
                    }
                ],
                max_tokens=self._max_tokens,
                temperature=self._temperature,
            )
        except Exception as exc:
            logger.error("vision_analysis_failed", model=self._model, error=str(exc))
            raise AdapterFailure(ADAPTER_NAME, "Video analysis failed") from exc

        content = _first_content(response) or NO_DESCRIPTION
        analysis = describe(content)
        logger.debug(
            "vision_analysis_complete",
            scene=analysis.scene,
            mood=analysis.mood,
            objects=len(analysis.objects),
        )
        return analysis

    async def check_connection(self) -> bool:
        """Return ``True`` if the provider answers a model listing."""
        try:
            models = await self._client.models.list()
        except Exception as exc:
            logger.error("openai_connection_check_failed", error=str(exc))
            return False
        logger.info("openai_connection_check_ok", models=len(models.data))
        return True


def _first_content(response: object) -> str:
    choices = getattr(response, "choices", None) or []
    if not choices:
        return ""
    message = getattr(choices[0], "message", None)
    return getattr(message, "content", None) or ""
