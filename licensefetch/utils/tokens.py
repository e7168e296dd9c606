"""Token estimation for usage billing.

Counts tokens with a model-specific tiktoken encoder when one can be
loaded, and falls back to a ceil(len/4) character heuristic when the
encoder is unavailable or fails on a given input. The heuristic is kept
exact so fallback counts are reproducible across runs.
"""

import math

import structlog
import tiktoken

logger = structlog.get_logger()

DEFAULT_ENCODER_MODEL = "gpt-4"
CHARS_PER_TOKEN = 4


def heuristic_tokens(text: str) -> int:
    """Estimate token count as ceil(len(text) / 4).

    Args:
        text: Input text string.

    Returns:
        Estimated token count (always >= 0).
    """
    if not text:
        return 0
    return math.ceil(len(text) / CHARS_PER_TOKEN)


class TokenEstimator:
    """Deterministic content → token count mapping.

    The encoder is loaded once at construction. Passing an empty model
    name disables it, which forces the heuristic.
    """

    def __init__(self, model: str | None = DEFAULT_ENCODER_MODEL) -> None:
        self._model = model or None
        self._encoder: tiktoken.Encoding | None = None
        if self._model:
            try:
                self._encoder = tiktoken.encoding_for_model(self._model)
            except Exception as exc:
                # Unknown model or encoding files not downloadable
                logger.warning(
                    "Token encoder unavailable, using heuristic",
                    model=self._model,
                    error=str(exc),
                )
                self._encoder = None

    @property
    def has_encoder(self) -> bool:
        return self._encoder is not None

    @property
    def model(self) -> str | None:
        return self._model

    def estimate(self, content: str) -> int:
        """Count tokens in content.

        Returns:
            0 for empty content; the encoder's count when available;
            otherwise ceil(len(content) / 4).
        """
        if not content:
            return 0

        if self._encoder is not None:
            try:
                return len(self._encoder.encode(content, disallowed_special=()))
            except Exception as exc:
                logger.warning("Token encoding failed, using heuristic", error=str(exc))

        return heuristic_tokens(content)

    def close(self) -> None:
        """Release the encoder. Later estimates use the heuristic."""
        self._encoder = None
