import logging
from typing import Optional

import httpx
from django.conf import settings
from google import genai
from google.genai import errors, types

logger = logging.getLogger(__name__)

NOT_CONFIGURED = 'not_configured'
FORBIDDEN = 'forbidden'
MODEL_UNAVAILABLE = 'model_unavailable'
RATE_LIMITED = 'rate_limited'
FAILED = 'failed'


class GeminiError(RuntimeError):
    def __init__(self, kind: str, message: str, model: Optional[str] = None):
        super().__init__(message)
        self.kind = kind
        self.model = model


def _classify(status_code: int, message: str) -> str:
    lowered = message.lower()
    if status_code == 400 and 'api key' in lowered:
        return NOT_CONFIGURED
    if status_code == 403:
        return FORBIDDEN
    if status_code == 404:
        return MODEL_UNAVAILABLE
    if status_code == 429 or 'quota' in lowered or 'rate limit' in lowered:
        return RATE_LIMITED
    return FAILED


def _client(api_key: str) -> genai.Client:
    # HttpOptions.timeout is in milliseconds
    return genai.Client(
        api_key=api_key,
        http_options=types.HttpOptions(timeout=settings.GEMINI_TIMEOUT * 1000),
    )


def _call_model(client: genai.Client, model: str, prompt: str) -> str:
    try:
        response = client.models.generate_content(model=model, contents=prompt)
    except errors.APIError as exc:
        message = exc.message or f'HTTP {exc.code}: {exc.status}'
        raise GeminiError(_classify(exc.code or 0, message), message, model)
    except httpx.HTTPError as exc:
        raise GeminiError(FAILED, f'Request to {model} failed: {exc}', model)
    text = response.text
    if not text:
        raise GeminiError(FAILED, 'No text in response', model)
    return text


def generate(prompt: str) -> str:
    """Generate text for ``prompt``, trying each configured model in order.

    Raises ``GeminiError`` carrying the failure kind of the last model tried.
    """
    api_key = settings.GEMINI_API_KEY
    if not api_key:
        raise GeminiError(NOT_CONFIGURED, 'Gemini API key is not configured')
    client = _client(api_key)
    last_error: Optional[GeminiError] = None
    for model in settings.GEMINI_MODELS:
        try:
            text = _call_model(client, model, prompt)
        except GeminiError as exc:
            logger.info('gemini model %s failed: %s', model, exc)
            last_error = exc
            continue
        logger.info('generated text with gemini model %s', model)
        return text
    raise last_error or GeminiError(FAILED, 'No Gemini models configured')
