"""
Gemini Client Module.

This module provides the AI extraction service: an asynchronous client for
the Gemini ``generateContent`` REST endpoint. The receipt image is sent
inline (base64) together with the extraction prompt; the response text and
its JSON block are returned as an AIExtractionResult.

Features:
    - Lazily created aiohttp ClientSession (safe to construct outside a loop)
    - Bounded retries with exponential backoff on network errors, rate
      limiting and server errors
    - API key from configuration or the GEMINI_API_KEY environment variable

The client does not enforce the extraction deadline itself; the
orchestrator races each call against its own timer and cancels the loser.

Usage:
    client = GeminiClient()
    result = await client.extract_structured(source_file)
    await client.close()

Author: ML Engineering Team
"""

import asyncio
import base64
import os
import time
from typing import Any, Dict, Optional

import aiohttp

from receipt_extraction.config import get_config
from receipt_extraction.models.source_file import SourceFile
from receipt_extraction.utils.exceptions import AIServiceError, AIServiceNotConfiguredError
from receipt_extraction.utils.logger import get_logger
from .extraction_result import AIExtractionResult
from .prompts import get_extraction_prompt
from .response_parser import parse_response

# Initialize module logger
logger = get_logger(__name__)

API_KEY_ENV_VAR = "GEMINI_API_KEY"

# HTTP statuses worth another attempt
RETRYABLE_STATUSES = frozenset({429, 500, 502, 503, 504})


class GeminiClient:
    """
    Asynchronous Gemini extraction client.

    Attributes:
        model: Model name (e.g. "gemini-1.5-flash")
        endpoint: Base URL of the models API
        max_retries: Extra attempts after the first failure
        retry_delay: Base backoff delay in seconds
        default_confidence: Confidence reported for successful calls
        enhanced_prompt: Whether the detailed prompt is used

    Example:
        >>> client = GeminiClient(api_key="...")
        >>> result = await client.extract_structured(source)
        >>> result.fields
        {'code': '123456', 'phone_number': '07701234567'}
    """

    def __init__(
        self,
        api_key: Optional[str] = None,
        model: Optional[str] = None,
        endpoint: Optional[str] = None,
        max_retries: Optional[int] = None,
        retry_delay: Optional[float] = None,
        enhanced_prompt: bool = True
    ) -> None:
        """
        Initialize the client.

        Args:
            api_key: Gemini API key. If None, uses configuration, then the
                GEMINI_API_KEY environment variable.
            model: Model name. If None, uses configuration.
            endpoint: Models API base URL. If None, uses configuration.
            max_retries: Retries after the first attempt. If None, uses
                configuration.
            retry_delay: Base backoff delay in seconds. If None, uses
                configuration.
            enhanced_prompt: Use the detailed extraction prompt.
        """
        self.api_key = api_key or get_config("ai.api_key") or os.environ.get(API_KEY_ENV_VAR, "")
        self.model = model or get_config("ai.model", "gemini-1.5-flash")
        self.endpoint = (
            endpoint or get_config(
                "ai.endpoint", "https://generativelanguage.googleapis.com/v1beta/models"
            )
        ).rstrip('/')
        self.max_retries = int(
            max_retries if max_retries is not None else get_config("ai.max_retries", 1)
        )
        self.retry_delay = float(
            retry_delay if retry_delay is not None else get_config("ai.retry_delay", 1.0)
        )
        self.default_confidence = float(get_config("ai.default_confidence", 95))
        self.enhanced_prompt = enhanced_prompt

        self.generation_config = {
            'temperature': get_config("ai.generation.temperature", 0.1),
            'maxOutputTokens': get_config("ai.generation.max_output_tokens", 1024),
            'topK': get_config("ai.generation.top_k", 40),
            'topP': get_config("ai.generation.top_p", 0.95),
        }

        # Created inside the running loop on first use
        self._session: Optional[aiohttp.ClientSession] = None

        logger.info(
            f"GeminiClient initialized (model={self.model}, "
            f"configured={'yes' if self.is_configured else 'no'})"
        )

    @property
    def is_configured(self) -> bool:
        """Whether an API key is available."""
        return bool(self.api_key)

    @property
    def url(self) -> str:
        """generateContent URL for the configured model."""
        return f"{self.endpoint}/{self.model}:generateContent"

    async def _ensure_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            logger.debug("Creating aiohttp ClientSession")
            self._session = aiohttp.ClientSession()
        return self._session

    async def close(self) -> None:
        """Close the HTTP session. Safe to call more than once."""
        if self._session is not None and not self._session.closed:
            await self._session.close()
        self._session = None

    def build_request(self, source_file: SourceFile) -> Dict[str, Any]:
        """
        Build the generateContent request body for an image.

        Args:
            source_file: Receipt image.

        Returns:
            JSON-serializable request body.
        """
        return {
            'contents': [{
                'parts': [
                    {'text': get_extraction_prompt(self.enhanced_prompt)},
                    {
                        'inline_data': {
                            'mime_type': source_file.mime_type or "image/jpeg",
                            'data': base64.b64encode(source_file.data).decode('ascii'),
                        }
                    },
                ]
            }],
            'generationConfig': dict(self.generation_config),
        }

    async def _post(self, body: Dict[str, Any]) -> Dict[str, Any]:
        session = await self._ensure_session()
        async with session.post(self.url, params={'key': self.api_key}, json=body) as resp:
            if resp.status != 200:
                text = await resp.text()
                raise AIServiceError(f"HTTP {resp.status}: {text[:300]}", status=resp.status)
            return await resp.json()

    async def extract_structured(self, source_file: SourceFile) -> AIExtractionResult:
        """
        Extract text and structured fields from a receipt image.

        Args:
            source_file: Receipt image.

        Returns:
            AIExtractionResult with the response text and parsed fields.

        Raises:
            AIServiceNotConfiguredError: If no API key is available.
            AIServiceError: If every attempt fails or the response is
                blocked or empty.
        """
        if not self.is_configured:
            raise AIServiceNotConfiguredError()

        body = self.build_request(source_file)
        start_time = time.time()
        attempts = self.max_retries + 1
        last_error: Optional[Exception] = None

        for attempt in range(1, attempts + 1):
            try:
                logger.debug(f"Gemini request for {source_file.name} (attempt {attempt}/{attempts})")
                data = await self._post(body)
                break
            except AIServiceError as e:
                if e.details.get('status') not in RETRYABLE_STATUSES:
                    raise
                last_error = e
            except (aiohttp.ClientError, asyncio.TimeoutError) as e:
                last_error = e

            logger.warning(f"Gemini attempt {attempt} failed: {last_error}")
            if attempt < attempts:
                await asyncio.sleep(self.retry_delay * (2 ** (attempt - 1)))
        else:
            raise AIServiceError(f"failed after {attempts} attempt(s): {last_error}")

        text, fields = parse_response(data)
        processing_time = time.time() - start_time

        logger.info(
            f"Gemini extracted {len(fields)} fields from {source_file.name} "
            f"({processing_time:.2f}s)"
        )
        return AIExtractionResult(
            text=text,
            confidence=self.default_confidence,
            fields=fields,
            model_name=self.model,
            processing_time=processing_time
        )
