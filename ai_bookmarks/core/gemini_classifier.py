"""
Single request to Gemini for a small batch of tweets.

The pipeline always sends one tweet per request; the retry policy around
this call lives in core.retry.
"""

import json
import logging
import threading
from concurrent.futures import Future
from concurrent.futures import TimeoutError as FuturesTimeoutError
from typing import Any, Callable, Dict, Iterable, List, Optional, Sequence

from google import genai
from google.genai import errors as genai_errors
from google.genai import types

from ..config import constants
from .exceptions import ClassifierTimeoutError, RateLimitError, UnknownError
from .models import ClassificationResult, RawItem
from .prompts import RESPONSE_SCHEMA, build_system_instruction
from .sanitizer import repair_and_parse, sanitize_text

logger = logging.getLogger(__name__)


class GeminiClassifier:
    """
    Classifies tweets with Gemini's structured JSON output.

    Each call is bounded by a hard wall-clock timeout that does not depend
    on the HTTP transport giving up on its own.

    Example:
        >>> classifier = GeminiClassifier(api_key="...")
        >>> results = classifier.classify_batch([item], ["RAG", "Altres"])
    """

    def __init__(
        self,
        client: Optional[Any] = None,
        api_key: Optional[str] = None,
        model: str = constants.GEMINI_MODEL,
        temperature: float = constants.GEMINI_TEMPERATURE,
        max_output_tokens: int = constants.GEMINI_MAX_OUTPUT_TOKENS,
        timeout_seconds: float = constants.CLASSIFIER_TIMEOUT_SECONDS,
        max_text_length: int = constants.MAX_TEXT_LENGTH,
        contamination_fields: Iterable[str] = constants.CONTAMINATION_FIELDS,
    ):
        if client is None:
            if not api_key:
                raise ValueError("GEMINI_API_KEY is required to create a Gemini client")
            # HttpOptions.timeout is in milliseconds
            client = genai.Client(
                api_key=api_key,
                http_options=types.HttpOptions(timeout=int(timeout_seconds * 1000)),
            )

        self.client = client
        self.model = model
        self.temperature = temperature
        self.max_output_tokens = max_output_tokens
        self.timeout_seconds = timeout_seconds
        self.max_text_length = max_text_length
        self.contamination_fields = tuple(contamination_fields)
        logger.info(f"✅ GeminiClassifier initialized (model={model}, timeout={timeout_seconds:g}s)")

    @classmethod
    def from_config(cls, config, client: Optional[Any] = None) -> 'GeminiClassifier':
        """Create a classifier from a Config class or instance"""
        return cls(
            client=client,
            api_key=config.GEMINI_API_KEY,
            model=config.GEMINI_MODEL,
            temperature=config.GEMINI_TEMPERATURE,
            max_output_tokens=config.GEMINI_MAX_OUTPUT_TOKENS,
            timeout_seconds=config.CLASSIFIER_TIMEOUT_SECONDS,
            max_text_length=config.MAX_TEXT_LENGTH,
        )

    def build_payload(self, items: Sequence[RawItem]) -> List[Dict[str, Any]]:
        """Request body: one {id, text, urls} entry per item"""
        return [
            {
                'id': item.id,
                'text': sanitize_text(item.text, self.max_text_length),
                'urls': list(item.urls),
            }
            for item in items
        ]

    def build_request_config(self, categories: Sequence[str]) -> types.GenerateContentConfig:
        return types.GenerateContentConfig(
            system_instruction=build_system_instruction(categories),
            response_mime_type='application/json',
            response_schema=RESPONSE_SCHEMA,
            max_output_tokens=self.max_output_tokens,
            temperature=self.temperature,
        )

    def classify_batch(
        self,
        items: Sequence[RawItem],
        categories: Sequence[str],
    ) -> List[ClassificationResult]:
        """
        Send one request for ``items`` and return the repaired results.

        Args:
            items: Non-empty list of tweets (the pipeline sends one)
            categories: Category vocabulary passed to the prompt as-is

        Returns:
            Parsed results; empty if Gemini returned no text

        Raises:
            ClassifierTimeoutError: If the request exceeds the timeout
            ParseError: If the response cannot be repaired into results
            RateLimitError: If Gemini answers 429 or RESOURCE_EXHAUSTED
            UnknownError: For any other Gemini API error
            Exception: Transport errors raised by the client (classified upstream)
        """
        if not items:
            raise ValueError("classify_batch needs at least one item")

        contents = json.dumps(self.build_payload(items), ensure_ascii=False)
        request_config = self.build_request_config(categories)

        logger.debug(f"Sending {len(items)} item(s) to {self.model}")
        response = self._call_with_timeout(lambda: self._generate(contents, request_config))

        response_text = getattr(response, 'text', None)
        if not response_text:
            logger.warning("⚠️ Gemini returned an empty response")
            return []

        return repair_and_parse(response_text, self.contamination_fields)

    def _generate(self, contents: str, request_config: types.GenerateContentConfig) -> Any:
        """Call Gemini, translating SDK errors into pipeline errors"""
        try:
            return self.client.models.generate_content(
                model=self.model,
                contents=contents,
                config=request_config,
            )
        except genai_errors.APIError as e:
            if e.code == 429 or str(e.status or '').upper() == 'RESOURCE_EXHAUSTED':
                raise RateLimitError(str(e), status_code=e.code or 429) from e
            raise UnknownError(str(e), original=e) from e

    def _call_with_timeout(self, request: Callable[[], Any]) -> Any:
        """Run the request on a worker thread and stop waiting after the timeout.

        An expired request is abandoned, not interrupted. The worker is a
        daemon thread so it never holds up interpreter exit; the client's
        transport timeout ends the request itself.
        """
        future: Future = Future()

        def worker() -> None:
            if not future.set_running_or_notify_cancel():
                return
            try:
                future.set_result(request())
            except BaseException as e:
                future.set_exception(e)

        threading.Thread(target=worker, name='gemini-request', daemon=True).start()
        try:
            return future.result(timeout=self.timeout_seconds)
        except FuturesTimeoutError:
            if not future.done():
                logger.error(f"❌ Gemini request exceeded {self.timeout_seconds:g}s")
                raise ClassifierTimeoutError(self.timeout_seconds)
            raise
