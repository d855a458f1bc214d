"""
AI Fallback Extractor Module.

Asks an external language model to extract the bill fields when the
heuristics are not reliable enough. The call is bounded by a timeout,
and every failure (network error, timeout, empty or malformed reply)
degrades to the all-null record instead of raising.

Usage:
    from bill_extraction.fallback import AIFallbackExtractor

    extractor = AIFallbackExtractor()
    bill = extractor.extract(document_text)
"""

import threading
import time
from typing import Any, Optional

from openai import OpenAI, OpenAIError

from config import get_config
from bill_extraction.field_extraction.extraction_result import BillExtraction
from bill_extraction.utils.logger import get_logger
from .response_parser import ParseResult, ResponseParser, MalformedResponse

logger = get_logger(__name__)


class AIFallbackExtractor:
    """
    Language-model based bill extractor.

    Uses an OpenAI chat-completion endpoint. The client is created lazily
    on first use, so a pipeline can be built without credentials as long
    as no document needs the fallback.

    Attributes:
        model: Chat model name
        temperature: Sampling temperature
        timeout: Per-request timeout in seconds
        max_retries: SDK-level retries for failed requests

    Example:
        >>> extractor = AIFallbackExtractor(model="gpt-4")
        >>> bill = extractor.extract("british gas energy bill total 82.10 due 3 march 2026")
        >>> bill.vendor
        'British Gas'
    """

    SYSTEM_PROMPT = "You are a bill-parsing assistant."

    PROMPT_TEMPLATE = (
        "You are an intelligent assistant. Extract the following fields from the given bill text:\n"
        "- Amount (currency and number)\n"
        "- Vendor\n"
        "- Category (Utilities, Subscriptions, Insurance, etc.)\n"
        "- Pay Date (in YYYY-MM-DD)\n"
        "\n"
        "Bill Text:\n"
        "\"\"\"\n"
        "{text}\n"
        "\"\"\"\n"
        "\n"
        "Return response as a JSON object with exactly these keys: amount, vendor, category, payDate. "
        "Use null for any field you cannot find."
    )

    def __init__(
        self,
        client: Optional[Any] = None,
        model: Optional[str] = None,
        temperature: Optional[float] = None,
        timeout: Optional[float] = None,
        max_retries: Optional[int] = None,
        parser: Optional[ResponseParser] = None
    ) -> None:
        """
        Initialize the fallback extractor.

        Args:
            client: OpenAI-compatible client. Created from the environment
                   (OPENAI_API_KEY) on first use when omitted.
            model: Chat model name. If None, uses config.
            temperature: Sampling temperature. If None, uses config.
            timeout: Request timeout in seconds. If None, uses config.
            max_retries: SDK retries. If None, uses config.
            parser: Response parser.
        """
        self.model = model or get_config("fallback.model", "gpt-4")
        self.temperature = temperature if temperature is not None else \
            get_config("fallback.temperature", 0.3)
        self.timeout = timeout if timeout is not None else \
            get_config("fallback.timeout_seconds", 30)
        self.max_retries = max_retries if max_retries is not None else \
            get_config("fallback.max_retries", 0)
        self.parser = parser or ResponseParser()

        self._client = client
        self._client_lock = threading.Lock()

        logger.debug(
            f"AIFallbackExtractor initialized (model={self.model}, timeout={self.timeout}s)"
        )

    def _get_client(self) -> Any:
        with self._client_lock:
            if self._client is None:
                self._client = OpenAI(timeout=self.timeout, max_retries=self.max_retries)
            return self._client

    def build_prompt(self, text: str) -> str:
        return self.PROMPT_TEMPLATE.format(text=text)

    def request_completion(self, text: str) -> Optional[str]:
        """
        Send the document to the language model.

        Args:
            text: Document text.

        Returns:
            The reply text (may be None).

        Raises:
            OpenAIError: On network errors, timeouts and API errors.
        """
        client = self._get_client()
        completion = client.chat.completions.create(
            model=self.model,
            messages=[
                {"role": "system", "content": self.SYSTEM_PROMPT},
                {"role": "user", "content": self.build_prompt(text)},
            ],
            temperature=self.temperature,
            timeout=self.timeout,
        )

        choices = getattr(completion, "choices", None) or []
        if not choices:
            return None
        return choices[0].message.content

    def parse(self, text: str) -> ParseResult:
        """
        Query the model and return the tagged parse result.

        Failures of the request itself are reported as MalformedResponse.
        """
        start_time = time.time()
        try:
            reply = self.request_completion(text)
        except OpenAIError as e:
            logger.error(f"AI parsing failed: {e}")
            return MalformedResponse(f"request failed: {e}")
        except (AttributeError, IndexError, TypeError) as e:
            logger.error(f"Unexpected language-model response shape: {e}")
            return MalformedResponse(f"unexpected response shape: {e}")
        except Exception as e:
            logger.error(f"AI request raised {type(e).__name__}: {e}")
            return MalformedResponse(f"request failed: {e}")

        result = self.parser.parse(reply)
        logger.info(
            f"AI fallback finished in {time.time() - start_time:.2f}s "
            f"({'ok' if not isinstance(result, MalformedResponse) else 'malformed'})"
        )
        return result

    def extract(self, text: str) -> BillExtraction:
        """
        Extract bill fields with the language model.

        Args:
            text: Document text (normalized or raw).

        Returns:
            BillExtraction; all-null when the model call or parsing fails.
        """
        return self.parse(text).to_extraction()
