"""
Shared pytest fixtures.

Nothing here talks to the network or needs the Tesseract binary:
the language model, the OCR backends, the store and the clock are
all replaced by in-process fakes.
"""

import json
import threading
from datetime import datetime
from types import SimpleNamespace

import pytest

from config import ConfigurationManager
from bill_extraction.field_extraction import DateExtractor, DatePhraseParser
from bill_extraction.fallback import AIFallbackExtractor
from bill_extraction.knowledge import InMemoryVendorCategoryStore, VendorCategoryCache
from bill_extraction.pipeline import BillExtractionPipeline

MAPPING_ID = "vendors_categories"
REFERENCE_DATE = datetime(2026, 1, 10, 9, 30)


@pytest.fixture(autouse=True)
def fresh_config():
    """Every test starts from the packaged settings.yaml"""
    ConfigurationManager.reset()
    yield
    ConfigurationManager.reset()


class FakeClock:
    """Manually advanced monotonic clock"""

    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class CountingStore(InMemoryVendorCategoryStore):
    """In-memory store that records reads and merges and can be told to fail"""

    def __init__(self, initial=None):
        super().__init__(initial)
        self.reads = 0
        self.merges = []
        self.fail_reads = False
        self.fail_merges = False
        self.read_delay = None

    def read(self, mapping_id):
        self.reads += 1
        if self.read_delay is not None:
            self.read_delay.wait()
        if self.fail_reads:
            raise ConnectionError("store unavailable")
        return super().read(mapping_id)

    def merge(self, mapping_id, partial):
        if self.fail_merges:
            raise ConnectionError("store unavailable")
        self.merges.append((mapping_id, dict(partial)))
        super().merge(mapping_id, partial)


class FakeChatClient:
    """
    Stand-in for the OpenAI client.

    Exposes ``chat.completions.create`` and returns canned replies.
    """

    def __init__(self, reply=None, error=None):
        self.reply = reply
        self.error = error
        self.calls = []
        self.chat = SimpleNamespace(completions=SimpleNamespace(create=self._create))

    def _create(self, **kwargs):
        self.calls.append(kwargs)
        if self.error is not None:
            raise self.error
        message = SimpleNamespace(content=self.reply)
        return SimpleNamespace(choices=[SimpleNamespace(message=message)])


def wire_reply(amount, vendor, category, pay_date) -> str:
    return json.dumps({
        "amount": amount,
        "vendor": vendor,
        "category": category,
        "payDate": pay_date,
    })


class EchoBackend:
    """OCR backend returning the document bytes decoded as text"""

    def __init__(self):
        self.seen = []
        self.lock = threading.Lock()

    def recognize(self, data: bytes) -> str:
        with self.lock:
            self.seen.append(data)
        return data.decode("utf-8")


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def store():
    return CountingStore({MAPPING_ID: {"Netflix": "Subscriptions", "Octopus Energy": "Utilities"}})


@pytest.fixture
def cache(store, clock):
    cache = VendorCategoryCache(
        store,
        mapping_id=MAPPING_ID,
        ttl_seconds=300,
        refresh_timeout=1,
        failure_backoff=30,
        clock=clock,
    )
    yield cache
    cache.close()


@pytest.fixture
def chat_client():
    return FakeChatClient(reply=wire_reply("$82.10", "British Gas", "Utilities", "2026-03-03"))


@pytest.fixture
def fallback(chat_client):
    return AIFallbackExtractor(client=chat_client, model="gpt-4", timeout=5)


@pytest.fixture
def date_extractor():
    return DateExtractor(parser=DatePhraseParser(reference=lambda: REFERENCE_DATE))


@pytest.fixture
def pipeline(cache, fallback, date_extractor):
    return BillExtractionPipeline(
        cache=cache,
        fallback=fallback,
        date_extractor=date_extractor,
        fallback_enabled=True,
        fallback_input="normalized",
    )
