"""Shared fixtures for the transaction-extraction test suite."""

import os
import tempfile

# Must run before tnprop.config is imported: keep test data out of the
# project tree and make sure no real model key leaks into the suite.
os.environ.setdefault("TNPROP_DATA_DIR", tempfile.mkdtemp(prefix="tnprop-tests-"))
os.environ["LLM_API_KEY"] = ""
os.environ["OPENAI_API_KEY"] = ""

import pytest

from tnprop.pipeline.errors import ExtractionTransportError
from tnprop.pipeline.extractors.base import BaseSegmentExtractor


# ═══════════════════════════════════════════════════
# Fakes
# ═══════════════════════════════════════════════════

class FakeSleep:
    """Records requested delays instead of sleeping."""

    def __init__(self):
        self.calls: list[float] = []

    async def __call__(self, seconds: float) -> None:
        self.calls.append(seconds)


class ScriptedExtractor(BaseSegmentExtractor):
    """Segment extractor driven by a per-segment script.

    ``script`` maps a marker substring of the segment text to either a list
    of records or an exception instance (raised on every attempt).  Segments
    matching no marker return ``[]``.
    """

    name = "scripted"

    def __init__(self, script: dict | None = None, configured: bool = True):
        self.script = script or {}
        self.configured = configured
        self.calls: list[str] = []

    def is_configured(self) -> bool:
        return self.configured

    async def extract(self, segment_text: str, task_label: str = "") -> list[dict]:
        self.calls.append(segment_text)
        for marker, outcome in self.script.items():
            if marker in segment_text:
                if isinstance(outcome, BaseException):
                    raise outcome
                return [dict(r) for r in outcome]
        return []


@pytest.fixture
def fake_sleep():
    return FakeSleep()


@pytest.fixture
def scripted_extractor():
    return ScriptedExtractor


@pytest.fixture
def transport_error():
    return ExtractionTransportError("HTTP 429 from model endpoint: rate limited", status_code=429)


# ═══════════════════════════════════════════════════
# Record fixtures (shaped like model output)
# ═══════════════════════════════════════════════════

@pytest.fixture
def sample_records():
    return [
        {
            "surveyNumber": "311/1",
            "documentNumber": "1234/2012",
            "buyerName": "Muthu",
            "sellerName": "Raman",
            "transactionDate": "15/03/2012",
            "transactionValue": "1500000",
            "district": "Chengalpattu",
            "village": "Chromepet",
        },
        {
            "surveyNumber": "311/1",
            "documentNumber": "5678/2020",
            "buyerName": "Lakshmi",
            "sellerName": "Muthu",
            "houseNumber": "12A",
            "transactionDate": "20/06/2020",
            "transactionValue": "4500000",
            "district": "Chengalpattu",
            "village": "Chromepet",
        },
    ]
