"""LLM-backed segment extractor."""

from __future__ import annotations

import logging

from tnprop.config import PROMPTS_DIR, LLM_MAX_OUTPUT_TOKENS
from tnprop.pipeline.extractors.base import BaseSegmentExtractor
from tnprop.pipeline.llm_client import call_llm, is_llm_configured, parse_json_array
from tnprop.pipeline.schemas import RECORD_FIELDS, REQUIRED_FIELDS, has_required_fields

logger = logging.getLogger(__name__)


class LLMSegmentExtractor(BaseSegmentExtractor):
    """Extract transactions from one segment with a single model request.

    The request is fixed-shape: a system instruction describing the fields
    and the buyer/seller roles, and a user message with the rules followed
    by the segment text.  Output must be a bare JSON array; a fenced
    array is accepted.
    """

    name = "llm"

    def __init__(self, max_output_tokens: int = LLM_MAX_OUTPUT_TOKENS, transport=None):
        self.system_prompt = (PROMPTS_DIR / "extract_transactions_system.txt").read_text(encoding="utf-8")
        self.user_template = (PROMPTS_DIR / "extract_transactions_user.txt").read_text(encoding="utf-8")
        self.max_output_tokens = max_output_tokens
        self._transport = transport

    def is_configured(self) -> bool:
        return is_llm_configured()

    def build_user_prompt(self, segment_text: str) -> str:
        # Template contains a JSON example, so no str.format
        return self.user_template.replace("{segment_text}", segment_text)

    async def extract(self, segment_text: str, task_label: str = "") -> list[dict]:
        content = await call_llm(
            system_prompt=self.system_prompt,
            user_prompt=self.build_user_prompt(segment_text),
            temperature=0,
            max_output_tokens=self.max_output_tokens,
            task_label=task_label or f"extraction ({len(segment_text):,} chars)",
            transport=self._transport,
        )
        items = parse_json_array(content)
        return _filter_records(items, task_label)


def _filter_records(items: list, task_label: str = "") -> list[dict]:
    """Keep only objects carrying both required fields, trimmed to known keys.

    Required values are coerced to trimmed strings; numbers from the model
    (``"surveyNumber": 12``) are legitimate.
    """
    records = []
    for item in items:
        if not has_required_fields(item):
            continue
        record = {key: item[key] for key in RECORD_FIELDS if key in item}
        for key in REQUIRED_FIELDS:
            record[key] = str(record[key]).strip()
        records.append(record)

    dropped = len(items) - len(records)
    if dropped:
        logger.info(
            f"[{task_label or 'extraction'}] Dropped {dropped} record(s) missing "
            f"{' / '.join(REQUIRED_FIELDS)}"
        )
    return records
