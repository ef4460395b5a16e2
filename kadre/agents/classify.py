"""Update classification into the fixed coaching taxonomy."""

from kadre import monitoring
from kadre.agents.prompts import CLASSIFY_PROMPT
from kadre.llm import LLMClient
from kadre.schemas import CLASSIFICATIONS, Classification

DEFAULT_CLASSIFICATION: Classification = "communication"


def normalize_label(raw: str) -> Classification:
    label = (raw or "").strip().lower()
    if label in CLASSIFICATIONS:
        return label  # type: ignore[return-value]
    return DEFAULT_CLASSIFICATION


async def classify(llm: LLMClient, content: str) -> Classification:
    """Label an update; any unusable model answer becomes ``communication``."""
    try:
        text = await llm.complete(CLASSIFY_PROMPT.format(content=content), tier="fast", max_tokens=20)
    except Exception as exc:
        monitoring.capture_exception(exc)
        return DEFAULT_CLASSIFICATION
    return normalize_label(text)
