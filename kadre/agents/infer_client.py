import logging
import re
from typing import List, Optional

from kadre import monitoring
from kadre.agents.prompts import INFER_CLIENT_PROMPT
from kadre.db import Client
from kadre.llm import LLMClient
from kadre.store import CoachStore

logger = logging.getLogger(__name__)

HASHTAG_RE = re.compile(r"#(\w+)", re.ASCII)
UNKNOWN = "UNKNOWN"


def match_hashtags(content: str, clients: List[Client]) -> Optional[Client]:
    """Resolve the first ``#tag`` that names one of ``clients``."""
    for tag in HASHTAG_RE.findall(content):
        tag_name = tag.lower()
        for client in clients:
            if re.sub(r"\s+", "", client.company_name.lower()) == tag_name:
                return client
        for client in clients:
            if tag_name in client.company_name.lower():
                return client
    return None


def match_company_name(answer: str, clients: List[Client]) -> Optional[Client]:
    answer = answer.strip()
    if not answer or answer == UNKNOWN:
        return None
    lowered = answer.lower()
    for client in clients:
        if client.company_name.lower() == lowered:
            return client
    return None


async def infer_client(llm: LLMClient, store: CoachStore, coach_id: str, content: str) -> Optional[str]:
    """Return the id of the coach's client an update concerns, or ``None``.

    Explicit hashtags win; otherwise the fast model picks from the coach's
    company names. A coach without clients never reaches the model.
    """
    clients = await store.select(Client, Client.coach_id == coach_id, order_by=Client.created_at)
    if not clients:
        return None

    tagged = match_hashtags(content, clients)
    if tagged:
        return tagged.id

    companies = "\n".join(f"- {client.company_name}" for client in clients)
    prompt = INFER_CLIENT_PROMPT.format(companies=companies, content=content)
    try:
        answer = await llm.complete(prompt, tier="fast", max_tokens=100)
    except Exception as exc:
        monitoring.capture_exception(exc)
        return None

    match = match_company_name(answer, clients)
    if not match:
        logger.debug("No client matched model answer %r for coach %s", answer, coach_id)
        return None
    return match.id
