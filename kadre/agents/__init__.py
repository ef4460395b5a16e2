"""LLM-backed triage agents: classification, client inference, extraction, synthesis and the assistant."""
