"""
Text Generation

Optional prose wording for recommendation rationales, via PhiData + OpenAI.
The engine only depends on the TextGenerator interface; ranking never waits
on this module beyond the configured timeout.
"""

import logging
from typing import Any, Dict, Optional

from phi.agent import Agent
from phi.model.openai import OpenAIChat

from .config import LLM_CONFIG

logger = logging.getLogger(__name__)


class TextGenerator:
    """Prompt in, prose out. Implementations may raise; callers fall back."""

    def generate(self, prompt: str) -> str:
        raise NotImplementedError


def get_model_config(model_name: str, temperature: float = 0, api_key: Optional[str] = None) -> Dict[str, Any]:
    """
    Get model configuration with temperature support check.
    Some models don't support custom temperature.
    """
    config: Dict[str, Any] = {"id": model_name}
    if api_key:
        config["api_key"] = api_key

    models_without_temperature = ["o1", "o1-mini", "o1-preview", "gpt-5-mini", "gpt-5"]

    model_lower = model_name.lower()
    supports_temperature = not any(no_temp in model_lower for no_temp in models_without_temperature)

    if supports_temperature:
        config["temperature"] = temperature

    return config


def build_rationale_agent(model_name: str = None, api_key: Optional[str] = None) -> Agent:
    """Build PhiData agent that rewords matching facts into one short paragraph."""
    model_name = model_name or LLM_CONFIG["model"]
    model_config = get_model_config(model_name, temperature=LLM_CONFIG["temperature"], api_key=api_key)

    return Agent(
        name="Matching Rationale Writer",
        role="Explain why a consultant was recommended for a company",
        model=OpenAIChat(**model_config),
        instructions=[
            "You receive a list of facts about a consultant's fit for a company.",
            "Write 2-3 natural Korean sentences summarizing the fit.",
            "",
            "CRITICAL RULES:",
            "- Use ONLY the facts provided - do NOT invent experience, skills or industries",
            "- Mention every criterion named in the facts, and no other criterion",
            "- Do NOT change any number",
            "- Return plain text only, no markdown, no lists",
        ],
        show_tool_calls=False,
        markdown=False,
    )


def response_text(response: Any) -> str:
    """Extract text content from an agent response."""
    if response is None:
        return ""
    if hasattr(response, "content") and response.content is not None:
        return str(response.content)
    if hasattr(response, "messages") and response.messages:
        last_msg = response.messages[-1]
        return str(last_msg.content if hasattr(last_msg, "content") else last_msg)
    return str(response)


class PhiTextGenerator(TextGenerator):
    """TextGenerator backed by a PhiData OpenAI agent."""

    def __init__(self, model_name: str = None, api_key: Optional[str] = None):
        self.model_name = model_name or LLM_CONFIG["model"]
        self._agent = build_rationale_agent(self.model_name, api_key=api_key)

    def generate(self, prompt: str) -> str:
        logger.debug(f"Requesting rationale wording from {self.model_name}")
        response = self._agent.run(prompt)
        text = response_text(response).strip()
        if not text:
            raise ValueError("Empty response from rationale agent")
        return text


def build_text_generator(settings) -> Optional[TextGenerator]:
    """Return a PhiTextGenerator when enabled and configured, else None."""
    if not settings.rationale_use_llm:
        return None
    if not settings.openai_api_key:
        logger.warning("RATIONALE_USE_LLM is set but OPENAI_API_KEY is missing; using templated rationales")
        return None
    return PhiTextGenerator(settings.model_name, api_key=settings.openai_api_key)
