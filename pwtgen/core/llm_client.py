# llm_client.py
import logging
from typing import Any, Optional

import requests
from langchain_openai import AzureChatOpenAI

from .config import Settings
from .errors import ConfigurationError, GenerationFailure

logger = logging.getLogger(__name__)


# -------------------- Copilot Client --------------------
class CopilotResponse:
    def __init__(self, content):
        self.content = content


class CopilotClient:
    def __init__(self, bridge_url: str = "http://localhost:3030", temperature: float = 0.1, timeout: int = 120):
        if not bridge_url:
            raise ConfigurationError("COPILOT_BRIDGE_URL is empty")
        self.temperature = temperature
        self.timeout = timeout
        self.bridge_url = f"{bridge_url.rstrip('/')}/api/copilot/chat"

    def invoke(self, prompt: str) -> CopilotResponse:
        logger.info("[Copilot] Sending request to %s (%d chars)", self.bridge_url, len(prompt))
        try:
            response = requests.post(
                self.bridge_url,
                json={"messages": [{"role": "user", "content": prompt}], "temperature": self.temperature},
                timeout=self.timeout,
            )
            response.raise_for_status()
        except requests.RequestException as exc:
            raise RuntimeError(f"Copilot bridge error: {exc}") from exc
        content = response.json().get("content", "")
        logger.info("[Copilot] Response received (%d chars)", len(content or ""))
        return CopilotResponse(content)


def _build_azure(settings: Settings) -> AzureChatOpenAI:
    missing = settings.missing_azure_vars()
    if missing:
        raise ConfigurationError(f"Missing Azure OpenAI env vars: {', '.join(missing)}")
    return AzureChatOpenAI(
        openai_api_version=settings.openai_api_version,
        azure_deployment=settings.azure_openai_deployment,
        azure_endpoint=settings.azure_openai_endpoint,
        api_key=settings.azure_openai_key,
        temperature=settings.llm_temperature,
    )


class LLMClient:
    """Single-prompt text completion over the Copilot bridge or Azure OpenAI.

    The underlying chat model is built lazily on first use. ``llm`` may be any
    object with ``invoke(prompt)`` returning something with ``.content``.
    """

    def __init__(self, settings: Settings, llm: Any = None):
        self.settings = settings
        self.llm = llm

    def ensure_ready(self):
        """Build the chat model now; raises ConfigurationError when it cannot be built."""
        if self.llm is not None:
            return self.llm
        if self.settings.llm_provider == "azure":
            self.llm = _build_azure(self.settings)
            logger.info("[LLM] Using Azure OpenAI deployment %s", self.settings.azure_openai_deployment)
            return self.llm
        try:
            self.llm = CopilotClient(self.settings.copilot_bridge_url, temperature=self.settings.llm_temperature)
            logger.info("[LLM] Using Copilot endpoint at %s", self.settings.copilot_bridge_url)
        except ConfigurationError as copilot_error:
            logger.warning("[LLM] Copilot endpoint unavailable (%s), falling back to Azure OpenAI", copilot_error)
            self.llm = _build_azure(self.settings)
        return self.llm

    def complete(self, prompt: str) -> str:
        llm = self.ensure_ready()
        try:
            response = llm.invoke(prompt)
        except Exception as exc:  # noqa: BLE001
            raise GenerationFailure(str(exc)) from exc
        content: Optional[str] = getattr(response, "content", response)
        if not isinstance(content, str):
            content = str(content or "")
        return content.strip()
