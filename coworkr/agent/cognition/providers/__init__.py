from coworkr.agent.cognition.providers.factory import build_llm_client
from coworkr.agent.cognition.providers.gemini import GeminiClient
from coworkr.agent.cognition.providers.ollama import OllamaClient
from coworkr.agent.cognition.providers.openai import OpenAIClient

__all__ = [
    "build_llm_client",
    "GeminiClient",
    "OllamaClient",
    "OpenAIClient",
]
