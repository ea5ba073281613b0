"""LLM provider adapters."""

from .base import BaseLLM
from .openai_llm import ClientSettings, OpenAILLM

__all__ = ["BaseLLM", "ClientSettings", "OpenAILLM"]
