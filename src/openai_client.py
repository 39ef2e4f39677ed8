"""Lightweight client helper for OpenAI-compatible completion services.

Centralises API-key handling and backend selection so the rest of the
codebase can simply do:

    from src.openai_client import chat_completion

Three backends are supported, all through the ``openai`` SDK:

• ``openai`` – api.openai.com, key in ``OPENAI_API_KEY``.
• ``groq``   – Groq's OpenAI-compatible endpoint, key in ``GROQ_API_KEY``.
• ``nvidia`` – NVIDIA's OpenAI-compatible endpoint, key in ``NVIDIA_API_KEY``.
"""
from __future__ import annotations

import os
import threading
import types
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from src import config


class OpenAIClientError(RuntimeError):
    """Raised when client configuration is invalid (e.g., missing API key)."""


@dataclass(frozen=True)
class ProviderSettings:
    """Static description of a completion backend."""

    name: str
    api_key_env: str
    model_env: str
    default_model: str
    base_url: Optional[str] = None


PROVIDERS: Dict[str, ProviderSettings] = {
    "openai": ProviderSettings(
        name="openai",
        api_key_env="OPENAI_API_KEY",
        model_env="OPENAI_MODEL",
        default_model="gpt-3.5-turbo",
    ),
    "groq": ProviderSettings(
        name="groq",
        api_key_env="GROQ_API_KEY",
        model_env="GROQ_MODEL",
        default_model="llama-3.3-70b-versatile",
        base_url="https://api.groq.com/openai/v1",
    ),
    "nvidia": ProviderSettings(
        name="nvidia",
        api_key_env="NVIDIA_API_KEY",
        model_env="NVIDIA_MODEL",
        default_model="deepseek-ai/deepseek-r1",
        base_url="https://integrate.api.nvidia.com/v1",
    ),
}

_clients: Dict[str, Any] = {}
_clients_lock = threading.Lock()


def _load_openai() -> types.ModuleType:
    """Import ``openai`` lazily.

    Loading is deferred so that unit tests can inject a stub into
    ``sys.modules`` before this function runs.
    """

    import importlib

    return importlib.import_module("openai")


def resolve_provider(provider: Optional[str] = None) -> ProviderSettings:
    """Return settings for *provider*, the configured one, or the default.

    Without an explicit choice Groq is preferred when its key is present,
    otherwise OpenAI is used.
    """

    name = (provider or config.LLM_PROVIDER or "").strip().lower()
    if not name:
        name = "groq" if os.getenv("GROQ_API_KEY") else "openai"
    try:
        return PROVIDERS[name]
    except KeyError as exc:
        raise OpenAIClientError(f"Unknown LLM provider '{name}'.") from exc


def is_configured(provider: Optional[str] = None) -> bool:
    """Return *True* if credentials for the selected backend are present."""
    try:
        settings = resolve_provider(provider)
    except OpenAIClientError:
        return False
    return bool(os.getenv(settings.api_key_env))


def _ensure_api_key_present(settings: ProviderSettings) -> str:
    """Return the backend's API key env var or raise.

    Raises
    ------
    OpenAIClientError
        If the env var is missing or empty.
    """

    api_key = os.getenv(settings.api_key_env)
    if not api_key:
        raise OpenAIClientError(
            f"{settings.api_key_env} environment variable is not set."
        )
    return api_key


def get_openai_client(provider: Optional[str] = None) -> Any:
    """Build (once) and return an ``openai.OpenAI`` client for *provider*.

    Clients use the configured request timeout and never retry: a failed
    call degrades to the static responses instead of being repeated.
    """

    settings = resolve_provider(provider)
    with _clients_lock:
        client = _clients.get(settings.name)
        if client is not None:
            return client

        openai = _load_openai()
        kwargs: Dict[str, Any] = {
            "api_key": _ensure_api_key_present(settings),
            "timeout": config.LLM_TIMEOUT_SECONDS,
            "max_retries": 0,
        }
        if settings.base_url:
            kwargs["base_url"] = settings.base_url
        org = os.getenv("OPENAI_ORG")
        if org and settings.name == "openai":
            kwargs["organization"] = org

        client = openai.OpenAI(**kwargs)
        _clients[settings.name] = client
        return client


def reset_clients() -> None:
    """Drop cached clients (used after configuration changes and in tests)."""
    with _clients_lock:
        _clients.clear()


def chat_completion(
    messages: List[Dict[str, str]],
    *,
    provider: Optional[str] = None,
    model: Optional[str] = None,
    **kwargs: Any,
) -> Dict[str, Any]:
    """Wrapper around ``client.chat.completions.create`` with sane defaults.

    Parameters
    ----------
    messages
        Chat messages in OpenAI format.
    provider
        Backend name; defaults to the configured/auto-selected one.
    model
        Model id to use (default: the backend's configured model).
    kwargs
        Additional parameters forwarded to ``chat.completions.create``.

    Returns a plain ``dict`` with at least
    ``{"choices": [{"message": {"content": ...}}]}`` so callers never depend
    on the SDK's response classes.
    """

    settings = resolve_provider(provider)
    client = get_openai_client(settings.name)
    model = model or os.getenv(settings.model_env) or settings.default_model

    completion = client.chat.completions.create(
        model=model, messages=messages, **kwargs
    )
    choices = [
        {"message": {"content": choice.message.content}}
        for choice in completion.choices
    ]
    return {"choices": choices, "model": getattr(completion, "model", model)}
