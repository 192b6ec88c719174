"""Client utilities for the OpenRouter-compatible translation model.

The selected model, its API key and an optional base URL are read from
``config/models.json``.
"""

from __future__ import annotations

import json
import os
from dataclasses import dataclass
from typing import Dict, List

from openai import OpenAI, OpenAIError

from imgtranslate.config import CONFIG_DIR
from imgtranslate.errors import ConfigurationError, TranslationError

# Path to the JSON configuration file with models and keys
CONFIG_PATH = os.path.join(CONFIG_DIR, "models.json")

DEFAULT_BASE_URL = "https://openrouter.ai/api/v1"


@dataclass(frozen=True)
class ModelConfig:
    model: str
    api_key: str
    base_url: str = DEFAULT_BASE_URL


def load_model_config(path: str = CONFIG_PATH) -> ModelConfig:
    """Return the model entry picked by ``model_number_picked``.

    The configuration file must contain:
    - model_number_picked: integer index into the "models" array
    - models: list of items with fields:
      - model: string (e.g., "openai/gpt-4o-mini")
      - api_key: string
      - base_url: optional string, defaults to OpenRouter

    Doxygen:
    - @param path: Absolute path to the JSON configuration file.
    - @return: `ModelConfig` for the picked entry.
    - @throws ConfigurationError: If the file is missing or the entry is invalid.
    """
    try:
        with open(path, "r", encoding="utf-8") as f:
            cfg = json.load(f)
    except FileNotFoundError as exc:
        raise ConfigurationError(f"Model configuration not found: {path}") from exc
    except json.JSONDecodeError as exc:
        raise ConfigurationError(f"Model configuration is not valid JSON: {exc}") from exc

    models: List[Dict] = cfg.get("models", [])
    idx = cfg.get("model_number_picked")

    if not isinstance(idx, int):
        raise ConfigurationError("Config must include integer 'model_number_picked'.")
    if idx < 0 or idx >= len(models):
        raise ConfigurationError("'model_number_picked' is out of range for available models.")

    item = models[idx]
    model = item.get("model")
    api_key = item.get("api_key")
    if not model or not api_key:
        raise ConfigurationError("Selected model entry must include both 'model' and 'api_key'.")
    return ModelConfig(model=model, api_key=api_key, base_url=item.get("base_url") or DEFAULT_BASE_URL)


def get_openrouter_client(config: ModelConfig) -> OpenAI:
    return OpenAI(base_url=config.base_url, api_key=config.api_key)


def chat_completion(
    client: OpenAI,
    model: str,
    messages: List[Dict[str, str]],
    timeout: float | None = 60.0,
) -> str:
    """Send a chat completion request and return the text content.

    Doxygen:
    - @param client: OpenAI instance created by `get_openrouter_client`.
    - @param model: Target model identifier.
    - @param messages: List of role/content dictionaries for the chat.
    - @param timeout: Request timeout in seconds; None disables timeout.
    - @return: Text content of the first completion choice.
    - @throws TranslationError: On transport errors or an empty answer.
    """
    try:
        completion = client.chat.completions.create(
            model=model,
            messages=messages,
            timeout=timeout,
        )
    except OpenAIError as exc:
        raise TranslationError(f"Model request failed: {exc}", {"model": model}) from exc

    if not completion.choices:
        raise TranslationError("Model returned no choices", {"model": model})
    content = completion.choices[0].message.content
    if not content or not content.strip():
        raise TranslationError("Model returned an empty answer", {"model": model})
    return content


def test_model_health(client: OpenAI, model: str, timeout: float | None = 10.0) -> None:
    """Perform a lightweight request; raises `TranslationError` if it fails."""
    chat_completion(client, model, messages=[{"role": "user", "content": "ping"}], timeout=timeout)
