"""
Provider and model catalog configuration.

Responsibilities:
- Load `toolchat/models.json` once as the single source of truth for providers and models
- Expose the catalog as immutable descriptors (ProviderDescriptor / ModelDescriptor)
- Resolve environment-driven settings (API keys, base URLs, HTTP timeout)
"""

from __future__ import annotations

import json
import logging
import os
from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

logger = logging.getLogger(__name__)


CONFIG_PATH = Path(__file__).resolve().parent.parent / "models.json"

DEFAULT_HTTP_TIMEOUT = 30.0


class ModelsConfigError(RuntimeError):
  """Raised when models.json is missing or malformed."""


@dataclass(frozen=True)
class ModelDescriptor:
  """A model offered by a provider, with the capability flags that gate media."""

  id: str
  display_name: str
  supports_vision: bool = False
  supports_video: bool = False

  def to_dict(self) -> Dict[str, Any]:
    return {
      "id": self.id,
      "name": self.display_name,
      "supportsVision": self.supports_vision,
      "supportsVideo": self.supports_video,
    }


@dataclass(frozen=True)
class ProviderDescriptor:
  """A backend provider and its ordered models."""

  id: str
  display_name: str
  strategy: str
  api_key_env: str
  models: Tuple[ModelDescriptor, ...] = ()
  base_url: Optional[str] = None
  requires_api_key: bool = True

  def get_model(self, model_id: str) -> Optional[ModelDescriptor]:
    for m in self.models:
      if m.id == model_id:
        return m
    return None

  def to_dict(self) -> Dict[str, Any]:
    return {
      "id": self.id,
      "name": self.display_name,
      "requiresApiKey": self.requires_api_key,
      "models": [m.to_dict() for m in self.models],
    }


@lru_cache(maxsize=1)
def load_models_config() -> Dict[str, Any]:
  """
  Load and cache the raw catalog from models.json.
  :return: dict with `providers` and `models` keys
  """

  if not CONFIG_PATH.exists():
    raise ModelsConfigError(f"models.json not found at {CONFIG_PATH}")

  try:
    with open(CONFIG_PATH, "r", encoding="utf-8") as f:
      config = json.load(f)
  except (OSError, json.JSONDecodeError) as e:
    raise ModelsConfigError(f"Failed to load models config: {e}") from e

  providers = config.get("providers") or {}
  models = config.get("models") or []

  if not isinstance(providers, dict) or not isinstance(models, list):
    raise ModelsConfigError("Invalid models.json structure: expected 'providers' dict and 'models' list")

  return config


@lru_cache(maxsize=1)
def get_provider_catalog() -> Tuple[ProviderDescriptor, ...]:
  """
  Build the immutable provider table from the raw config.

  Provider order follows models.json; model order within a provider
  follows the order of the `models` list.
  """

  config = load_models_config()
  models = config.get("models", [])

  catalog = []
  for provider_id, raw in config["providers"].items():
    if "strategy" not in raw or "api_key_env" not in raw:
      raise ModelsConfigError(f"Provider '{provider_id}' must define 'strategy' and 'api_key_env'")

    provider_models = tuple(
      ModelDescriptor(
        id=m["id"],
        display_name=m.get("display_name", m["id"]),
        supports_vision=bool(m.get("supports_vision", False)),
        supports_video=bool(m.get("supports_video", False)),
      )
      for m in models
      if m.get("provider") == provider_id
    )

    catalog.append(ProviderDescriptor(
      id=provider_id,
      display_name=raw.get("display_name", provider_id),
      strategy=raw["strategy"],
      api_key_env=raw["api_key_env"],
      models=provider_models,
      base_url=raw.get("base_url"),
      requires_api_key=bool(raw.get("requires_api_key", True)),
    ))

  logger.debug("Loaded provider catalog: %s", [p.id for p in catalog])
  return tuple(catalog)


def list_providers() -> List[ProviderDescriptor]:
  """
  Return all providers in catalog order.
  :return: list of provider descriptors
  """

  return list(get_provider_catalog())


def get_provider(provider_id: str) -> Optional[ProviderDescriptor]:
  """
  Look up a provider by id.
  :param provider_id: provider id, e.g. `google`
  :return: descriptor or None
  """

  for p in get_provider_catalog():
    if p.id == provider_id:
      return p
  return None


def get_model(provider_id: str, model_id: str) -> Optional[ModelDescriptor]:
  """
  Look up a model of a provider.
  :param provider_id: provider id
  :param model_id: model id
  :return: descriptor or None
  """

  provider = get_provider(provider_id)
  return provider.get_model(model_id) if provider else None


def get_api_key(provider: ProviderDescriptor) -> Optional[str]:
  """Read the provider API key from the environment (None when unset or blank)."""

  value = os.getenv(provider.api_key_env)
  return value.strip() if value and value.strip() else None


def get_base_url(provider: ProviderDescriptor) -> Optional[str]:
  """
  Resolve the base URL for OpenAI-compatible providers.

  `QWEN_BASE_URL` overrides the DashScope endpoint for every provider that
  authenticates with QWEN_API_KEY.
  """

  override = os.getenv("QWEN_BASE_URL")
  if override and provider.api_key_env == "QWEN_API_KEY":
    return override.rstrip("/")
  return provider.base_url.rstrip("/") if provider.base_url else None


def get_search_api_key() -> Optional[str]:
  """Tavily key for search_web; None switches the tool to simulated results."""

  value = os.getenv("TAVILY_API_KEY")
  return value.strip() if value and value.strip() else None


def get_http_timeout() -> float:
  """
  Timeout in seconds applied to outbound HTTP calls.
  Falls back to the default when HTTP_TIMEOUT is unset or invalid.
  """

  raw = os.getenv("HTTP_TIMEOUT")
  if not raw:
    return DEFAULT_HTTP_TIMEOUT

  try:
    value = float(raw)
  except ValueError:
    logger.warning("Invalid HTTP_TIMEOUT '%s'; using default %.0fs", raw, DEFAULT_HTTP_TIMEOUT)
    return DEFAULT_HTTP_TIMEOUT

  return value if value > 0 else DEFAULT_HTTP_TIMEOUT
