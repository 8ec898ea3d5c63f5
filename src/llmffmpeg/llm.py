from __future__ import annotations

import logging

import openai
from openai import OpenAI

from .config import AppConfig
from .prompt import build_explain_prompt

logger = logging.getLogger("llmffmpeg.llm")

COMMAND_SYSTEM_ROLE = (
    "You translate requests into ffmpeg commands. "
    "Reply with exactly one command line and nothing else."
)


class LLMError(RuntimeError):
    """The model endpoint could not be reached or rejected the request."""


def build_client(cfg: AppConfig) -> OpenAI:
    """
    Build an OpenAI-compatible client.
    - provider "openai": official API with cfg.openai_api_key.
    - provider "compat": Ollama or any other OpenAI-compatible endpoint at
      cfg.base_url, authenticated with cfg.bearer_token when given.
    """
    if cfg.provider == "openai":
        if not cfg.openai_api_key:
            raise LLMError("provider=openai requires an API key (--api-key or LLM_FFMPEG_OPENAI_API_KEY)")
        return OpenAI(api_key=cfg.openai_api_key)

    # Ollama ignores the key but the client insists on one
    api_key = cfg.bearer_token if cfg.bearer_token else "ollama"
    return OpenAI(base_url=cfg.base_url, api_key=api_key)


def _complete(client: OpenAI, model: str, messages: list[dict], **kwargs) -> str:
    try:
        resp = client.chat.completions.create(model=model, messages=messages, **kwargs)
    except openai.OpenAIError as e:
        raise LLMError(f"Error during model inference ({model}): {e}") from e
    if not resp.choices:
        raise LLMError(f"Model {model} returned no choices")
    return (resp.choices[0].message.content or "").strip()


def generate_command(prompt: str, client: OpenAI, model: str) -> str:
    """Primary generation call: deterministic, command-only. Returns raw text."""
    messages = [
        {"role": "system", "content": COMMAND_SYSTEM_ROLE},
        {"role": "user", "content": prompt},
    ]
    logger.debug("Generating with %s (%d prompt chars)", model, len(prompt))
    return _complete(client, model, messages, temperature=0.0)


def explain_command(command: str, client: OpenAI, model: str) -> str:
    """General call used for the explanation; default sampling."""
    messages = [{"role": "user", "content": build_explain_prompt(command)}]
    return _complete(client, model, messages)


def list_models(client: OpenAI) -> list[str]:
    try:
        return sorted(m.id for m in client.models.list())
    except openai.OpenAIError as e:
        raise LLMError(f"Could not list models: {e}") from e


def verify_connection(client: OpenAI) -> None:
    """Raise LLMError unless the endpoint answers a model listing."""
    base_url = getattr(client, "base_url", None)
    try:
        client.models.list()
    except openai.OpenAIError as e:
        where = f" at {base_url}" if base_url else ""
        raise LLMError(f"LLM endpoint{where} is not reachable: {e}") from e
