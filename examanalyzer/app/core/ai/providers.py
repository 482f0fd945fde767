"""
Multi-Provider AI completion
Supports: OpenAI, Azure OpenAI, Anthropic Claude, Google Gemini, and Custom OpenAI-compatible APIs

Every call returns (parsed_json, token_usage). Nothing here retries:
a failed request propagates straight to the caller.
"""

import json
import logging
import os
import re
from typing import Any, Dict, Optional, Tuple

from dotenv import load_dotenv

load_dotenv()

logger = logging.getLogger(__name__)

DEFAULT_MODELS = {
    "openai": "gpt-4o-mini",
    "anthropic": "claude-3-haiku-20240307",
    "google": "gemini-1.5-flash",
    "custom": "gpt-3.5-turbo",
}

DEFAULT_AZURE_API_VERSION = "2025-04-01-preview"

SUPPORTED_PROVIDERS = ("openai", "azure", "anthropic", "google", "custom")


class AIClientError(RuntimeError):
    """A remote AI call failed."""


class MissingCredentialsError(AIClientError):
    """The provider selected in settings has no usable credentials."""


class AIResponseError(AIClientError):
    """The model replied with something that is not the expected JSON."""


TokenUsage = Dict[str, Any]


def resolve_ai_credentials(settings: dict) -> dict:
    """
    Merge provider credentials from settings with environment fallbacks.
    Settings win; the environment (or .env) fills the gaps.
    """
    provider = settings.get("ai_provider") or "openai"
    api_key = settings.get("ai_api_key") or ""

    if not api_key:
        env_key = {
            "openai": "OPENAI_API_KEY",
            "azure": "AZURE_OPENAI_API_KEY",
            "anthropic": "ANTHROPIC_API_KEY",
            "google": "GOOGLE_API_KEY",
            "custom": "CUSTOM_AI_API_KEY",
        }.get(provider)
        if env_key:
            api_key = os.getenv(env_key, "")

    return {
        "provider": provider,
        "api_key": api_key,
        "model": settings.get("ai_model") or settings.get("custom_model") or "",
        "custom_endpoint": settings.get("custom_endpoint") or "",
        "azure_endpoint": settings.get("azure_openai_endpoint") or os.getenv("AZURE_OPENAI_ENDPOINT", ""),
        "azure_deployment": settings.get("azure_openai_deployment") or os.getenv("AZURE_OPENAI_DEPLOYMENT", ""),
        "azure_api_version": settings.get("azure_openai_api_version") or DEFAULT_AZURE_API_VERSION,
    }


def parse_json_reply(raw: str) -> Dict[str, Any]:
    """Parse a model reply, tolerating markdown fences and chatter around the object."""
    raw = (raw or "").strip()

    # Remove markdown wrappers
    if raw.startswith("```"):
        raw = raw.replace("```json", "").replace("```", "").strip()

    try:
        data = json.loads(raw)
    except json.JSONDecodeError:
        match = re.search(r"\{[\s\S]*\}", raw)
        if not match:
            raise AIResponseError("No JSON found in AI response")
        try:
            data = json.loads(match.group(0))
        except json.JSONDecodeError as e:
            raise AIResponseError(f"AI returned invalid JSON: {e}")

    if not isinstance(data, dict):
        raise AIResponseError("AI response is not a JSON object")
    return data


def _openai_usage(response, model: str) -> TokenUsage:
    usage = response.usage
    return {
        "prompt_tokens": usage.prompt_tokens if usage else 0,
        "completion_tokens": usage.completion_tokens if usage else 0,
        "total_tokens": usage.total_tokens if usage else 0,
        "model": model,
    }


def _complete_openai(system: str, prompt: str, creds: dict, max_tokens: int) -> Tuple[str, TokenUsage]:
    from openai import OpenAI

    kwargs = {"api_key": creds["api_key"] or "not-needed"}
    if creds["provider"] == "custom":
        kwargs["base_url"] = creds["custom_endpoint"]
    client = OpenAI(**kwargs)

    model = creds["model"] or DEFAULT_MODELS[creds["provider"]]
    response = client.chat.completions.create(
        model=model,
        messages=[
            {"role": "system", "content": system},
            {"role": "user", "content": prompt},
        ],
        temperature=0,
        max_tokens=max_tokens,
    )
    return response.choices[0].message.content or "", _openai_usage(response, model)


def _complete_azure(system: str, prompt: str, creds: dict, max_tokens: int) -> Tuple[str, TokenUsage]:
    from openai import AzureOpenAI

    client = AzureOpenAI(
        api_key=creds["api_key"],
        azure_endpoint=creds["azure_endpoint"],
        api_version=creds["azure_api_version"],
    )
    deployment = creds["azure_deployment"]
    response = client.chat.completions.create(
        model=deployment,
        messages=[
            {"role": "system", "content": system},
            {"role": "user", "content": prompt},
        ],
        max_completion_tokens=max_tokens,
    )
    return response.choices[0].message.content or "", _openai_usage(response, deployment)


def _complete_anthropic(system: str, prompt: str, creds: dict, max_tokens: int) -> Tuple[str, TokenUsage]:
    import anthropic

    client = anthropic.Anthropic(api_key=creds["api_key"])
    model = creds["model"] or DEFAULT_MODELS["anthropic"]
    message = client.messages.create(
        model=model,
        max_tokens=max_tokens,
        system=system,
        messages=[{"role": "user", "content": prompt}],
    )
    usage = message.usage
    return message.content[0].text, {
        "prompt_tokens": usage.input_tokens if usage else 0,
        "completion_tokens": usage.output_tokens if usage else 0,
        "total_tokens": (usage.input_tokens + usage.output_tokens) if usage else 0,
        "model": model,
    }


def _complete_google(system: str, prompt: str, creds: dict, max_tokens: int) -> Tuple[str, TokenUsage]:
    import google.generativeai as genai

    genai.configure(api_key=creds["api_key"])
    model_name = creds["model"] or DEFAULT_MODELS["google"]
    model = genai.GenerativeModel(model_name, system_instruction=system)
    response = model.generate_content(
        prompt,
        generation_config={"max_output_tokens": max_tokens, "temperature": 0},
    )
    meta = getattr(response, "usage_metadata", None)
    return response.text, {
        "prompt_tokens": meta.prompt_token_count if meta else 0,
        "completion_tokens": meta.candidates_token_count if meta else 0,
        "total_tokens": meta.total_token_count if meta else 0,
        "model": model_name,
    }


_BACKENDS = {
    "openai": _complete_openai,
    "custom": _complete_openai,
    "azure": _complete_azure,
    "anthropic": _complete_anthropic,
    "google": _complete_google,
}


def _check_credentials(creds: dict) -> None:
    provider = creds["provider"]
    if provider not in _BACKENDS:
        raise AIClientError(f"Unknown AI provider: {provider}. Valid options: {', '.join(SUPPORTED_PROVIDERS)}")
    if provider == "custom":
        if not creds["custom_endpoint"]:
            raise MissingCredentialsError("Custom AI endpoint not configured. Set it in Settings.")
        return
    if not creds["api_key"]:
        raise MissingCredentialsError(f"API key not configured for {provider}. Set it in Settings.")
    if provider == "azure" and not (creds["azure_endpoint"] and creds["azure_deployment"]):
        raise MissingCredentialsError("Azure OpenAI endpoint and deployment must be configured.")


def complete_json(
    system: str,
    prompt: str,
    settings: dict,
    max_tokens: int = 2000,
) -> Tuple[Dict[str, Any], TokenUsage]:
    """
    Send one chat completion to the configured provider and parse its JSON reply.

    Raises:
        MissingCredentialsError: provider not configured (reported per call).
        AIResponseError: reply is not a JSON object.
        AIClientError: any transport or provider failure.
    """
    creds = resolve_ai_credentials(settings)
    _check_credentials(creds)
    provider = creds["provider"]

    try:
        raw, token_usage = _BACKENDS[provider](system, prompt, creds, max_tokens)
    except ImportError as e:
        raise AIClientError(f"SDK for {provider} is not installed: {e}")
    except Exception as e:
        raise AIClientError(f"AI request failed ({provider}): {e}") from e

    logger.debug("AI reply (%s): %s", provider, raw[:200])
    return parse_json_reply(raw), token_usage
