"""Check that RingCentral and Gemini are reachable with the configured credentials."""

from __future__ import annotations

import logging
from typing import Any, Callable

from chatdigest.errors import UpstreamHTTPError
from chatdigest.messaging.client import RingCentralClient
from chatdigest.settings import Settings
from chatdigest.summarization.resilient import LLMProtocol, is_transient_overload
from chatdigest.text_generators import get_text_generator

_LOG = logging.getLogger(__name__)

_TEST_PROMPT = "Say 'Hello, connectivity test successful!' in exactly those words."


def _ringcentral_suggestion(exc: BaseException) -> str:
    if isinstance(exc, UpstreamHTTPError):
        if exc.status in (400, 401):
            return "Check RC_CLIENT_ID, RC_CLIENT_SECRET and RC_JWT in .env."
        if exc.status == 403:
            return "The app lacks permissions; check its scopes in the developer console."
    return "Check network connectivity and RC_SERVER."


def _gemini_suggestion(exc: BaseException) -> str:
    if is_transient_overload(exc):
        return "Gemini is overloaded; try again in a few minutes."
    text = str(exc).lower()
    if "api key" in text or "api_key" in text or "permission" in text:
        return "Check GEMINI_API_KEY in .env."
    return "Check network connectivity and the GEMINI_MODEL name."


async def check_ringcentral(settings: Settings, client: Any = None) -> dict[str, Any]:
    client = client or RingCentralClient(settings.rc_server, settings.rc_client_id, settings.rc_client_secret)
    try:
        await client.login(settings.rc_jwt)
        extension = await client.get_current_extension()
    except Exception as exc:  # noqa: BLE001
        _LOG.warning("RingCentral connectivity check failed: %s", exc)
        return {"ok": False, "error": str(exc), "suggestion": _ringcentral_suggestion(exc)}
    finally:
        await client.close()
    return {
        "ok": True,
        "extension": extension.get("name") or extension.get("extensionNumber") or extension.get("id"),
    }


async def check_gemini(settings: Settings, llm: LLMProtocol | None = None) -> dict[str, Any]:
    llm = llm or get_text_generator("gemini", settings.gemini_model, api_key=settings.gemini_api_key)
    try:
        reply = await llm.generate(_TEST_PROMPT)
    except Exception as exc:  # noqa: BLE001
        _LOG.warning("Gemini connectivity check failed: %s", exc)
        return {"ok": False, "error": str(exc), "suggestion": _gemini_suggestion(exc)}
    return {"ok": True, "model": settings.gemini_model, "reply": reply.strip()[:100]}


async def check_connectivity(
    settings: Settings,
    *,
    client_factory: Callable[[Settings], Any] | None = None,
    llm: LLMProtocol | None = None,
) -> dict[str, dict[str, Any]]:
    """Return ``{"ringcentral": {...}, "gemini": {...}}``, each with an ``ok`` flag."""
    client = client_factory(settings) if client_factory else None
    results = {
        "ringcentral": await check_ringcentral(settings, client),
        "gemini": await check_gemini(settings, llm),
    }
    for service, result in results.items():
        if result["ok"]:
            _LOG.info("Connectivity %s: ok", service)
        else:
            _LOG.error("Connectivity %s: %s (%s)", service, result["error"], result["suggestion"])
    return results
