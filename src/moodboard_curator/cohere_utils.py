"""Cohere chat helpers for query generation, style-intent parsing and outfit suggestions."""

from __future__ import annotations

import json
import time
from typing import Any
import urllib.error
import urllib.request

from moodboard_curator.config import CuratorConfig


class CohereClient:
    def __init__(self, *, api_key: str, base_url: str, timeout_seconds: float, max_retries: int) -> None:
        self.api_key = api_key
        self.base_url = base_url.rstrip("/")
        self.timeout_seconds = max(1.0, float(timeout_seconds))
        self.max_retries = max(0, int(max_retries))

    def _post_json(self, path: str, payload: dict[str, Any]) -> dict[str, Any]:
        body = json.dumps(payload).encode("utf-8")
        endpoint = f"{self.base_url}{path}"
        request = urllib.request.Request(
            endpoint,
            data=body,
            headers={
                "Authorization": f"Bearer {self.api_key}",
                "Accept": "application/json",
                "Content-Type": "application/json",
            },
            method="POST",
        )

        last_error: Exception | None = None
        for attempt in range(self.max_retries + 1):
            try:
                with urllib.request.urlopen(request, timeout=self.timeout_seconds) as response:
                    return json.loads(response.read().decode("utf-8"))
            except urllib.error.HTTPError as exc:
                response_body = exc.read().decode("utf-8", errors="ignore")
                retryable = exc.code in {408, 409, 429, 500, 502, 503, 504}
                if retryable and attempt < self.max_retries:
                    time.sleep(0.4 * (2**attempt))
                    continue
                raise RuntimeError(
                    f"Cohere request failed ({exc.code}) at {path}: {response_body or exc.reason}"
                ) from exc
            except urllib.error.URLError as exc:
                last_error = exc
                if attempt < self.max_retries:
                    time.sleep(0.4 * (2**attempt))
                    continue
                raise RuntimeError(f"Cohere request failed at {path}: {exc.reason}") from exc

        raise RuntimeError(f"Cohere request failed at {path}: {last_error}")

    @staticmethod
    def _extract_chat_text(payload: dict[str, Any]) -> str:
        message = payload.get("message")
        if not isinstance(message, dict):
            return ""

        content = message.get("content")
        if isinstance(content, str):
            return content.strip()
        if isinstance(content, list):
            parts: list[str] = []
            for chunk in content:
                if isinstance(chunk, dict):
                    text = chunk.get("text")
                    if isinstance(text, str):
                        parts.append(text)
            return "\n".join(parts).strip()
        return ""

    def chat_text(self, *, prompt: str, model: str, temperature: float = 0.2) -> str:
        payload = {
            "model": model,
            "messages": [{"role": "user", "content": prompt}],
            "temperature": temperature,
        }
        response = self._post_json("/chat", payload)
        return self._extract_chat_text(response)


def _strip_code_fence(text: str) -> str:
    raw = (text or "").strip()
    if raw.startswith("```"):
        first_newline = raw.find("\n")
        last_fence = raw.rfind("```")
        if first_newline != -1 and last_fence > first_newline:
            raw = raw[first_newline:last_fence].strip()
    return raw


def _extract_json_block(text: str) -> dict[str, Any]:
    raw = _strip_code_fence(text)
    if not raw:
        raise ValueError("Model returned an empty response.")

    candidates = [raw]
    start = raw.find("{")
    end = raw.rfind("}")
    if start != -1 and end > start:
        candidates.append(raw[start : end + 1])

    for candidate in candidates:
        try:
            parsed = json.loads(candidate)
        except Exception:
            continue
        if isinstance(parsed, dict):
            return parsed

    raise ValueError(f"Could not parse JSON object from model response: {text[:200]}")


def _extract_query_list(text: str) -> list[str]:
    """Parse a JSON array of non-empty strings, bare or under a ``queries`` key.

    Any other shape raises ``ValueError``; a single bad element rejects the whole list.
    """
    raw = _strip_code_fence(text)
    if not raw:
        raise ValueError("Model returned an empty response.")

    try:
        parsed: Any = json.loads(raw)
    except Exception:
        start = raw.find("[")
        end = raw.rfind("]")
        if start == -1 or end <= start:
            raise ValueError(f"Could not parse a query list from model response: {text[:200]}")
        try:
            parsed = json.loads(raw[start : end + 1])
        except Exception as exc:
            raise ValueError(f"Could not parse a query list from model response: {text[:200]}") from exc

    if isinstance(parsed, dict):
        parsed = parsed.get("queries")
    if not isinstance(parsed, list):
        raise ValueError("Expected a JSON array of query strings.")
    if not all(isinstance(value, str) and value.strip() for value in parsed):
        raise ValueError("Query list contains empty or non-string entries.")
    return [value.strip() for value in parsed]


def make_client(config: CuratorConfig, *, max_retries: int = 0) -> CohereClient:
    api_key = config.cohere_api_key.strip()
    if not api_key:
        raise RuntimeError("COHERE_API_KEY is not set.")

    return CohereClient(
        api_key=api_key,
        base_url=config.cohere_base_url or "https://api.cohere.com/v2",
        timeout_seconds=config.cohere_timeout_seconds,
        max_retries=max_retries,
    )


def generate_search_queries(
    client: CohereClient,
    *,
    prompt_text: str,
    gender: str,
    retailer_hosts: list[str],
    model: str,
) -> list[str]:
    prompt = (
        "You are a fashion buyer planning image searches for a moodboard.\n"
        "Turn the shopper request into 8-12 short, product-oriented search queries.\n"
        "Rules:\n"
        "- Each query names one concrete garment or accessory plus style words from the request.\n"
        "- Cover at least 2 tops, 2 bottoms, 2 outerwear, 2 shoes and 1 accessory.\n"
        f"- Write for this gender: {gender}.\n"
        "- Do not include site: operators or retailer names.\n"
        f"Retailers that will be searched: {retailer_hosts}\n"
        f"Request: {prompt_text}\n"
        'Output ONLY a JSON array of strings, e.g. ["black wide leg trousers men", "..."]. No markdown.'
    )
    raw = client.chat_text(prompt=prompt, model=model, temperature=0.3)
    return _extract_query_list(raw)


def extract_style_intent(
    client: CohereClient,
    *,
    query_text: str,
    model: str,
) -> dict[str, Any]:
    prompt = (
        "You extract fashion intent from a short sentence.\n"
        "Output ONLY valid JSON with keys:\n"
        "- event (short phrase, e.g. dinner, wedding, job interview; empty if none)\n"
        "- mood (vibe adjective, e.g. minimal, elegant, grungy; empty if none)\n"
        "- style (style family, e.g. japanese workwear, streetwear, preppy; empty if none)\n"
        "- gender (men|women|unisex; unisex if unclear)\n"
        "- items (array of up to 4 garments the shopper likely wants)\n"
        f"Text: {query_text}\n"
        "No markdown. No extra keys."
    )
    raw = client.chat_text(prompt=prompt, model=model, temperature=0.2)
    parsed = _extract_json_block(raw)

    gender = str(parsed.get("gender") or "").strip().lower().replace("'s", "")
    if gender not in {"men", "women", "unisex"}:
        gender = "unisex"

    raw_items = parsed.get("items") if isinstance(parsed.get("items"), list) else []
    items = [str(value).strip() for value in raw_items if isinstance(value, str) and str(value).strip()]

    return {
        "event": str(parsed.get("event") or "").strip(),
        "mood": str(parsed.get("mood") or "").strip(),
        "style": str(parsed.get("style") or "").strip(),
        "gender": gender,
        "items": items[:6],
    }


def suggest_outfit(
    client: CohereClient,
    *,
    event: str,
    mood: str,
    model: str,
) -> str:
    prompt = (
        "You are a fashion stylist that suggests concise outfit ideas.\n"
        f"Suggest an outfit for a {event} with a {mood} vibe.\n"
        "Answer in 2-4 sentences of plain text."
    )
    return client.chat_text(prompt=prompt, model=model, temperature=0.7).strip()
