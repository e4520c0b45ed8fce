"""
Gemini LLM Provider.
Calls the Generative Language REST API (generateContent) with an API key.
Supports JSON mode and Google Search grounding.
"""

import httpx
import logging
import time
from typing import Optional, List, Dict, Any

from .base import LLMProvider, LLMMessage, LLMResponse, LLMError

logger = logging.getLogger(__name__)


class GeminiProvider(LLMProvider):
    """
    Provider for Google Gemini models.
    System messages are sent as systemInstruction; assistant turns use the "model" role.
    """

    def __init__(
        self,
        api_key: str,
        model: str = "gemini-2.5-flash",
        base_url: str = "https://generativelanguage.googleapis.com/v1beta",
        default_temperature: float = 0.7,
        default_max_tokens: int = 2048,
        timeout: float = 120.0,
    ):
        super().__init__(api_key, model, base_url, default_temperature, default_max_tokens)
        self.timeout = timeout

    def _get_headers(self) -> Dict[str, str]:
        return {
            "x-goog-api-key": self.api_key,
            "Content-Type": "application/json",
        }

    @staticmethod
    def _to_parts(content: Any) -> List[Dict[str, Any]]:
        if isinstance(content, str):
            return [{"text": content}]
        parts = []
        for block in content:
            if block["type"] == "inline_data":
                parts.append({
                    "inlineData": {"mimeType": block["media_type"], "data": block["data"]}
                })
            elif block["type"] == "text":
                parts.append({"text": block["text"]})
        return parts

    def _build_payload(self, messages: List[LLMMessage], temperature: float,
                       max_tokens: int, json_mode: bool, web_search: bool) -> Dict[str, Any]:
        system_texts = []
        contents = []
        for m in messages:
            if m.role == "system":
                system_texts.extend(p["text"] for p in self._to_parts(m.content) if "text" in p)
                continue
            role = "model" if m.role in ("assistant", "model") else "user"
            contents.append({"role": role, "parts": self._to_parts(m.content)})

        generation_config: Dict[str, Any] = {
            "temperature": temperature,
            "maxOutputTokens": max_tokens,
        }
        if json_mode:
            generation_config["responseMimeType"] = "application/json"

        payload: Dict[str, Any] = {
            "contents": contents,
            "generationConfig": generation_config,
        }
        if system_texts:
            payload["systemInstruction"] = {"parts": [{"text": "\n\n".join(system_texts)}]}
        # Gemini rejects search tools combined with JSON output
        if web_search and not json_mode:
            payload["tools"] = [{"google_search": {}}]
        return payload

    @staticmethod
    def _extract_sources(candidate: Dict[str, Any]) -> List[Dict[str, str]]:
        """Web grounding chunks, de-duplicated by uri."""
        chunks = (candidate.get("groundingMetadata") or {}).get("groundingChunks") or []
        sources: Dict[str, Dict[str, str]] = {}
        for chunk in chunks:
            web = chunk.get("web")
            if web and web.get("uri"):
                sources[web["uri"]] = {"title": web.get("title", ""), "uri": web["uri"]}
        return list(sources.values())

    async def chat_completion(
        self,
        messages: List[LLMMessage],
        temperature: Optional[float] = None,
        max_tokens: Optional[int] = None,
        json_mode: bool = False,
        web_search: bool = False,
        **kwargs
    ) -> LLMResponse:
        """Send request to the generateContent endpoint."""
        start_time = time.time()
        model = kwargs.get("model", self.model)
        url = f"{self.base_url}/models/{model}:generateContent"
        payload = self._build_payload(
            messages,
            temperature if temperature is not None else self.default_temperature,
            max_tokens or self.default_max_tokens,
            json_mode,
            web_search,
        )

        if logger.isEnabledFor(logging.DEBUG):
            logger.debug(
                f"LLM API call starting: provider=gemini, model={model}, "
                f"{len(payload['contents'])} contents, json_mode={json_mode}, "
                f"web_search={'tools' in payload}"
            )

        resp = None
        try:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                resp = await client.post(url, json=payload, headers=self._get_headers())
                resp.raise_for_status()
                data = resp.json()

            candidates = data.get("candidates") or [{}]
            candidate = candidates[0]
            text = "".join(
                part.get("text", "")
                for part in (candidate.get("content") or {}).get("parts", [])
            )
            usage_meta = data.get("usageMetadata", {})
            usage = {
                "prompt_tokens": usage_meta.get("promptTokenCount", 0),
                "completion_tokens": usage_meta.get("candidatesTokenCount", 0),
                "total_tokens": usage_meta.get("totalTokenCount", 0),
            }
            sources = self._extract_sources(candidate)
        except httpx.HTTPError as e:
            duration_ms = (time.time() - start_time) * 1000
            logger.error(
                f"LLM API call failed: {str(e)}",
                exc_info=True,
                extra={"extra_fields": {
                    "provider": "gemini",
                    "model": model,
                    "duration_ms": round(duration_ms, 2),
                    "error": str(e),
                }}
            )
            raise LLMError.from_http_error(e) from e
        except (ValueError, KeyError, IndexError, TypeError, AttributeError) as e:
            duration_ms = (time.time() - start_time) * 1000
            logger.error(
                f"LLM API returned a malformed response: {str(e)}",
                exc_info=True,
                extra={"extra_fields": {
                    "provider": "gemini",
                    "model": model,
                    "duration_ms": round(duration_ms, 2),
                    "error": str(e),
                }}
            )
            raise LLMError.from_malformed_response(resp, e) from e

        duration_ms = (time.time() - start_time) * 1000

        logger.info(
            "LLM API call completed",
            extra={"extra_fields": {
                "provider": "gemini",
                "model": data.get("modelVersion", model),
                **usage,
                "duration_ms": round(duration_ms, 2),
            }}
        )

        return LLMResponse(
            content=text,
            model=data.get("modelVersion", model),
            usage=usage,
            raw=data,
            sources=sources,
        )
