"""
LLM Provider Base - Abstract base for all LLM API providers.
Supports multimodal messages (text + inline files).
"""

import json
from abc import ABC, abstractmethod
from typing import Dict, Any, Optional, List, Union
from dataclasses import dataclass, field

import httpx


@dataclass
class LLMMessage:
    """
    Represents a message in a conversation.
    Supports multimodal content (text and inline base64 files).
    """
    role: str  # "system", "user", "assistant"
    content: Union[str, List[Dict[str, Any]]]  # text or multimodal content blocks

    @staticmethod
    def text(role: str, text: str) -> "LLMMessage":
        """Create a text-only message."""
        return LLMMessage(role=role, content=text)

    @staticmethod
    def multimodal(role: str, text: str,
                   inline_files: Optional[List[Dict[str, str]]] = None) -> "LLMMessage":
        """
        Create a multimodal message with text and inline files.

        Args:
            role: Message role
            text: Text content
            inline_files: List of dicts with 'data' (base64 string) and 'media_type'

        Content blocks are provider-neutral; each provider converts them
        in _format_messages.
        """
        content_parts: List[Dict[str, Any]] = []

        # Files first, text last
        for item in inline_files or []:
            content_parts.append({
                "type": "inline_data",
                "media_type": item["media_type"],
                "data": item["data"],
            })

        content_parts.append({"type": "text", "text": text})

        return LLMMessage(role=role, content=content_parts)


@dataclass
class LLMResponse:
    """Response from an LLM API call."""
    content: str
    model: str = ""
    usage: Dict[str, int] = field(default_factory=dict)
    raw: Optional[Dict[str, Any]] = None
    sources: List[Dict[str, str]] = field(default_factory=list)  # [{"title", "uri"}]


class LLMError(Exception):
    """
    A failed LLM call.

    Carries whatever the transport told us so callers can classify the
    failure (status code, response headers, decoded body).
    """

    def __init__(self, message: str, status_code: Optional[int] = None,
                 headers: Optional[Dict[str, str]] = None,
                 body: Any = None):
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.headers = {k.lower(): v for k, v in (headers or {}).items()}
        self.body = body

    @classmethod
    def from_http_error(cls, error: httpx.HTTPError) -> "LLMError":
        """Build from an httpx error, decoding the JSON body when there is one."""
        if isinstance(error, httpx.HTTPStatusError):
            response = error.response
            try:
                body: Any = response.json()
            except ValueError:
                body = response.text
            message = str(error)
            if isinstance(body, dict) and isinstance(body.get("error"), dict):
                message = body["error"].get("message") or message
            return cls(
                message,
                status_code=response.status_code,
                headers=dict(response.headers),
                body=body,
            )
        return cls(str(error) or error.__class__.__name__)

    @classmethod
    def from_malformed_response(cls, response: Optional[httpx.Response],
                                error: Exception) -> "LLMError":
        """Build from a response that arrived but could not be decoded."""
        return cls(
            f"Malformed LLM response: {error.__class__.__name__}: {error}",
            status_code=response.status_code if response is not None else None,
            headers=dict(response.headers) if response is not None else None,
        )

    def describe(self) -> str:
        """Message plus serialized body, used for keyword matching."""
        if self.body is None:
            return self.message
        if isinstance(self.body, str):
            return f"{self.message} {self.body}"
        return f"{self.message} {json.dumps(self.body, ensure_ascii=False)}"


class LLMProvider(ABC):
    """
    Abstract base class for LLM API providers.
    All providers must implement chat_completion.
    """

    def __init__(self, api_key: str, model: str, base_url: Optional[str] = None,
                 default_temperature: float = 0.7, default_max_tokens: int = 2048):
        self.api_key = api_key
        self.model = model
        self.base_url = base_url
        self.default_temperature = default_temperature
        self.default_max_tokens = default_max_tokens

    @abstractmethod
    async def chat_completion(
        self,
        messages: List[LLMMessage],
        temperature: Optional[float] = None,
        max_tokens: Optional[int] = None,
        json_mode: bool = False,
        web_search: bool = False,
        **kwargs
    ) -> LLMResponse:
        """
        Send a chat completion request.

        Args:
            messages: List of conversation messages (supports multimodal)
            temperature: Sampling temperature override
            max_tokens: Max tokens override
            json_mode: Ask the model for a JSON object
            web_search: Allow the model to ground its answer with web search
            **kwargs: Additional provider-specific parameters

        Returns:
            LLMResponse with the generated content

        Raises:
            LLMError: on HTTP or transport failure, or an undecodable reply
        """
        pass

    def _format_messages(self, messages: List[LLMMessage]) -> List[Dict[str, Any]]:
        """Convert LLMMessage list to API-compatible format."""
        return [{"role": m.role, "content": m.content} for m in messages]
