"""Web fetch tool."""

from __future__ import annotations

import re
from typing import Any

import httpx
from lxml.etree import ParserError
from lxml.html import fromstring
from readability import Document

from ..errors import ToolError
from .base import Tool, TurnContext

DEFAULT_MAX_LENGTH = 50000
USER_AGENT = "Mozilla/5.0 (compatible; picobot/0.1)"


def extract_text(html: str) -> tuple[str, str]:
    """Return (title, readable text) for an HTML document."""
    try:
        doc = Document(html)
        text = fromstring(doc.summary()).text_content().strip()
        return doc.title(), text
    except (ParserError, ValueError):
        text = re.sub(r"<[^>]+>", " ", html)
        return "", re.sub(r"\s+", " ", text).strip()


class WebFetchTool(Tool):
    """Fetch a URL and extract its readable text content."""

    def __init__(self, timeout: float = 20.0) -> None:
        self._timeout = timeout

    @property
    def name(self) -> str:
        return "web_fetch"

    @property
    def description(self) -> str:
        return "Fetch an http(s) URL and return its readable text. Good for articles and documentation."

    @property
    def parameters(self) -> dict[str, Any]:
        return {
            "type": "object",
            "properties": {
                "url": {"type": "string", "description": "URL to fetch (http or https)"},
                "max_length": {
                    "type": "integer",
                    "description": f"Max content length in chars (default: {DEFAULT_MAX_LENGTH})",
                    "default": DEFAULT_MAX_LENGTH,
                },
            },
            "required": ["url"],
        }

    async def execute(
        self,
        context: TurnContext,
        url: str = "",
        max_length: int = DEFAULT_MAX_LENGTH,
        **kwargs: Any,
    ) -> str:
        if not url.startswith(("http://", "https://")):
            raise ToolError("web_fetch: URL must start with http:// or https://")

        try:
            async with httpx.AsyncClient(follow_redirects=True, max_redirects=5) as client:
                response = await client.get(
                    url, headers={"User-Agent": USER_AGENT}, timeout=self._timeout
                )
                response.raise_for_status()
        except httpx.HTTPError as e:
            raise ToolError(f"web_fetch: {e}") from e

        content_type = response.headers.get("content-type", "")
        if "html" in content_type:
            title, text = extract_text(response.text)
            header = f"Title: {title}\nURL: {url}" if title else f"URL: {url}"
            result = f"{header}\n\n{text}"
        else:
            result = f"URL: {url}\n\n{response.text}"

        if len(result) > max_length:
            result = (
                result[:max_length]
                + f"\n\n... (truncated, {len(result) - max_length} more chars)"
            )
        return result
