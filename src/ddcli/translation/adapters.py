"""Provider adapters: OpenAI, DeepSeek and Anthropic."""

from typing import Any

from ddcli.errors import ParseError
from ddcli.translation.base import MAX_TOKENS, TEMPERATURE, BaseAdapter

ANTHROPIC_VERSION = "2023-06-01"


class OpenAIAdapter(BaseAdapter):
    """Chat Completions API."""

    name = "openai"

    def build_request(self, system_prompt: str, user_prompt: str) -> tuple[dict[str, str], dict[str, Any]]:
        headers = {
            "Content-Type": "application/json",
            "Authorization": f"Bearer {self.api_key}",
        }
        body = {
            "model": self.model,
            "messages": [
                {"role": "system", "content": system_prompt},
                {"role": "user", "content": user_prompt},
            ],
            "temperature": TEMPERATURE,
            "max_tokens": MAX_TOKENS,
        }
        return headers, body

    def extract_content(self, data: dict[str, Any]) -> str:
        try:
            content = data["choices"][0]["message"]["content"]
        except (KeyError, IndexError, TypeError) as e:
            raise ParseError("API response format is incorrect") from e
        if not isinstance(content, str) or not content.strip():
            raise ParseError("API response format is incorrect")
        return content.strip()


class DeepSeekAdapter(OpenAIAdapter):
    """DeepSeek speaks the OpenAI Chat Completions format."""

    name = "deepseek"


class AnthropicAdapter(BaseAdapter):
    """Messages API."""

    name = "anthropic"

    def build_request(self, system_prompt: str, user_prompt: str) -> tuple[dict[str, str], dict[str, Any]]:
        headers = {
            "Content-Type": "application/json",
            "x-api-key": self.api_key,
            "anthropic-version": ANTHROPIC_VERSION,
        }
        body = {
            "model": self.model,
            "system": system_prompt,
            "messages": [{"role": "user", "content": user_prompt}],
            "temperature": TEMPERATURE,
            "max_tokens": MAX_TOKENS,
        }
        return headers, body

    def extract_content(self, data: dict[str, Any]) -> str:
        blocks = data.get("content")
        if isinstance(blocks, list):
            for block in blocks:
                if isinstance(block, dict) and block.get("type") == "text" and block.get("text"):
                    return str(block["text"]).strip()
        raise ParseError("API response format is incorrect")
