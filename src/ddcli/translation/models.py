"""Translation result model and response parsing."""

import json
import re
from dataclasses import dataclass
from typing import Any

from ddcli.errors import ParseError

_CODE_FENCE = re.compile(r"^```(?:json)?\s*(.*?)\s*```$", re.DOTALL | re.IGNORECASE)


@dataclass(frozen=True)
class TranslatedCommand:
    """A candidate command produced from a natural-language query."""

    command: str
    explanation: str

    def to_dict(self) -> dict[str, Any]:
        return {"command": self.command, "explanation": self.explanation}


def parse_response(content: str) -> TranslatedCommand:
    """Parse a model reply of the form {"command": ..., "explanation": ...}.

    A surrounding Markdown code fence is tolerated, as is prose around the
    object: the first decodable {...} in the reply is used. Both fields are
    trimmed.

    Raises:
        ParseError: If the reply is not a JSON object with string fields.
    """
    text = (content or "").strip()
    fenced = _CODE_FENCE.match(text)
    if fenced:
        text = fenced.group(1)

    try:
        parsed = json.loads(text)
    except json.JSONDecodeError as e:
        parsed = _first_json_object(text)
        if parsed is None:
            raise ParseError(f"Failed to parse response: {e}", details={"content": content}) from e

    if not isinstance(parsed, dict):
        raise ParseError("Failed to parse response: expected a JSON object", details={"content": content})

    command = parsed.get("command")
    explanation = parsed.get("explanation")
    if not isinstance(command, str) or not isinstance(explanation, str):
        raise ParseError(
            "Failed to parse response: 'command' and 'explanation' must be strings",
            details={"content": content},
        )
    if not command.strip():
        raise ParseError("Failed to parse response: empty command", details={"content": content})

    return TranslatedCommand(command=command.strip(), explanation=explanation.strip())


def _first_json_object(text: str) -> dict[str, Any] | None:
    decoder = json.JSONDecoder()
    start = text.find("{")
    while start != -1:
        try:
            parsed, _ = decoder.raw_decode(text, start)
        except json.JSONDecodeError:
            start = text.find("{", start + 1)
            continue
        return parsed
    return None
