"""Helpers for reading JSON out of model replies."""

import json


def strip_code_fences(text: str) -> str:
    """
    Remove Markdown code fences around a reply.

    Handles ```json ... ``` and bare ``` ... ``` blocks; text without
    fences is returned stripped.
    """
    cleaned = text.strip()
    if "```" not in cleaned:
        return cleaned

    parts = cleaned.split("```")
    if len(parts) >= 3:
        # Take the first complete fenced block
        content = parts[1]
    else:
        content = cleaned.replace("```", "")

    if content.startswith("\n"):
        content = content[1:]
    elif "\n" in content:
        first_line = content.split("\n")[0]
        # Drop a language identifier such as "json"
        if first_line.strip().isalpha() or first_line.strip() == "":
            content = "\n".join(content.split("\n")[1:])
    elif content.lower().startswith("json"):
        content = content[4:]

    return content.strip()


def parse_json_reply(text: str) -> dict:
    """
    Parse a reply that should hold a single JSON object.

    Raises ValueError when the text is not a JSON object.
    """
    payload = json.loads(strip_code_fences(text))
    if not isinstance(payload, dict):
        raise ValueError(f"Expected a JSON object, got {type(payload).__name__}")
    return payload
