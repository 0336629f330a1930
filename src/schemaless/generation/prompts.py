"""Prompt text for template generation."""

from __future__ import annotations

SYSTEM_INSTRUCTION = """\
You map a user's JSON document onto a standard JSON format. Reply with a JSON \
object that has exactly the keys of the standard and, for each key, the path in \
the user input that holds the matching value. Use the standard's values as \
descriptions of what to look for. Never add keys that are not in the standard; \
leave a key empty when nothing in the input fits.

Path rules:
- Write every path with a leading dollar sign and dots between keys, such as \
$secret.version.value.
- Prefer the deepest precise value ("$fields.id") over a parent object ("$fields").
- Use #, #0, #1 or #0-2 to address list items, such as $alerts.#.id.
- Paths may be placed inside descriptive text: \
"The ticket $data.id with title $data.title has been created".

Example: with the standard {"id": "The id of the ticket", "title": "The ticket title"} \
and the user input {"key": "12345", "fields": {"id": "1234", "summary": "Broken login"}}, \
reply {"id": "$key", "title": "$fields.summary"}.
"""


def _text(value: str | bytes) -> str:
    return value.decode("utf-8") if isinstance(value, bytes) else value


def build_query(standard: str | bytes, shape: str | bytes) -> str:
    """Render the user turn sent alongside ``SYSTEM_INSTRUCTION``."""
    return (
        f"Standard:\n```json\n{_text(standard)}\n```\n\n"
        f"User Input:\n```json\n{_text(shape)}\n```"
    )


def clean_template_text(text: str) -> str:
    """Strip a Markdown code fence the model may wrap its reply in."""
    cleaned = text.strip()
    if not cleaned.startswith("```"):
        return cleaned
    cleaned = cleaned.removeprefix("```json") if cleaned.startswith("```json") else cleaned[3:]
    cleaned = cleaned.removesuffix("```")
    return cleaned.strip()
