"""Variable substitution for outgoing message text."""
from __future__ import annotations

import re
from collections.abc import Mapping

OWNER_TOKENS = ("atendente", "operador", "operator", "owner", "empresa", "company")
CONTACT_NAME_TOKENS = ("nome", "name", "contato", "contact")
FIRST_NAME_TOKENS = ("primeiro_nome", "first_name")
PHONE_TOKENS = ("telefone", "phone")
LAST_MESSAGE_TOKENS = ("ultima_mensagem", "last_message")

# Matches {token} and {{token}}; the braces must balance.
_TOKEN = re.compile(r"\{\{\s*([\w.]+)\s*\}\}|\{\s*([\w.]+)\s*\}")


def build_variables(
    *,
    owner_name: str | None,
    contact_name: str | None,
    phone: str | None,
    last_message: str | None,
    extra: Mapping[str, object] | None = None,
) -> dict[str, str]:
    """Return the lower-cased token table used by :func:`render`."""

    variables: dict[str, str] = {}
    for key, value in (extra or {}).items():
        if value is not None:
            variables[str(key).lower()] = str(value)

    def _assign(tokens: tuple[str, ...], value: str | None) -> None:
        if value:
            for token in tokens:
                variables[token] = value

    _assign(OWNER_TOKENS, owner_name)
    _assign(CONTACT_NAME_TOKENS, contact_name)
    _assign(FIRST_NAME_TOKENS, contact_name.split()[0] if contact_name and contact_name.split() else None)
    _assign(PHONE_TOKENS, phone)
    _assign(LAST_MESSAGE_TOKENS, last_message)
    return variables


def render(text: str, variables: Mapping[str, str]) -> str:
    """Replace known tokens case-insensitively; unknown tokens are left as written."""

    if not text:
        return text

    def _replace(match: re.Match[str]) -> str:
        key = (match.group(1) or match.group(2)).lower()
        value = variables.get(key)
        return value if value is not None else match.group(0)

    return _TOKEN.sub(_replace, text)
