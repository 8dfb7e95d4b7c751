"""Tests for message variable substitution."""
from __future__ import annotations

from backend.app.flows.templating import build_variables, render


def _variables(**overrides):
    values = {
        "owner_name": "Ana",
        "contact_name": "Maria Silva",
        "phone": "5583999991234",
        "last_message": "quero pizza",
    }
    values.update(overrides)
    return build_variables(**values)


def test_render_known_tokens():
    text = "Oi {primeiro_nome}! Sou {atendente}. Seu número é {telefone}."

    assert render(text, _variables()) == "Oi Maria! Sou Ana. Seu número é 5583999991234."


def test_render_double_braces_and_case():
    assert render("{{ Nome }} disse {ULTIMA_MENSAGEM}", _variables()) == "Maria Silva disse quero pizza"


def test_unknown_tokens_stay_verbatim():
    assert render("Cupom {cupom} para {nome}", _variables()) == "Cupom {cupom} para Maria Silva"


def test_missing_values_leave_token():
    variables = _variables(contact_name=None, last_message=None)

    assert render("Olá {nome}, {primeiro_nome}", variables) == "Olá {nome}, {primeiro_nome}"


def test_extra_variables_are_lowercased():
    variables = _variables(extra={"Plano": "Premium", "ignored": None})

    assert render("Plano {plano}", variables) == "Plano Premium"
    assert "ignored" not in variables


def test_builtin_tokens_override_extras():
    variables = _variables(extra={"nome": "Outro"})

    assert render("{nome}", variables) == "Maria Silva"


def test_empty_text():
    assert render("", _variables()) == ""
