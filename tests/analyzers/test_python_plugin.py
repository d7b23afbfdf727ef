"""Tests for the Python language plugin."""

from __future__ import annotations

import textwrap

from ontogen.analyzers import PythonPlugin

SOURCE = textwrap.dedent(
    '''
    """Billing helpers."""

    from __future__ import annotations

    import json
    from typing import Any, Protocol, TypeAlias
    from .models import Invoice, Line

    MAX_LINES = 100
    default_currency = "EUR"
    _cache = {}

    Amount: TypeAlias = "int | float"


    class Payable(Protocol):
        total: int
        note: Optional[str]


    class InvoiceService(BaseService, Auditable):
        """Creates invoices."""

        retries = 3

        def create(self, customer, lines: list, *, draft: bool = False) -> Invoice:
            return Invoice()

        async def send(self, invoice) -> None:
            pass


    def render(invoice: Invoice, fmt: Any = "pdf") -> str:
        """Render an invoice."""
        return ""


    def _private():
        pass
    '''
).lstrip("\n")


def test_python_plugin_extracts_imports() -> None:
    result = PythonPlugin().analyze_file("billing/service.py", SOURCE)

    assert [(entry.source, entry.specifiers) for entry in result.imports] == [
        ("__future__", ["annotations"]),
        ("json", []),
        ("typing", ["Any", "Protocol", "TypeAlias"]),
        (".models", ["Invoice", "Line"]),
    ]


def test_python_plugin_classifies_declarations() -> None:
    result = PythonPlugin().analyze_file("billing/service.py", SOURCE)

    assert [interface.name for interface in result.interfaces] == ["Payable"]
    payable = result.interfaces[0]
    assert [(prop.name, prop.optional) for prop in payable.properties] == [
        ("total", False),
        ("note", True),
    ]
    (service,) = result.classes
    assert service.extends == "BaseService"
    assert service.implements == ["Auditable"]
    assert service.doc == "Creates invoices."
    assert [prop.name for prop in service.properties] == ["retries"]
    create, send = service.methods
    assert [param.name for param in create.params] == ["customer", "lines", "draft"]
    assert create.params[2].optional is True
    assert create.return_type == "Invoice"
    assert send.is_async is True
    (alias,) = result.types
    assert alias.name == "Amount"
    assert alias.definition == "'int | float'"


def test_python_plugin_exports_public_names() -> None:
    result = PythonPlugin().analyze_file("billing/service.py", SOURCE)

    exports = {symbol.name: symbol.kind for symbol in result.exports}
    assert exports == {
        "MAX_LINES": "constant",
        "default_currency": "variable",
        "Amount": "type",
        "Payable": "interface",
        "InvoiceService": "class",
        "render": "function",
    }
    private = next(function for function in result.functions if function.name == "_private")
    assert private.exported is False
    render = next(function for function in result.functions if function.name == "render")
    assert render.params[1].type == "Any"
    assert render.doc == "Render an invoice."


def test_python_plugin_honours_dunder_all() -> None:
    source = "__all__ = ['visible']\n\ndef visible():\n    pass\n\ndef other():\n    pass\n"

    result = PythonPlugin().analyze_file("pkg/mod.py", source)

    assert [symbol.name for symbol in result.exports] == ["visible"]


def test_python_plugin_returns_empty_file_on_syntax_error() -> None:
    result = PythonPlugin().analyze_file("broken.py", "def broken(:\n")

    assert result.path == "broken.py"
    assert result.language == "python"
    assert result.exports == []
    assert result.functions == []
