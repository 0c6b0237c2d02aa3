"""Shared fixtures for routergen tests.

The sample document at spec/openapi.json describes a small fleet API
(vehicles, auth, categories, ...). The generated package is written once
per session and imported as ``fleet_api``.
"""

from __future__ import annotations

import importlib
import json
import sys
from typing import Any, Callable

import httpx
import pytest

from routergen import codegen
from routergen.compiler import compile_document
from routergen.context_builder import build_context
from routergen.loader import SPEC_PATH, load_spec

SPEC_URL = "https://fleet.example.com/swagger/doc.json"
PACKAGE_NAME = "fleet_api"


# ---------------------------------------------------------------------------
# Sample document
# ---------------------------------------------------------------------------

@pytest.fixture(scope="session")
def sample_spec() -> dict[str, Any]:
    return load_spec()


@pytest.fixture(scope="session")
def sample_text() -> str:
    return SPEC_PATH.read_text()


# ---------------------------------------------------------------------------
# Document server: MockTransport recording every request
# ---------------------------------------------------------------------------

class DocumentServer:
    """Serves one document body; records the requests it receives."""

    def __init__(self, body: str | dict, status_code: int = 200) -> None:
        self.body = json.dumps(body) if isinstance(body, dict) else body
        self.status_code = status_code
        self.requests: list[httpx.Request] = []

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        return httpx.Response(self.status_code, text=self.body)

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handler)


@pytest.fixture
def document_server(sample_text) -> Callable[..., DocumentServer]:
    """Factory: document_server() serves the sample, document_server(body, status) anything."""
    def _make(body: str | dict | None = None, status_code: int = 200) -> DocumentServer:
        return DocumentServer(sample_text if body is None else body, status_code)
    return _make


# ---------------------------------------------------------------------------
# Generated package, imported once per session
# ---------------------------------------------------------------------------

@pytest.fixture(scope="session")
def fleet_context(sample_spec) -> dict[str, Any]:
    registry, table = compile_document(sample_spec)
    return build_context(registry, table, "MySuperbApi", SPEC_URL, "Fleet API")


@pytest.fixture(scope="session")
def fleet_api(tmp_path_factory, fleet_context):
    """Write the generated package for the sample and import it."""
    root = tmp_path_factory.mktemp("generated")
    codegen.write_package(codegen.render_package(fleet_context), root / PACKAGE_NAME)

    sys.path.insert(0, str(root))
    try:
        yield importlib.import_module(PACKAGE_NAME)
    finally:
        sys.path.remove(str(root))
        for name in [m for m in sys.modules if m == PACKAGE_NAME or m.startswith(f"{PACKAGE_NAME}.")]:
            del sys.modules[name]
