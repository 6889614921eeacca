"""Shared fixtures for the xpfetch test suite."""

from __future__ import annotations

import sys
from pathlib import Path
from typing import Any

import pytest

# Add src to path so the suite runs from a plain checkout
src_path = Path(__file__).parent.parent / "src"
sys.path.insert(0, str(src_path))

from xpfetch.core.config import FetcherSettings  # noqa: E402
from xpfetch.core.registry import ComponentRegistry  # noqa: E402
from xpfetch.core.types import PageComponent  # noqa: E402

API_URL = "http://xp.test/site/hmdb/draft/_graphql"
APP_NAME = "com.example.myproject"
APP_NAME_DASHED = "com-example-myproject"


def _make_component(type_: str, path: str, descriptor: str | None = None, **payload: Any) -> PageComponent:
    """Build a component the way the metadata call delivers it."""
    data: dict[str, Any] = {"type": type_, "path": path}
    if type_ in ("page", "part", "layout"):
        data[type_] = {"descriptor": descriptor, **payload}
    elif type_ == "text":
        data["text"] = {"value": payload.get("value", "")}
    elif type_ == "fragment":
        data["fragment"] = {"id": payload.get("id", "frag-1"), "fragment": {"components": payload.get("components", [])}}
    return PageComponent.model_validate(data)


@pytest.fixture
def settings() -> FetcherSettings:
    return FetcherSettings(content_api_url=API_URL, app_name=APP_NAME)


@pytest.fixture
def registry() -> ComponentRegistry:
    return ComponentRegistry()


@pytest.fixture
def make_component():
    return _make_component
