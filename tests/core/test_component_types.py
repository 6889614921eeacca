import pytest
from pydantic import ValidationError

from xpfetch.core.constants import RenderMode, RequestType
from xpfetch.core.types import (
    ComponentData,
    ErrorInfo,
    FetchContentResult,
    MetaData,
    PageComponent,
    RawMetaData,
)


def test_descriptor_is_split_into_app_and_local_name():
    data = ComponentData(descriptor="com.example.myproject:movie-list")

    assert data.app_name == "com.example.myproject"
    assert data.local_name == "movie-list"
    assert ComponentData(descriptor="nocolon").app_name is None


def test_component_is_read_from_camel_case_payload():
    component = PageComponent.model_validate(
        {
            "type": "part",
            "path": "/main/0",
            "part": {
                "descriptor": "com.example.myproject:movie-list",
                "configAsJson": {"com-example-myproject": {"movie-list": {"count": 3}}},
            },
        }
    )

    assert component.descriptor == "com.example.myproject:movie-list"
    assert component.part.config_as_json == {"com-example-myproject": {"movie-list": {"count": 3}}}
    assert component.nested_components == []


def test_text_and_fragment_payloads(make_component):
    inner = make_component("part", "/", "com.example.myproject:hero")
    fragment = make_component("fragment", "/main/1", components=[inner.model_dump()])
    text = make_component("text", "/main/0", value="<p>Hello</p>")

    assert text.payload.value == "<p>Hello</p>"
    assert text.descriptor is None
    assert [c.descriptor for c in fragment.nested_components] == ["com.example.myproject:hero"]


def test_data_and_error_are_mutually_exclusive():
    with pytest.raises(ValidationError):
        PageComponent(type="part", path="/main/0", data={"a": 1}, error="boom")


def test_raw_meta_data_reads_underscore_path():
    raw = RawMetaData.model_validate(
        {"_path": "/hmdb/movies/lost", "type": "com.example.myproject:movie", "components": []}
    )

    assert raw.path == "/hmdb/movies/lost"
    assert raw.type == "com.example.myproject:movie"


def test_result_json_keeps_top_level_nulls():
    result = FetchContentResult(
        meta=MetaData(
            type="base:folder",
            path="movies",
            request_type=RequestType.PAGE,
            render_mode=RenderMode.NEXT,
            can_render=True,
        ),
        error=ErrorInfo(code="404", message="gone"),
    )

    payload = result.to_json_dict()

    assert payload["meta"]["canRender"] is True
    assert payload["meta"]["requestType"] == "page"
    assert payload["meta"]["renderMode"] == "next"
    assert payload["error"] == {"code": "404", "message": "gone"}
    assert payload["page"] is None
    assert payload["data"] is None
    assert payload["common"] is None
    assert "requestedComponent" not in payload["meta"]


def test_result_json_keeps_nulls_inside_data():
    result = FetchContentResult(data={"get": None}, meta=MetaData())

    payload = result.to_json_dict()

    assert payload["data"] == {"get": None}
    assert "error" not in payload
