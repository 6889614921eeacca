import re

from hypothesis import given
from hypothesis import strategies as st

from xpfetch.core.types import ComponentDescriptor, QueryAndVariables
from xpfetch.engine.combiner import combine_multiple_queries

PATH_QUERY = "query($path: ID!) { guillotine { get(key: $path) { displayName } } }"
NOT_GUILLOTINE = "query { site { displayName } }"


def _descriptor(query: str | None, **variables) -> ComponentDescriptor:
    if query is None:
        return ComponentDescriptor()
    return ComponentDescriptor(query_and_variables=QueryAndVariables(query=query, variables=variables))


def test_single_query_is_aliased_and_prefixed():
    combined = combine_multiple_queries([_descriptor(PATH_QUERY, path="/hmdb/movies")])

    assert combined.aliases == ["request0"]
    assert combined.variables == {"request0_path": "/hmdb/movies"}
    assert combined.query.startswith("query ($request0_path: ID!) {\n")
    assert "request0:guillotine { get(key: $request0_path) { displayName } }" in combined.query
    assert not combined.is_empty


def test_same_variable_names_never_collide():
    descriptors = [
        _descriptor(PATH_QUERY, path="/a"),
        _descriptor(PATH_QUERY, path="/b"),
        _descriptor(PATH_QUERY, path="/c"),
    ]

    combined = combine_multiple_queries(descriptors)

    assert combined.variables == {"request0_path": "/a", "request1_path": "/b", "request2_path": "/c"}
    assert "get(key: $request2_path)" in combined.query
    assert "$path" not in combined.query
    assert combined.query.count("$request2_path") == 2  # Definition and use


def test_unmatched_or_missing_queries_keep_their_index():
    descriptors = [
        _descriptor(None),
        _descriptor(NOT_GUILLOTINE, path="/ignored"),
        _descriptor(PATH_QUERY, path="/kept"),
    ]

    combined = combine_multiple_queries(descriptors)

    assert combined.aliases == [None, None, "request2"]
    assert combined.variables == {"request2_path": "/kept"}
    assert "request0:" not in combined.query
    assert "request1:" not in combined.query


def test_nothing_matching_is_empty():
    combined = combine_multiple_queries([_descriptor(NOT_GUILLOTINE), _descriptor("query { guillotine { ")])

    assert combined.is_empty
    assert combined.variables == {}


def test_fragments_are_hoisted_once():
    query = """
    query($path: ID!) { guillotine { get(key: $path) { ...Fields } } }
    fragment Fields on Content { displayName }
    """

    combined = combine_multiple_queries([_descriptor(query, path="/a"), _descriptor(query, path="/b")])

    assert combined.query.count("fragment Fields on Content") == 1
    assert combined.query.rstrip().endswith("fragment Fields on Content { displayName }")


def test_fragments_of_skipped_queries_are_not_hoisted():
    query = "query { other { ...Fields } }\nfragment Fields on Content { displayName }"

    combined = combine_multiple_queries([_descriptor(query), _descriptor(PATH_QUERY, path="/a")])

    assert "fragment Fields" not in combined.query


def test_to_query_and_variables():
    combined = combine_multiple_queries([_descriptor(PATH_QUERY, path="/a")])

    result = combined.to_query_and_variables()

    assert result.query == combined.query
    assert result.variables == {"request0_path": "/a"}


@given(st.lists(st.booleans(), min_size=1, max_size=8))
def test_one_aliased_block_per_matching_query(matching):
    """Property: blocks appear in ascending index order, one per matching descriptor."""
    descriptors = [
        _descriptor(PATH_QUERY, path=f"/{i}") if ok else _descriptor(NOT_GUILLOTINE, path=f"/{i}")
        for i, ok in enumerate(matching)
    ]

    combined = combine_multiple_queries(descriptors)

    expected = [f"request{i}" for i, ok in enumerate(matching) if ok]
    assert re.findall(r"(request\d+):guillotine", combined.query) == expected
    assert sorted(combined.variables) == sorted(f"{alias}_path" for alias in expected)


def test_prefix_sharing_variable_names_are_renamed_independently():
    query = (
        "query($path: ID!, $pathPrefix: String) "
        "{ guillotine { get(key: $path) { _id } query(query: $pathPrefix) { _id } } }"
    )

    combined = combine_multiple_queries([_descriptor(query, path="/a", pathPrefix="/a/")])

    assert "($request0_path: ID!, $request0_pathPrefix: String)" in combined.query
    assert "get(key: $request0_path)" in combined.query
    assert "query(query: $request0_pathPrefix)" in combined.query
    assert "request0_request0" not in combined.query
    assert combined.variables == {"request0_path": "/a", "request0_pathPrefix": "/a/"}


def test_fragments_reading_variables_are_copied_per_query():
    query = """
    query($path: ID!) { guillotine { get(key: $path) { ...Children } } }
    fragment Children on Content { children: getChildren(key: $path) { ...Name } }
    fragment Name on Content { displayName }
    """

    combined = combine_multiple_queries([_descriptor(query, path="/a"), _descriptor(query, path="/b")])

    assert "request0:guillotine { get(key: $request0_path) { ...Children_request0 } }" in combined.query
    assert "request1:guillotine { get(key: $request1_path) { ...Children_request1 } }" in combined.query
    assert "fragment Children_request0 on Content { children: getChildren(key: $request0_path)" in combined.query
    assert "fragment Children_request1 on Content { children: getChildren(key: $request1_path)" in combined.query
    # Variable-free fragments stay shared
    assert combined.query.count("fragment Name on Content") == 1
    assert "...Name }" in combined.query


def test_fragments_reaching_variables_through_spreads_are_copied():
    query = """
    query($path: ID!) { guillotine { get(key: $path) { ...Outer } } }
    fragment Outer on Content { ...Inner }
    fragment Inner on Content { children: getChildren(key: $path) { _id } }
    """

    combined = combine_multiple_queries([_descriptor(query, path="/a"), _descriptor(query, path="/b")])

    assert "fragment Outer_request1 on Content { ...Inner_request1 }" in combined.query
    assert "fragment Inner_request1 on Content { children: getChildren(key: $request1_path)" in combined.query
    assert "fragment Outer on Content" not in combined.query
