"""Tests for aepgraph.graph -- construction, finalization and navigation."""

from __future__ import annotations

import copy
from typing import Any

import pytest

from aepgraph.constants import FIELD_PATH_NAME, FIELD_PATH_NUMBER
from aepgraph.exceptions import (
    CyclicParentError,
    DocumentStructureError,
    NamingConventionError,
    ResourceLinkageError,
)
from aepgraph.graph import (
    ExplicitNaming,
    InferredNaming,
    children,
    collection_name,
    dump_api,
    ensure_operation_resource,
    finalize_api,
    get_resource,
    has_long_running_methods,
    id_parameter,
    load_api,
    make_resource,
    parent_resources,
    pattern,
    pattern_elems,
)
from aepgraph.models import API, Resource, Schema, XAEPResource


def _api(resources: dict[str, dict[str, Any]]) -> dict[str, Any]:
    return {"name": "test", "server_url": "https://test.example.com", "resources": resources}


# ---------------------------------------------------------------------------
# make_resource
# ---------------------------------------------------------------------------


class TestMakeResource:
    def test_explicit_naming(self) -> None:
        annotation = XAEPResource(
            singular="book",
            plural="books",
            parents=["publisher"],
            patterns=["/publishers/{publisher}/books/{book}"],
        )
        resource = make_resource(ExplicitNaming(annotation), Schema(type="object"))
        assert resource.singular == "book"
        assert resource.plural == "books"
        assert resource.parents == ["publisher"]
        assert resource.patterns == ["publishers/{publisher}/books/{book}"]

    def test_explicit_naming_defaults_plural(self) -> None:
        resource = make_resource(ExplicitNaming(XAEPResource(singular="policy")), None)
        assert resource.plural == "policies"
        assert resource.patterns == []
        assert resource.schema_.type == "object"

    def test_explicit_naming_fallback_pattern(self) -> None:
        naming = ExplicitNaming(XAEPResource(singular="shelf"), ("shelves", "{shelf}"))
        resource = make_resource(naming, None)
        assert resource.patterns == ["shelves/{shelf}"]

    def test_inferred_naming(self) -> None:
        resource = make_resource(InferredNaming("widget", ("widgets", "{widget}")), None)
        assert resource.plural == "widgets"
        assert resource.parents == []
        assert resource.patterns == ["widgets/{widget}"]

    def test_schema_is_copied(self) -> None:
        schema = Schema(type="object", properties={"a": Schema(type="string")})
        resource = make_resource(InferredNaming("widget"), schema)
        resource.schema_.properties["b"] = Schema(type="string")
        assert "b" not in schema.properties

    def test_empty_singular_raises(self) -> None:
        with pytest.raises(NamingConventionError, match="empty singular"):
            make_resource(InferredNaming(""), None)

    def test_bad_pattern_raises(self) -> None:
        annotation = XAEPResource(singular="book", patterns=["books/{book}/pages"])
        with pytest.raises(DocumentStructureError, match="resource 'book'"):
            make_resource(ExplicitNaming(annotation), None)


# ---------------------------------------------------------------------------
# Navigation
# ---------------------------------------------------------------------------


class TestNavigation:
    def test_get_resource(self, library_api: API) -> None:
        assert get_resource(library_api, "shelf").plural == "shelves"

    def test_get_missing_resource_raises(self, library_api: API) -> None:
        with pytest.raises(ResourceLinkageError, match="'attic' not found"):
            get_resource(library_api, "attic")

    def test_parent_resources_in_order(self, library_api: API) -> None:
        note = library_api.resources["note"]
        assert [p.singular for p in parent_resources(library_api, note)] == ["shelf", "desk"]

    def test_children(self, library_api: API) -> None:
        shelf = library_api.resources["shelf"]
        assert [c.singular for c in children(library_api, shelf)] == ["note"]
        note = library_api.resources["note"]
        assert children(library_api, note) == []

    def test_id_parameter(self) -> None:
        resource = Resource(singular="book-edition", plural="book-editions")
        assert id_parameter(resource) == "book_edition"

    def test_synthesized_pattern_follows_first_parent(self, library_api: API) -> None:
        note = library_api.resources["note"]
        assert pattern_elems(library_api, note) == ["shelves", "{shelf}", "notes", "{note}"]
        assert pattern(library_api, note) == "shelves/{shelf}/notes/{note}"

    def test_explicit_pattern_wins(self, bookstore_api: API) -> None:
        edition = bookstore_api.resources["book-edition"]
        assert pattern(bookstore_api, edition) == (
            "publishers/{publisher}/books/{book}/editions/{book_edition}"
        )

    def test_collection_name_kebab_cases_plural(self) -> None:
        api = load_api(_api({"user_group": {"singular": "user_group", "plural": "user_groups"}}))
        assert collection_name(api, api.resources["user_group"]) == "user-groups"


# ---------------------------------------------------------------------------
# Finalization
# ---------------------------------------------------------------------------


class TestFinalize:
    def test_adds_path_field(self, library_api: API) -> None:
        for resource in library_api.resources.values():
            path = resource.schema_.properties[FIELD_PATH_NAME]
            assert path.type == "string"
            assert path.read_only is True
            assert path.x_aep_field.field_number == FIELD_PATH_NUMBER

    def test_existing_path_field_is_kept(self) -> None:
        api = load_api(
            _api({
                "shelf": {
                    "singular": "shelf",
                    "plural": "shelves",
                    "schema": {
                        "type": "object",
                        "properties": {"path": {"type": "string", "description": "custom"}},
                    },
                }
            })
        )
        assert api.resources["shelf"].schema_.properties["path"].description == "custom"

    def test_missing_parent_raises(self) -> None:
        data = _api({"book": {"singular": "book", "plural": "books", "parents": ["shelf"]}})
        with pytest.raises(ResourceLinkageError, match="parent resource shelf not found"):
            load_api(data)

    def test_cycle_raises(self) -> None:
        data = _api({
            "a": {"singular": "a", "plural": "as", "parents": ["b"]},
            "b": {"singular": "b", "plural": "bs", "parents": ["a"]},
        })
        with pytest.raises(CyclicParentError, match="cyclic parent relationship"):
            load_api(data)

    @pytest.mark.parametrize("name", ["Book", "1book", "book--edition", "book edition"])
    def test_bad_resource_name_raises(self, name: str) -> None:
        data = _api({name: {"singular": name, "plural": "books"}})
        with pytest.raises(NamingConventionError, match="does not match the regex"):
            load_api(data)

    def test_key_singular_mismatch_raises(self) -> None:
        data = _api({"book": {"singular": "novel", "plural": "novels"}})
        with pytest.raises(NamingConventionError, match="does not match its singular"):
            load_api(data)

    def test_colliding_names_raise(self) -> None:
        data = _api({
            "book-edition": {"singular": "book-edition", "plural": "book-editions"},
            "book_edition": {"singular": "book_edition", "plural": "book_editions"},
        })
        with pytest.raises(NamingConventionError, match="collide"):
            load_api(data)

    def test_empty_collection_name_raises(self) -> None:
        data = _api({
            "shelf": {"singular": "shelf", "plural": "shelves"},
            "book": {"singular": "book", "plural": "", "parents": ["shelf"]},
        })
        with pytest.raises(NamingConventionError, match="empty collection name"):
            load_api(data)

    def test_bad_explicit_pattern_raises(self) -> None:
        data = _api({"book": {"singular": "book", "plural": "books", "patterns": ["books"]}})
        with pytest.raises(DocumentStructureError):
            load_api(data)

    def test_finalize_is_idempotent(self, library_api: API) -> None:
        before = dump_api(library_api)
        finalize_api(library_api)
        assert dump_api(library_api) == before


# ---------------------------------------------------------------------------
# Serialization
# ---------------------------------------------------------------------------


class TestSerialization:
    def test_load_rejects_malformed_model(self) -> None:
        with pytest.raises(DocumentStructureError, match="error unmarshalling API"):
            load_api({"resources": {"book": {"plural": "books"}}})

    def test_dump_uses_wire_names(self, library_api: API) -> None:
        data = dump_api(library_api)
        note = data["resources"]["note"]
        assert "schema" in note
        assert "list" in note["methods"]
        assert "children" not in data
        assert note["schema"]["properties"]["tags"]["items"]["properties"]["label"][
            "x-aep-field"
        ] == {"field_number": 7}

    def test_dump_load_preserves_graph(self, library_api: API) -> None:
        reloaded = load_api(copy.deepcopy(dump_api(library_api)))
        assert dump_api(reloaded) == dump_api(library_api)
        assert reloaded.children == library_api.children


# ---------------------------------------------------------------------------
# Long-running operations
# ---------------------------------------------------------------------------


class TestOperationResource:
    def test_detects_long_running_methods(self, library_api: API, widgets_api: API) -> None:
        assert has_long_running_methods(library_api)
        assert not has_long_running_methods(widgets_api)

    def test_ensure_adds_resource_once(self, library_api: API) -> None:
        assert ensure_operation_resource(library_api) is True
        assert ensure_operation_resource(library_api) is False
        operation = library_api.resources["operation"]
        assert operation.plural == "operations"
        assert set(operation.schema_.required) == {"name", "done"}

    def test_ensure_skips_without_long_running(self, widgets_api: API) -> None:
        assert ensure_operation_resource(widgets_api) is False
        assert "operation" not in widgets_api.resources
