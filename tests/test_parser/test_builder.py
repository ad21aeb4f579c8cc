"""Tests for aepgraph.parser.builder."""

from __future__ import annotations

import copy
import logging
import time
from typing import Any

import pytest

from aepgraph.constants import AEP_OPERATION_REF, FIELD_PATH_NAME, FIELD_PATH_NUMBER
from aepgraph.exceptions import (
    ConversionTimeoutError,
    CyclicParentError,
    DocumentStructureError,
    NamingConventionError,
    ResourceLinkageError,
)
from aepgraph.graph import collection_name, dump_api, pattern
from aepgraph.models import API, OpenAPI
from aepgraph.parser.builder import build_api


def _minimal(paths: dict[str, Any], schemas: dict[str, Any]) -> dict[str, Any]:
    return {
        "openapi": "3.0.3",
        "info": {"title": "test"},
        "servers": [{"url": "https://test.example.com"}],
        "paths": paths,
        "components": {"schemas": schemas},
    }


def _get_op(ref: str) -> dict[str, Any]:
    return {
        "responses": {
            "200": {
                "description": "OK",
                "content": {"application/json": {"schema": {"$ref": ref}}},
            }
        }
    }


# ---------------------------------------------------------------------------
# Unannotated OpenAPI 3.0
# ---------------------------------------------------------------------------


class TestWidgets:
    """A single resource inferred from schema keys and paths."""

    def test_metadata(self, widgets_api: API) -> None:
        assert widgets_api.name == "widgets"
        assert widgets_api.server_url == "https://api.example.com"
        assert widgets_api.contact is not None
        assert widgets_api.contact.name == "Widget Team"

    def test_single_resource(self, widgets_api: API) -> None:
        assert list(widgets_api.resources) == ["widget"]
        widget = widgets_api.resources["widget"]
        assert widget.plural == "widgets"
        assert widget.parents == []
        assert widget.patterns == ["widgets/{widget}"]

    def test_standard_methods(self, widgets_api: API) -> None:
        methods = widgets_api.resources["widget"].methods
        assert methods.present() == ["get", "list", "create", "update", "delete"]
        assert methods.create is not None
        assert methods.create.supports_user_settable_create is False
        assert methods.list_ is not None
        assert not methods.list_.supports_skip
        assert not methods.list_.supports_filter
        assert not methods.list_.has_unreachable_resources
        assert methods.delete is not None
        assert methods.delete.is_long_running is False

    def test_custom_method(self, widgets_api: API) -> None:
        custom = widgets_api.resources["widget"].custom_methods
        assert len(custom) == 1
        assert custom[0].name == "start"
        assert custom[0].method == "POST"
        assert custom[0].request is not None
        assert "delay_seconds" in custom[0].request.properties
        assert custom[0].response is not None
        assert "started" in custom[0].response.properties

    def test_schema_keeps_field_numbers_and_gains_path(self, widgets_api: API) -> None:
        schema = widgets_api.resources["widget"].schema_
        assert schema.properties["size"].x_aep_field.field_number == 2
        path = schema.properties[FIELD_PATH_NAME]
        assert path.read_only is True
        assert path.x_aep_field.field_number == FIELD_PATH_NUMBER

    def test_free_standing_schemas_exclude_resources(self, widgets_api: API) -> None:
        assert list(widgets_api.schemas) == ["Color"]

    def test_source_document_not_mutated(self, widgets_raw: dict) -> None:
        snapshot = copy.deepcopy(widgets_raw)
        build_api(widgets_raw)
        assert widgets_raw == snapshot

    def test_accepts_validated_model(self, widgets_raw: dict) -> None:
        api = build_api(OpenAPI.model_validate(widgets_raw))
        assert list(api.resources) == ["widget"]


# ---------------------------------------------------------------------------
# Annotated OpenAPI 3.1
# ---------------------------------------------------------------------------


class TestBookstore:
    """Annotated resources with parents, long-running methods and list flags."""

    def test_resources(self, bookstore_api: API) -> None:
        assert set(bookstore_api.resources) == {"publisher", "book", "book-edition"}
        assert bookstore_api.server_url == "http://localhost:8081"
        assert bookstore_api.contact is None

    def test_parents_and_children(self, bookstore_api: API) -> None:
        assert bookstore_api.resources["book"].parents == ["publisher"]
        assert bookstore_api.resources["book-edition"].parents == ["book"]
        assert bookstore_api.children["publisher"] == ["book"]
        assert bookstore_api.children["book"] == ["book-edition"]
        assert bookstore_api.children["book-edition"] == []

    def test_explicit_patterns(self, bookstore_api: API) -> None:
        resources = bookstore_api.resources
        assert resources["publisher"].patterns == ["publishers/{publisher}"]
        assert resources["book-edition"].patterns == [
            "publishers/{publisher}/books/{book}/editions/{book_edition}"
        ]

    def test_collection_name_drops_parent_prefix(self, bookstore_api: API) -> None:
        edition = bookstore_api.resources["book-edition"]
        assert edition.plural == "book-editions"
        assert collection_name(bookstore_api, edition) == "editions"

    def test_user_settable_create(self, bookstore_api: API) -> None:
        publisher = bookstore_api.resources["publisher"]
        assert publisher.methods.create.supports_user_settable_create is True
        book = bookstore_api.resources["book"]
        assert book.methods.create.supports_user_settable_create is False

    def test_long_running_methods(self, bookstore_api: API) -> None:
        methods = bookstore_api.resources["book"].methods
        assert methods.create.is_long_running is True
        assert methods.delete.is_long_running is True
        assert methods.apply is not None
        assert methods.apply.is_long_running is False
        assert methods.update is None

    def test_list_flags(self, bookstore_api: API) -> None:
        list_method = bookstore_api.resources["book"].methods.list_
        assert list_method.supports_skip
        assert list_method.supports_filter
        assert list_method.has_unreachable_resources

    def test_custom_method_on_nested_resource(self, bookstore_api: API) -> None:
        custom = bookstore_api.resources["book"].custom_methods
        assert [(c.name, c.method) for c in custom] == [("archive", "POST")]

    def test_free_standing_schemas(self, bookstore_api: API) -> None:
        assert set(bookstore_api.schemas) == {"ListBooksResponse", "author"}

    def test_property_refs_are_kept(self, bookstore_api: API) -> None:
        schema = bookstore_api.resources["book"].schema_
        assert schema.properties["author"].ref == "#/components/schemas/author"

    def test_operation_resource_is_opt_in(self, bookstore_raw: dict) -> None:
        api = build_api(bookstore_raw, include_operation_resource=True)
        assert "operation" in api.resources
        assert api.resources["operation"].methods.present() == ["get"]


# ---------------------------------------------------------------------------
# Swagger 2.0
# ---------------------------------------------------------------------------


class TestSwagger:
    """Swagger 2.0 documents with a path prefix."""

    @pytest.fixture
    def petstore_api(self, petstore_swagger_raw: dict) -> API:
        return build_api(petstore_swagger_raw, path_prefix="/v1")

    def test_server_url_from_host(self, petstore_api: API) -> None:
        assert petstore_api.server_url == "https://petstore.example.com/api/v1"

    def test_server_url_override(self, petstore_swagger_raw: dict) -> None:
        api = build_api(petstore_swagger_raw, server_url="http://localhost:9000", path_prefix="/v1")
        assert api.server_url == "http://localhost:9000"

    def test_resource(self, petstore_api: API) -> None:
        assert list(petstore_api.resources) == ["pet"]
        pet = petstore_api.resources["pet"]
        assert pet.patterns == ["pets/{pet}"]
        assert pet.methods.present() == ["get", "list", "create", "delete"]

    def test_parameter_ref_makes_create_user_settable(self, petstore_api: API) -> None:
        create = petstore_api.resources["pet"].methods.create
        assert create.supports_user_settable_create is True

    def test_body_parameter_becomes_custom_request(self, petstore_api: API) -> None:
        custom = petstore_api.resources["pet"].custom_methods
        assert len(custom) == 1
        assert custom[0].name == "feed"
        assert "food" in custom[0].request.properties

    def test_nullable_type_collapses(self, petstore_api: API) -> None:
        schema = petstore_api.resources["pet"].schema_
        assert schema.properties["tag"].type == "string"

    def test_free_standing_schemas(self, petstore_api: API) -> None:
        assert list(petstore_api.schemas) == ["FeedRequest"]

    def test_paths_outside_prefix_are_skipped(self, petstore_swagger_raw: dict) -> None:
        api = build_api(petstore_swagger_raw, path_prefix="/v2")
        assert api.resources == {}


# ---------------------------------------------------------------------------
# Errors and edge cases
# ---------------------------------------------------------------------------


class TestBuildErrors:
    def test_no_server_url_raises(self) -> None:
        with pytest.raises(DocumentStructureError, match="no server URL"):
            build_api({"openapi": "3.0.0", "info": {"title": "x"}, "paths": {}})

    def test_server_url_argument_satisfies_requirement(self) -> None:
        api = build_api(
            {"openapi": "3.0.0", "info": {"title": "x"}, "paths": {}},
            server_url="https://x.example.com",
        )
        assert api.server_url == "https://x.example.com"
        assert api.resources == {}

    def test_server_url_gets_path_prefix(self) -> None:
        doc = _minimal({}, {})
        api = build_api(doc, path_prefix="/v1")
        assert api.server_url == "https://test.example.com/v1"

    def test_unknown_version_raises(self) -> None:
        with pytest.raises(DocumentStructureError):
            build_api({"info": {"title": "x"}, "paths": {}})

    def test_missing_parent_raises(self) -> None:
        doc = _minimal(
            {"/books/{book}": {"get": _get_op("#/components/schemas/book")}},
            {
                "book": {
                    "type": "object",
                    "x-aep-resource": {
                        "singular": "book",
                        "plural": "books",
                        "parents": ["shelf"],
                        "patterns": ["/shelves/{shelf}/books/{book}"],
                    },
                }
            },
        )
        with pytest.raises(ResourceLinkageError, match="parent resource shelf not found"):
            build_api(doc)

    def test_cyclic_parents_raise(self) -> None:
        doc = _minimal(
            {"/as/{a}": {"get": _get_op("#/components/schemas/a")}},
            {
                "a": {
                    "type": "object",
                    "x-aep-resource": {"singular": "a", "plural": "as", "parents": ["b"]},
                },
                "b": {
                    "type": "object",
                    "x-aep-resource": {"singular": "b", "plural": "bs", "parents": ["a"]},
                },
            },
        )
        with pytest.raises(CyclicParentError):
            build_api(doc)

    def test_bad_singular_raises(self) -> None:
        doc = _minimal(
            {"/things/{thing}": {"get": _get_op("#/components/schemas/Thing")}},
            {
                "Thing": {
                    "type": "object",
                    "x-aep-resource": {"singular": "Bad_Name", "plural": "things"},
                }
            },
        )
        with pytest.raises(NamingConventionError, match="does not match the regex"):
            build_api(doc)

    def test_expired_deadline_raises(self, widgets_raw: dict) -> None:
        with pytest.raises(ConversionTimeoutError):
            build_api(widgets_raw, deadline=time.monotonic() - 1)

    def test_unmatched_custom_method_warns(self, caplog: pytest.LogCaptureFixture) -> None:
        doc = _minimal(
            {
                "/ghosts/{ghost}:haunt": {
                    "post": {"responses": {"200": {"description": "OK"}}},
                }
            },
            {},
        )
        with caplog.at_level(logging.WARNING, logger="aepgraph"):
            api = build_api(doc)
        assert api.resources == {}
        assert "have no resource associated with it" in caplog.text

    def test_non_resource_paths_are_skipped(self) -> None:
        doc = _minimal(
            {
                "/{tenant}/things": {"get": _get_op("#/components/schemas/Thing")},
                "/a/{b}/{c}": {"get": _get_op("#/components/schemas/Thing")},
            },
            {"Thing": {"type": "object"}},
        )
        api = build_api(doc)
        assert api.resources == {}
        assert list(api.schemas) == ["Thing"]

    def test_get_only_resource(self) -> None:
        doc = _minimal(
            {"/gadgets/{gadget}": {"get": _get_op("#/components/schemas/Gadget")}},
            {"Gadget": {"type": "object"}},
        )
        api = build_api(doc)
        gadget = api.resources["gadget"]
        assert gadget.patterns == ["gadgets/{gadget}"]
        assert pattern(api, gadget) == "gadgets/{gadget}"
        assert gadget.methods.present() == ["get"]


# ---------------------------------------------------------------------------
# Path order and the operation resource
# ---------------------------------------------------------------------------


def _publisher_paths() -> dict[str, Any]:
    return {
        "/publishers/{publisher_id}": {"get": _get_op("#/components/schemas/Publisher")},
        "/publishers/{publisher_id}:archive": {"post": _get_op("#/components/schemas/Publisher")},
    }


def _book_paths() -> dict[str, Any]:
    return {
        "/publishers/{publisher_id}/books/{book}": {"get": _get_op("#/components/schemas/Book")},
    }


_PUBLISHER_SCHEMAS = {
    "Publisher": {"type": "object", "properties": {"title": {"type": "string"}}},
    "Book": {
        "type": "object",
        "properties": {"isbn": {"type": "string"}},
        "x-aep-resource": {
            "singular": "book",
            "plural": "books",
            "parents": ["publisher"],
            "patterns": ["/publishers/{publisher_id}/books/{book}"],
        },
    },
}


class TestPathOrder:
    """A parent declared by a child's annotation matches its own paths in any order."""

    def _build(self, paths: dict[str, Any]) -> API:
        return build_api(_minimal(paths, copy.deepcopy(_PUBLISHER_SCHEMAS)))

    def test_parent_first(self) -> None:
        api = self._build({**_publisher_paths(), **_book_paths()})
        publisher = api.resources["publisher"]
        assert publisher.patterns == ["publishers/{publisher_id}"]
        assert [cm.name for cm in publisher.custom_methods] == ["archive"]

    def test_child_first_adopts_item_path(self, caplog: pytest.LogCaptureFixture) -> None:
        with caplog.at_level(logging.WARNING, logger="aepgraph"):
            api = self._build({**_book_paths(), **_publisher_paths()})
        publisher = api.resources["publisher"]
        assert publisher.patterns == ["publishers/{publisher_id}"]
        assert [cm.name for cm in publisher.custom_methods] == ["archive"]
        assert "have no resource associated with it" not in caplog.text

    def test_both_orders_build_the_same_graph(self) -> None:
        parent_first = self._build({**_publisher_paths(), **_book_paths()})
        child_first = self._build({**_book_paths(), **_publisher_paths()})
        assert dump_api(child_first) == dump_api(parent_first)

    def test_parent_without_item_path_keeps_synthesized_pattern(self) -> None:
        api = self._build(_book_paths())
        publisher = api.resources["publisher"]
        assert publisher.patterns == []
        assert pattern(api, publisher) == "publishers/{publisher}"


class TestOperationResource:
    """Long-running custom methods also register the operation resource."""

    @staticmethod
    def _doc() -> dict[str, Any]:
        start = _get_op(AEP_OPERATION_REF)
        start["x-aep-long-running-operation"] = {
            "response": {"schema": {"$ref": "#/components/schemas/Widget"}}
        }
        return _minimal(
            {
                "/widgets/{widget}": {"get": _get_op("#/components/schemas/Widget")},
                "/widgets/{widget}:start": {"post": start},
            },
            {"Widget": {"type": "object", "properties": {"size": {"type": "integer"}}}},
        )

    def test_custom_method_is_long_running(self) -> None:
        api = build_api(self._doc())
        [start] = api.resources["widget"].custom_methods
        assert start.is_long_running is True
        assert start.response.properties["size"].type == "integer"

    def test_registered_when_only_custom_methods_are_long_running(self) -> None:
        api = build_api(self._doc(), include_operation_resource=True)
        assert sorted(api.resources) == ["operation", "widget"]
        operation = api.resources["operation"]
        assert FIELD_PATH_NAME in operation.schema_.properties
        assert api.children["operation"] == []

    def test_not_registered_by_default(self) -> None:
        api = build_api(self._doc())
        assert list(api.resources) == ["widget"]
