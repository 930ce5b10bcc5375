"""
tests/test_inspector.py
Unit tests for ctrlgen.inspector.SchemaInspector.
"""

from __future__ import annotations

import pytest

from ctrlgen.errors import SchemaError
from ctrlgen.inspector import SchemaInspector
from ctrlgen.models import FieldMeta, FieldType, ModelDefinition, SchemaDefinition


class TestLookups:
    def test_unknown_model(self, example_inspector: SchemaInspector) -> None:
        assert not example_inspector.has_model("Comment")
        with pytest.raises(SchemaError, match="Unknown model 'Comment'"):
            example_inspector.model("Comment")

    def test_unknown_field(self, example_inspector: SchemaInspector) -> None:
        with pytest.raises(SchemaError, match="Unknown field 'slug'"):
            example_inspector.field_meta("Post", "slug")

    def test_fields_by_type_none_when_absent(self, example_inspector: SchemaInspector) -> None:
        assert example_inspector.fields_by_type("Tag", FieldType.FILE) is None
        assert example_inspector.fields_by_type("Tag", FieldType.RELATION) is None

    def test_file_lookup_includes_file_lists(self, example_inspector: SchemaInspector) -> None:
        files = example_inspector.fields_by_type("Album", FieldType.FILE)
        assert files is not None
        assert list(files) == ["cover", "photos"]

    def test_list_lookup_by_plain_type(self, example_inspector: SchemaInspector) -> None:
        lists = example_inspector.fields_by_type("Album", FieldType.LIST)
        assert lists is not None
        assert list(lists) == ["photos"]


class TestSecurityProfile:
    def test_profile_in_declaration_order(self, example_inspector: SchemaInspector) -> None:
        profile = example_inspector.security_profile("User")
        assert profile.confidential_fields == ("password", "reset_token")
        assert profile.owner_verified_fields == ()
        assert not profile.has_owner_check

    def test_owner_fields(self, example_inspector: SchemaInspector) -> None:
        assert example_inspector.owner_verified_fields("Post") == ("user_id",)
        assert example_inspector.owner_verified_fields("Album") == ("owner",)
        assert example_inspector.security_profile("Album").has_owner_check

    def test_plain_model(self, plain_user_inspector: SchemaInspector) -> None:
        profile = plain_user_inspector.security_profile("User")
        assert profile.confidential_fields == ()
        assert profile.owner_verified_fields == ()


class TestRelationRedactions:
    def test_single_hop(self, example_inspector: SchemaInspector) -> None:
        redactions = example_inspector.relation_redactions("Post", max_depth=1)
        assert len(redactions) == 1
        author = redactions[0]
        assert author.field_name == "author"
        assert author.model == "User"
        assert author.fields == ("password", "reset_token")
        assert author.nested == ()

    def test_depth_bound_follows_self_relation(self, example_inspector: SchemaInspector) -> None:
        redactions = example_inspector.relation_redactions("Post", max_depth=2)
        author = redactions[0]
        assert [n.field_name for n in author.nested] == ["manager"]
        assert author.nested[0].fields == ("password", "reset_token")
        assert author.nested[0].nested == ()

    def test_self_relation_terminates(self, example_inspector: SchemaInspector) -> None:
        redactions = example_inspector.relation_redactions("User", max_depth=8)
        depth = 0
        node = redactions[0]
        while node.nested:
            node = node.nested[0]
            depth += 1
        assert depth == 7

    def test_relations_without_confidential_fields_are_omitted(self, make_inspector) -> None:
        inspector = make_inspector(
            {
                "Tag": {"fields": {"name": {"type": "string"}}},
                "Post": {
                    "fields": {"tag": {"type": "relation", "relation": {"model": "Tag"}}}
                },
            }
        )
        assert inspector.relation_redactions("Post") == ()

    def test_unvalidated_relation_without_target_is_skipped(self) -> None:
        meta = FieldMeta.model_construct(field_name="author", field_type=FieldType.RELATION)
        post = ModelDefinition.model_construct(name="Post", fields={"author": meta})
        schema = SchemaDefinition.model_construct(models={"Post": post})
        assert SchemaInspector(schema).relation_redactions("Post") == ()

    def test_relation_path_carried(self, make_inspector) -> None:
        inspector = make_inspector(
            {
                "User": {"fields": {"password": {"type": "password", "confidential": True}}},
                "Post": {
                    "fields": {
                        "author": {
                            "type": "relation",
                            "relation": {"model": "User", "path": "auth"},
                        }
                    }
                },
            }
        )
        (author,) = inspector.relation_redactions("Post")
        assert author.model_path == "auth"

    def test_relation_targets(self, example_inspector: SchemaInspector) -> None:
        targets = example_inspector.relation_targets()
        assert targets["Post"] == ("User",)
        assert targets["User"] == ("User",)
        assert targets["Tag"] == ()
