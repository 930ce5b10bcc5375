"""
tests/test_models.py
Unit tests for ctrlgen.models: field metadata invariants, schema parsing,
generation config and controller argument validation.
"""

from __future__ import annotations

from typing import Any, Dict

import pytest
from pydantic import ValidationError

from ctrlgen.errors import ConfigurationError
from ctrlgen.models import (
    ControllerConfig,
    FieldMeta,
    FieldType,
    GenerationConfig,
    RelationRedaction,
    SchemaDefinition,
)


class TestFieldMeta:
    def test_alias_type(self) -> None:
        meta = FieldMeta.model_validate({"field_name": "password", "type": "password"})
        assert meta.field_type == FieldType.PASSWORD
        assert not meta.confidential
        assert not meta.owner_verified

    def test_relation_requires_target(self) -> None:
        with pytest.raises(ValidationError, match="relation"):
            FieldMeta.model_validate({"field_name": "author", "type": "relation"})

    def test_relation_only_on_relation_fields(self) -> None:
        with pytest.raises(ValidationError, match="declares a relation"):
            FieldMeta.model_validate(
                {"field_name": "title", "type": "string", "relation": {"model": "User"}}
            )

    def test_list_type_only_on_lists(self) -> None:
        with pytest.raises(ValidationError, match="list_type"):
            FieldMeta.model_validate({"field_name": "f", "type": "file", "list_type": "file"})

    def test_file_list_counts_as_file(self) -> None:
        meta = FieldMeta.model_validate(
            {"field_name": "photos", "type": "list", "list_type": "file"}
        )
        assert meta.is_file
        assert meta.is_file_list

    def test_relation_path_is_stripped(self) -> None:
        meta = FieldMeta.model_validate(
            {
                "field_name": "author",
                "type": "relation",
                "relation": {"model": "User", "path": "/auth/"},
            }
        )
        assert meta.relation is not None
        assert meta.relation.path == "auth"

    def test_unknown_keys_rejected(self) -> None:
        with pytest.raises(ValidationError):
            FieldMeta.model_validate({"field_name": "x", "type": "string", "secret": True})


class TestSchemaDefinition:
    def test_names_injected_from_keys(self, raw_schema_dict: Dict[str, Any]) -> None:
        schema = SchemaDefinition.model_validate({"models": raw_schema_dict["models"]})
        user = schema.get_model("User")
        assert user is not None
        assert user.name == "User"
        assert user.fields["password"].field_name == "password"
        assert schema.model_names == ["User", "Post", "Album", "Tag"]

    def test_field_order_preserved(self, raw_schema_dict: Dict[str, Any]) -> None:
        schema = SchemaDefinition.model_validate({"models": raw_schema_dict["models"]})
        assert list(schema.models["Post"].fields) == [
            "id", "user_id", "title", "body", "author", "cover",
        ]

    def test_empty_schema_rejected(self) -> None:
        with pytest.raises(ValidationError):
            SchemaDefinition.model_validate({"models": {}})

    def test_schema_is_frozen(self, example_schema: SchemaDefinition) -> None:
        with pytest.raises(ValidationError):
            example_schema.source_file = "other.yaml"  # type: ignore[misc]


class TestGenerationConfig:
    def test_defaults(self) -> None:
        config = GenerationConfig()
        assert config.api_dir == "src/api"
        assert config.registry_file == "registry.py"
        assert config.max_redaction_depth == 1

    def test_directories_normalised(self) -> None:
        config = GenerationConfig(api_dir="/app/api/", models_dir=" models ")
        assert config.api_dir == "app/api"
        assert config.models_dir == "models"

    def test_redaction_depth_bounds(self) -> None:
        with pytest.raises(ValidationError):
            GenerationConfig(max_redaction_depth=0)
        with pytest.raises(ValidationError):
            GenerationConfig(max_redaction_depth=9)


class TestControllerConfig:
    def test_defaults(self) -> None:
        config = ControllerConfig.build(name="profile")
        assert config.route == "/"
        assert config.version == "v1"
        assert config.model is None

    def test_name_is_case_insensitive(self) -> None:
        assert ControllerConfig.build(name="UserProfile").name == "UserProfile"

    @pytest.mark.parametrize("name", ["profile2", "user_profile", "", None])
    def test_invalid_name(self, name: Any) -> None:
        with pytest.raises(ConfigurationError, match="Missing/Invalid controller name"):
            ControllerConfig.build(name=name)

    @pytest.mark.parametrize("model", ["true", "", "   "])
    def test_malformed_model_flag(self, model: str) -> None:
        with pytest.raises(ConfigurationError, match="Missing/Invalid model name"):
            ControllerConfig.build(name="profile", model=model)

    def test_error_points_at_help(self) -> None:
        with pytest.raises(ConfigurationError, match="--help"):
            ControllerConfig.build(name="profile2")

    def test_invalid_version(self) -> None:
        with pytest.raises(ConfigurationError, match="Invalid API version"):
            ControllerConfig.build(name="profile", version="v-1")


class TestRelationRedaction:
    def test_empty_when_nothing_nested(self) -> None:
        leaf = RelationRedaction(field_name="manager", model="User", model_path=None)
        assert leaf.is_empty
        parent = RelationRedaction(
            field_name="author", model="User", model_path=None, nested=(leaf,)
        )
        assert parent.is_empty

    def test_not_empty_with_fields(self) -> None:
        redaction = RelationRedaction(
            field_name="author", model="User", model_path=None, fields=("password",)
        )
        assert not redaction.is_empty
