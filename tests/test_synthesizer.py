"""
tests/test_synthesizer.py
Unit tests for ctrlgen.synthesizer.HandlerSynthesizer.
"""

from __future__ import annotations

from typing import Dict, List

import pytest

from ctrlgen.inspector import SchemaInspector
from ctrlgen.ir import (
    AssignOwner,
    AuthCheck,
    BuildInstance,
    BuildQuery,
    DeleteFiles,
    FetchRecord,
    HandlerPlan,
    OwnerField,
    OwnerFilter,
    OwnershipCheck,
    ParseUpload,
    Persist,
    PersistOp,
    Redact,
    ReplaceFiles,
    RequireUnique,
    Respond,
    RunQuery,
    Validate,
)
from ctrlgen.models import GenerationConfig, HandlerKind
from ctrlgen.routes import build_route_plan
from ctrlgen.synthesizer import HandlerSynthesizer, instance_name


def synthesize(
    inspector: SchemaInspector,
    model: str,
    config: GenerationConfig | None = None,
) -> Dict[HandlerKind, HandlerPlan]:
    synthesizer = HandlerSynthesizer(inspector, model, f"{model}Controller", config)
    plan = build_route_plan(model, model.lower(), has_files=synthesizer.has_files)
    return {p.route.handler_kind: p for p in synthesizer.synthesize_all(plan)}


class TestInstanceName:
    def test_snake_case(self) -> None:
        assert instance_name("BlogPost") == "blog_post"

    def test_handler_local_is_suffixed(self) -> None:
        assert instance_name("Record") == "record_instance"
        assert instance_name("Result") == "result_instance"

    def test_lowercase_model_does_not_bind_its_class(self) -> None:
        assert instance_name("post") == "post_instance"
        assert instance_name("Post") == "post"


class TestWithoutOwners:
    def test_no_auth_or_owner_clauses(self, plain_user_inspector: SchemaInspector) -> None:
        plans = synthesize(plain_user_inspector, "User")
        for plan in plans.values():
            assert not plan.has(AuthCheck)
            assert not plan.has(OwnerFilter)
            assert not plan.has(AssignOwner)
            for check in plan.find(OwnershipCheck):
                assert check.owner_fields == ()

    def test_no_redaction_without_confidential_fields(
        self, plain_user_inspector: SchemaInspector
    ) -> None:
        plans = synthesize(plain_user_inspector, "User")
        assert not any(plan.has(Redact) for plan in plans.values())

    def test_no_upload_route_without_files(self, plain_user_inspector: SchemaInspector) -> None:
        plans = synthesize(plain_user_inspector, "User")
        assert HandlerKind.UPLOAD not in plans
        assert not plans[HandlerKind.DELETE].has(DeleteFiles)

    def test_delete_checks_existence(self, plain_user_inspector: SchemaInspector) -> None:
        plan = synthesize(plain_user_inspector, "User")[HandlerKind.DELETE]
        (check,) = plan.find(OwnershipCheck)
        assert check.target == "record"
        assert check.require_record


class TestWithOwners:
    def test_auth_first_everywhere(self, note_inspector: SchemaInspector) -> None:
        for plan in synthesize(note_inspector, "Note").values():
            assert isinstance(plan.clauses[0], AuthCheck)

    def test_count_and_list_filter_by_owner(self, note_inspector: SchemaInspector) -> None:
        plans = synthesize(note_inspector, "Note")
        assert plans[HandlerKind.COUNT].clause_types() == [
            AuthCheck,
            BuildQuery,
            OwnerFilter,
            RunQuery,
            Respond,
        ]
        assert plans[HandlerKind.COUNT].find(RunQuery)[0].count
        assert plans[HandlerKind.GET_MANY].clause_types() == [
            AuthCheck,
            BuildQuery,
            OwnerFilter,
            RunQuery,
            Redact,
            Respond,
        ]
        assert plans[HandlerKind.GET_MANY].find(OwnerFilter)[0].fields == ("user_id",)

    def test_create_order(self, note_inspector: SchemaInspector) -> None:
        plan = synthesize(note_inspector, "Note")[HandlerKind.CREATE]
        assert plan.clause_types() == [
            AuthCheck,
            BuildInstance,
            AssignOwner,
            Validate,
            Persist,
            Redact,
            Respond,
        ]
        assert plan.find(Persist)[0].operation == PersistOp.INSERT
        assert plan.find(Redact)[0].single

    def test_update_rechecks_stored_owner(self, note_inspector: SchemaInspector) -> None:
        plan = synthesize(note_inspector, "Note")[HandlerKind.UPDATE]
        types: List[type] = plan.clause_types()
        assert types.index(OwnershipCheck) < types.index(Validate) < types.index(Persist)
        (fetch,) = plan.find(FetchRecord)
        assert fetch.target == "record"
        assert fetch.by_instance == "note"
        assert plan.find(OwnershipCheck)[0].owner_fields == (OwnerField("user_id"),)
        assert plan.has(Redact)

    def test_get_one_redacts_single(self, note_inspector: SchemaInspector) -> None:
        plan = synthesize(note_inspector, "Note")[HandlerKind.GET_ONE]
        (redact,) = plan.find(Redact)
        assert redact.single
        assert redact.fields == ("password",)

    def test_list_redacts_collection(self, note_inspector: SchemaInspector) -> None:
        (redact,) = synthesize(note_inspector, "Note")[HandlerKind.GET_MANY].find(Redact)
        assert not redact.single
        assert redact.fields == ("password",)

    def test_embedded_owner_only_when_relations_fetched(
        self, example_inspector: SchemaInspector
    ) -> None:
        plans = synthesize(example_inspector, "Album")
        (get_check,) = plans[HandlerKind.GET_ONE].find(OwnershipCheck)
        assert get_check.owner_fields == (OwnerField("owner", embedded=True),)
        (delete_check,) = plans[HandlerKind.DELETE].find(OwnershipCheck)
        assert delete_check.owner_fields == (OwnerField("owner", embedded=False),)


class TestFiles:
    def test_upload_order(self, two_file_inspector: SchemaInspector) -> None:
        plan = synthesize(two_file_inspector, "Document")[HandlerKind.UPLOAD]
        assert plan.clause_types() == [
            FetchRecord,
            RequireUnique,
            BuildInstance,
            ParseUpload,
            ReplaceFiles,
            Persist,
            Respond,
        ]
        (replace,) = plan.find(ReplaceFiles)
        assert [f.name for f in replace.files] == ["front", "back"]
        assert replace.parallel
        assert replace.action == "_upload"
        assert replace.controller == "DocumentController"
        assert plan.find(ParseUpload)[0].upload_dir == "document"

    def test_upload_with_owner_checks_owner(self, example_inspector: SchemaInspector) -> None:
        plan = synthesize(example_inspector, "Post")[HandlerKind.UPLOAD]
        types: List[type] = plan.clause_types()
        assert types[:4] == [AuthCheck, FetchRecord, RequireUnique, OwnershipCheck]
        (check,) = plan.find(OwnershipCheck)
        assert not check.require_record
        (replace,) = plan.find(ReplaceFiles)
        assert not replace.parallel

    def test_file_list_forces_parallel(self, make_inspector) -> None:
        inspector = make_inspector(
            {"Gallery": {"fields": {"photos": {"type": "list", "list_type": "file"}}}}
        )
        (replace,) = synthesize(inspector, "Gallery")[HandlerKind.UPLOAD].find(ReplaceFiles)
        assert replace.parallel
        assert replace.files[0].is_list

    def test_delete_removes_files_before_record(
        self, two_file_inspector: SchemaInspector
    ) -> None:
        plan = synthesize(two_file_inspector, "Document")[HandlerKind.DELETE]
        types: List[type] = plan.clause_types()
        assert types.index(DeleteFiles) < types.index(Persist)
        (delete,) = plan.find(DeleteFiles)
        assert delete.upload_dir == "document"
        assert delete.action == "_remove_document"
        assert plan.find(Persist)[0].operation == PersistOp.REMOVE


class TestNestedRedaction:
    def test_relations_redacted(self, example_inspector: SchemaInspector) -> None:
        (redact,) = synthesize(example_inspector, "Post")[HandlerKind.GET_ONE].find(Redact)
        assert redact.fields == ()
        assert [r.field_name for r in redact.relations] == ["author"]

    @pytest.mark.parametrize("depth, expected", [(1, 0), (2, 1), (3, 2)])
    def test_depth_from_config(
        self, example_inspector: SchemaInspector, depth: int, expected: int
    ) -> None:
        config = GenerationConfig(max_redaction_depth=depth)
        plans = synthesize(example_inspector, "Post", config)
        (redact,) = plans[HandlerKind.GET_ONE].find(Redact)
        levels = 0
        node = redact.relations[0]
        while node.nested:
            node = node.nested[0]
            levels += 1
        assert levels == expected

    def test_reserves_model_and_instance(self, example_inspector: SchemaInspector) -> None:
        (redact,) = synthesize(example_inspector, "Post")[HandlerKind.GET_ONE].find(Redact)
        assert redact.reserved == ("Post", "post")

    def test_fetch_populates_relations(self, example_inspector: SchemaInspector) -> None:
        (fetch,) = synthesize(example_inspector, "Post")[HandlerKind.GET_ONE].find(FetchRecord)
        assert fetch.relations == ("author",)
