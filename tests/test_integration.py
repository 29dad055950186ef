"""End-to-end documentation runs against handler sources on disk."""

import shutil
from pathlib import Path

import pytest
import yaml

from route_doc_agent.config import Settings
from route_doc_agent.document.merger import MergeState
from route_doc_agent.errors import DocumentCorrupt, ResolutionError, SchemaNameConflict, SynthesisError
from route_doc_agent.pipeline import document_handler

FIXTURES = Path(__file__).parent / "fixtures"
SOURCE = FIXTURES / "handlers"
TARGET = "docs/openapi.yaml"


@pytest.fixture
def settings(tmp_path):
    return Settings(repo_root=str(tmp_path))


@pytest.fixture
def existing_target(tmp_path):
    target = tmp_path / TARGET
    target.parent.mkdir(parents=True)
    shutil.copy(FIXTURES / "existing.yaml", target)
    return target


def _load(path: Path) -> dict:
    return yaml.safe_load(path.read_text(encoding="utf-8"))


class TestScenarios:
    def test_empty_target_gets_skeleton_and_operation(self, tmp_path, settings):
        result = document_handler("getAssociations", TARGET, SOURCE, settings=settings)

        assert result.state is MergeState.CREATED
        document = _load(tmp_path / TARGET)
        assert list(document["paths"]) == ["/associations"]
        operation = document["paths"]["/associations"]["get"]
        assert operation["tags"] == ["Associations"]
        assert operation["summary"] == "Get associations"
        assert operation["description"] == "Lists every association visible to the caller."
        assert document["tags"] == [{"name": "Associations"}]
        assert document["security"] == [{"cookieAuth": []}]
        assert document["components"]["securitySchemes"]["cookieAuth"]["in"] == "cookie"

    def test_post_added_beside_existing_get(self, tmp_path, settings, existing_target):
        before = _load(existing_target)
        result = document_handler("createAssociation", TARGET, SOURCE, settings=settings)

        assert result.state is MergeState.OPERATION_ADDED
        document = _load(existing_target)
        assert document["paths"]["/associations"]["get"] == before["paths"]["/associations"]["get"]
        post = document["paths"]["/associations"]["post"]
        assert list(post) == ["tags", "summary", "description", "requestBody", "responses", "security"]
        assert post["requestBody"]["content"]["application/json"]["schema"]["properties"] == {
            "name": {"type": "string"},
            "isPrivate": {"type": "boolean"},
        }

    def test_two_numeric_path_parameters(self, tmp_path, settings):
        document_handler("getMember", TARGET, SOURCE, settings=settings)
        document = _load(tmp_path / TARGET)
        operation = document["paths"]["/associations/{associationId}/members/{customerId}"]["get"]
        assert operation["parameters"] == [
            {"name": "associationId", "in": "path", "required": True, "schema": {"type": "integer"}},
            {"name": "customerId", "in": "path", "required": True, "schema": {"type": "integer"}},
        ]

    def test_missing_input_references_bad_request_template(self, settings, existing_target):
        document_handler("createAssociation", TARGET, SOURCE, settings=settings)
        responses = _load(existing_target)["paths"]["/associations"]["post"]["responses"]
        assert list(responses) == ["200", "400", "401"]
        assert responses["400"] == {"$ref": "#/components/responses/BadRequest"}
        assert responses["401"] == {"description": "Caller is not authenticated"}

    def test_second_run_is_byte_identical(self, tmp_path, settings):
        document_handler("getAssociations", TARGET, SOURCE, settings=settings)
        first = (tmp_path / TARGET).read_bytes()

        result = document_handler("getAssociations", TARGET, SOURCE, settings=settings)

        assert result.state is MergeState.UNCHANGED
        assert (tmp_path / TARGET).read_bytes() == first

    def test_unregistered_handler_leaves_target_absent(self, tmp_path, settings):
        with pytest.raises(ResolutionError):
            document_handler("archiveAssociation", TARGET, SOURCE, settings=settings)
        assert not (tmp_path / TARGET).exists()
        assert not (tmp_path / "docs").exists()


class TestDocumentProperties:
    HANDLERS = [
        "deleteAssociation",
        "getMember",
        "getAssociations",
        "updateAssociation",
        "createAssociation",
        "getAssociation",
    ]

    def test_every_handler_merged_in_sorted_order(self, tmp_path, settings, existing_target):
        for handler in self.HANDLERS:
            document_handler(handler, TARGET, SOURCE, settings=settings)

        document = _load(existing_target)
        paths = list(document["paths"])
        assert paths == sorted(paths)
        tags = [t["name"] for t in document["tags"]]
        assert tags == sorted(tags)
        for item in document["paths"].values():
            for operation in item.values():
                codes = list(operation["responses"])
                assert int(codes[0]) < 300
                assert codes[1:] == sorted(codes[1:], key=int)

    def test_rerun_of_all_handlers_is_stable(self, tmp_path, settings, existing_target):
        for handler in self.HANDLERS:
            document_handler(handler, TARGET, SOURCE, settings=settings)
        first = existing_target.read_bytes()
        for handler in self.HANDLERS:
            document_handler(handler, TARGET, SOURCE, settings=settings)
        assert existing_target.read_bytes() == first

    def test_customers_path_untouched(self, settings, existing_target):
        before = _load(existing_target)
        for handler in self.HANDLERS:
            document_handler(handler, TARGET, SOURCE, settings=settings)
        after = _load(existing_target)
        assert after["paths"]["/customers/{customerId}"] == before["paths"]["/customers/{customerId}"]
        assert after["components"]["schemas"]["Customer"] == before["components"]["schemas"]["Customer"]

    def test_json_target(self, tmp_path, settings):
        document_handler("getAssociations", "docs/openapi.json", SOURCE, settings=settings)
        text = (tmp_path / "docs" / "openapi.json").read_text()
        assert text.startswith('{\n  "openapi": "3.0.3"')


class TestFailuresDoNotWrite:
    def test_corrupt_document_is_not_rewritten(self, tmp_path, settings):
        target = tmp_path / TARGET
        target.parent.mkdir(parents=True)
        target.write_text("openapi: 3.0.3\npaths: [broken]\n")

        with pytest.raises(DocumentCorrupt):
            document_handler("getAssociations", TARGET, SOURCE, settings=settings)
        assert target.read_text() == "openapi: 3.0.3\npaths: [broken]\n"

    def test_synthesis_error_does_not_write(self, tmp_path, settings):
        source = tmp_path / "src" / "things.py"
        source.parent.mkdir()
        source.write_text(
            "class Things(Base):\n"
            "    def __init__(self):\n"
            "        super().__init__('things')\n"
            "        self.router.post('/', self.createThing)\n"
            "\n"
            "    def createThing(self, req):\n"
            "        return self.service.create(req.body['name'])\n"
        )
        with pytest.raises(SynthesisError):
            document_handler("createThing", TARGET, source, settings=settings)
        assert not (tmp_path / TARGET).exists()

    def test_schema_name_conflict_does_not_write(self, tmp_path, settings, existing_target):
        source = tmp_path / "src" / "wide.py"
        source.parent.mkdir()
        fields = "\n".join(f"    field{i}: str" for i in range(30))
        source.write_text(
            f"class Customer:\n{fields}\n\n\n"
            "class Customers(Base):\n"
            "    def __init__(self):\n"
            "        super().__init__('customers')\n"
            "        self.router.get('/', self.getCustomers)\n"
            "\n"
            "    def getCustomers(self, req) -> Customer:\n"
            "        return self.service.first()\n"
        )
        before = existing_target.read_bytes()
        with pytest.raises(SchemaNameConflict):
            document_handler("getCustomers", TARGET, source, settings=settings)
        assert existing_target.read_bytes() == before

    def test_dry_run_does_not_write(self, tmp_path, settings):
        result = document_handler("getAssociations", TARGET, SOURCE, settings=settings, dry_run=True)
        assert result.written is False
        assert "/associations" in result.text
        assert not (tmp_path / TARGET).exists()
