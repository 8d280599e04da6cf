"""测试：生成请求/响应值对象与校验结果"""

import pytest

from motif_engine.domain.exceptions import DomainError
from motif_engine.domain.value_objects.generation import (
    GenerationRequest,
    GenerationResponse,
    OutputFile,
    TextInput,
    WorkflowImage,
)
from motif_engine.domain.value_objects.position import Position
from motif_engine.domain.value_objects.validation import (
    IssueKind,
    Severity,
    ValidationIssue,
    ValidationResult,
)
from motif_engine.domain.value_objects.workflow_identity import WorkflowIdentity


class TestGenerationRequest:
    def test_payload_uses_camel_case_keys(self):
        """测试：请求体字段为 camelCase，与生成服务约定一致"""
        request = GenerationRequest(
            prompt="Make it blue",
            model="google/gemini-3-pro-image",
            images=(WorkflowImage(url="https://a.test/1.png", media_type="image/png", sequence_number=1),),
            text_inputs=(TextInput(content="body {}", language="css", label="Styles"),),
            target_language="css",
            session_id="wf-1",
        )

        payload = request.to_payload()

        assert payload["images"] == [
            {"url": "https://a.test/1.png", "mediaType": "image/png", "sequenceNumber": 1}
        ]
        assert payload["textInputs"] == [{"content": "body {}", "language": "css", "label": "Styles"}]
        assert payload["targetLanguage"] == "css"
        assert payload["sessionId"] == "wf-1"

    def test_optional_fields_omitted(self):
        payload = GenerationRequest(prompt="p", model="m").to_payload()

        assert "targetLanguage" not in payload
        assert "sessionId" not in payload
        assert payload["images"] == []
        assert payload["textInputs"] == []


class TestGenerationResponse:
    def test_multi_file_requires_more_than_one_file(self):
        single = GenerationResponse(text="a", files=(OutputFile(content="a"),))
        multi = GenerationResponse(text="a", files=(OutputFile(content="a"), OutputFile(content="b")))

        assert single.is_multi_file is False
        assert multi.is_multi_file is True


class TestValidationResult:
    def test_warnings_do_not_block(self):
        """测试：只有 error 级问题会让结果无效"""
        warning = ValidationIssue(IssueKind.NO_OUTPUT, Severity.WARNING, "no output")
        error = ValidationIssue(IssueKind.EMPTY_PROMPT, Severity.ERROR, "no prompt")

        assert ValidationResult.of([warning]).valid is True
        result = ValidationResult.of([warning, error])
        assert result.valid is False
        assert result.blocking == [error]
        assert result.warnings == [warning]


class TestSmallValueObjects:
    def test_position_offset_returns_new_value(self):
        origin = Position(x=10, y=20)

        moved = origin.offset(dy=280)

        assert moved == Position(x=10, y=300)
        assert origin == Position(x=10, y=20)
        assert moved.to_dict() == {"x": 10, "y": 300}

    def test_workflow_identity_requires_both_ids(self):
        with pytest.raises(DomainError):
            WorkflowIdentity(workflow_id="", owner_id="owner")
        with pytest.raises(DomainError):
            WorkflowIdentity(workflow_id="wf", owner_id="")
