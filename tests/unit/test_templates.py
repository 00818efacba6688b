import pytest

from hrflow.exceptions import NotFoundError
from hrflow.registry import (
    definition_from_template,
    get_template,
    list_templates,
    validate_steps,
)


def test_builtin_templates_are_valid_graphs():
    templates = list_templates()
    assert {t.id for t in templates} == {
        "template_simple_approval",
        "template_multi_stage",
        "template_notification_workflow",
    }
    for template in templates:
        assert validate_steps(template.steps) == [], template.id


def test_definition_from_template_applies_overrides():
    definition = definition_from_template(
        "template_multi_stage", "Policy review", category="Compliance", deadline_days=14
    )
    assert definition.name == "Policy review"
    assert definition.category == "Compliance"
    assert definition.deadline_days == 14
    assert definition.status == "draft"
    assert [s.id for s in definition.steps] == ["step_1", "step_2", "step_3"]
    assert definition.steps[1].escalation.escalate_to == "department_head"


def test_template_steps_are_copies():
    definition = definition_from_template("template_simple_approval", "Copy")
    definition.steps[0].name = "Changed"
    assert get_template("template_simple_approval").steps[0].name == "Manager Approval"


def test_unknown_template():
    with pytest.raises(NotFoundError) as excinfo:
        get_template("template_nope")
    assert excinfo.value.kind == "template"


@pytest.mark.asyncio
async def test_create_from_template_saves_a_draft(orchestrator):
    definition = await orchestrator.create_from_template(
        "template_notification_workflow", "Reminder", created_by="ops"
    )
    stored = await orchestrator.get_definition(definition.id)
    assert stored.status == "draft"
    assert stored.created_by == "ops"
    assert [a.type for a in stored.steps[0].actions] == ["email", "calendar_event"]
