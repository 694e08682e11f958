from __future__ import annotations

from formingest.domain.model import Answer, ItemType, QuestionItem, ResponseItem
from formingest.domain.submission import StructuralResponseValidator
from tests.helpers.forms import make_response, make_template


def _issues(answers: dict[str, object]) -> dict[str, str]:
    template = make_template(
        items=(
            QuestionItem(link_id="name", type=ItemType.STRING, required=True),
            QuestionItem(link_id="age", type=ItemType.INTEGER),
            QuestionItem(link_id="born", type=ItemType.DATE),
            QuestionItem(link_id="sex", type=ItemType.CHOICE, options=["f", "m"]),
            QuestionItem(link_id="intro", type=ItemType.DISPLAY),
        )
    )
    response = make_response(answers)  # type: ignore[arg-type]
    issues = StructuralResponseValidator().validate(template, response)
    return {issue.link_id: issue.message for issue in issues}


def test_valid_response_has_no_issues() -> None:
    assert _issues({"name": "Ada", "age": 36, "born": "1815-12-10", "sex": "f"}) == {}


def test_required_item_without_answer() -> None:
    assert _issues({"age": 3}) == {"name": "required item has no answer"}


def test_answers_must_fit_item_type() -> None:
    issues = _issues({"name": "Ada", "age": "old", "born": "yesterday", "sex": "x"})

    assert set(issues) == {"age", "born", "sex"}


def test_unknown_and_display_items_are_rejected() -> None:
    issues = _issues({"name": "Ada", "shoe-size": "42", "intro": "hello"})

    assert issues["shoe-size"] == "unknown item"
    assert "cannot be answered" in issues["intro"]


def test_single_answer_items_reject_multiple_answers() -> None:
    template = make_template()
    response = make_response({})
    response.items = [
        ResponseItem(link_id="name", answers=[Answer(value="Ada"), Answer(value="Grace")])
    ]

    issues = StructuralResponseValidator().validate(template, response)

    assert [issue.message for issue in issues] == ["multiple answers for a single-answer item"]
