"""
Tests for the Rule Library
"""

import pytest


def make_card(**overrides):
    from cardwatch.common.schemas.card import Card, Label
    fields = {
        "id": "c1",
        "name": "Add Login Page",
        "desc": "Users need to sign in.",
        "labels": [Label(name="High"), Label(name="Feature")],
        "list_name": "Task",
    }
    fields.update(overrides)
    return Card(**fields)


def run(rule, card, context=None):
    from cardwatch.validator.rules import RULES, RuleContext, RuleSettings
    return RULES[rule](card, context or RuleContext(), RuleSettings())


class TestTitleRules:

    def test_word_count_fails_below_minimum(self):
        from cardwatch.validator.rules import RuleName

        result = run(RuleName.TITLE_WORD_COUNT, make_card(name="Fix Bug"))

        assert result.passed is False
        assert "at least 3 words" in result.message

    def test_word_count_passes(self):
        from cardwatch.validator.rules import RuleName

        result = run(RuleName.TITLE_WORD_COUNT, make_card(name="Fix Login Bug"))

        assert result.passed is True
        assert result.message == ""

    @pytest.mark.parametrize("title", [
        "Add Login Page",
        "Add Support for Webhooks",
        "The Art of Review",
        "Bump #42 Version",
        "",
    ])
    def test_titleize_passes(self, title):
        from cardwatch.validator.rules import RuleName

        assert run(RuleName.TITLE_TITLEIZE, make_card(name=title)).passed is True

    @pytest.mark.parametrize("title", ["fix bug", "Fix the login bug", "add Support", "the Art of Review"])
    def test_titleize_fails(self, title):
        from cardwatch.validator.rules import RuleName

        result = run(RuleName.TITLE_TITLEIZE, make_card(name=title))

        assert result.passed is False
        assert "titleized" in result.message


class TestContentRules:

    @pytest.mark.parametrize("desc", ["", "   \n\t"])
    def test_description_blank_fails(self, desc):
        from cardwatch.validator.rules import RuleName

        assert run(RuleName.DESCRIPTION_AVAILABILITY, make_card(desc=desc)).passed is False

    def test_labels_needs_two(self):
        from cardwatch.common.schemas.card import Label
        from cardwatch.validator.rules import RuleName

        one = run(RuleName.LABELS, make_card(labels=[Label(name="Bug")]))
        two = run(RuleName.LABELS, make_card())

        assert one.passed is False
        assert "at least 2 labels" in one.message
        assert two.passed is True

    def test_due_date(self):
        from datetime import datetime, timezone
        from cardwatch.validator.rules import RuleName

        assert run(RuleName.DUE_DATE, make_card()).passed is False
        assert run(RuleName.DUE_DATE, make_card(due=datetime(2026, 1, 1, tzinfo=timezone.utc))).passed is True

    def test_members_rules(self):
        from cardwatch.validator.rules import RuleName

        for rule in (RuleName.MEMBERS, RuleName.IN_PROGRESS_LIST_MEMBERS_REQUIRED):
            assert run(rule, make_card()).passed is False
            assert run(rule, make_card(id_members=["m1"])).passed is True


class TestListRules:

    def test_new_card_in_intake_list_passes(self):
        from cardwatch.validator.rules import RuleName, RuleContext

        assert run(RuleName.LIST_OF_NEW_CARD, make_card(list_name="TASK")).passed is True
        assert run(
            RuleName.LIST_OF_NEW_CARD, make_card(list_name=None), RuleContext(list_name="Task")
        ).passed is True

    def test_new_card_elsewhere_fails(self):
        from cardwatch.validator.rules import RuleName

        result = run(RuleName.LIST_OF_NEW_CARD, make_card(list_name="Done"))

        assert result.passed is False
        assert "'Task' list" in result.message

    def test_event_list_takes_precedence(self):
        from cardwatch.validator.rules import RuleName, RuleContext

        result = run(RuleName.LIST_OF_NEW_CARD, make_card(list_name="Task"), RuleContext(list_name="Backlog"))

        assert result.passed is False


class TestChecklistRule:

    def test_incomplete_count_in_message(self):
        from cardwatch.common.schemas.card import Checklist, CheckItem
        from cardwatch.validator.rules import RuleName

        card = make_card(checklists=[
            Checklist(name="A", check_items=[CheckItem(state="complete"), CheckItem(state="incomplete")]),
            Checklist(name="B", check_items=[CheckItem(state="incomplete")]),
        ])
        result = run(RuleName.CHECKLIST_ITEM_STATE_COMPLETION, card)

        assert result.passed is False
        assert "There are 2 items" in result.message

    def test_all_complete_passes(self):
        from cardwatch.common.schemas.card import Checklist, CheckItem
        from cardwatch.validator.rules import RuleName

        card = make_card(checklists=[Checklist(check_items=[CheckItem(state="complete")])])

        assert run(RuleName.CHECKLIST_ITEM_STATE_COMPLETION, card).passed is True


class TestPullRequestRule:

    @pytest.mark.parametrize("url", [
        "https://github.com/acme/api/pull/12",
        "https://gitlab.com/acme/group/api/-/merge_requests/7",
        "https://bitbucket.org/acme/api/pull-requests/3",
    ])
    def test_pull_request_attachment_passes(self, url):
        from cardwatch.common.schemas.card import Attachment
        from cardwatch.validator.rules import RuleName

        card = make_card(attachments=[Attachment(name="PR", url=url)])

        assert run(RuleName.CHECK_PULL_REQUEST_ATTACHMENT, card).passed is True

    def test_non_pr_attachment_fails(self):
        from cardwatch.common.schemas.card import Attachment
        from cardwatch.validator.rules import RuleName, RuleContext

        card = make_card(attachments=[Attachment(url="https://github.com/acme/api/issues/12")])
        result = run(RuleName.CHECK_PULL_REQUEST_ATTACHMENT, card, RuleContext(list_name="in review"))

        assert result.passed is False
        assert "*In Review*" in result.message


class TestRuleTable:

    def test_every_rule_name_is_registered(self):
        from cardwatch.common.schemas.templates import RULE_MESSAGES
        from cardwatch.validator.rules import RULES, RuleName

        assert set(RULES) == set(RuleName)
        assert {rule.value for rule in RuleName} == set(RULE_MESSAGES)
