"""Tests for insight prompt building and the insight flow."""

import json
import pytest
from datetime import datetime, timedelta

from src.agents import (
    EMPTY_LEDGER_MESSAGE,
    FALLBACK_MESSAGE,
    GENERAL_INSIGHT_QUESTION,
    build_general_insight_prompt,
    build_insight_prompt,
    parse_insight_response,
)
from src.ledger import EmptyLedgerError
from src.models.audit import AuditEventType
from src.orchestrator import NOT_CONFIGURED_MESSAGE, InsightFlow
from src.validation import TransactionValidationError


def serialized_records(prompt_text: str) -> list[dict]:
    """Pull the JSON payload back out of a prompt."""
    start = prompt_text.index("[")
    end = prompt_text.rindex("]") + 1
    return json.loads(prompt_text[start:end])


class TestBuildInsightPrompt:
    """Tests for the deterministic prompt builder."""

    def test_prompt_contains_data_and_question(self, scenario_records):
        """Test that the records and the question are both serialized."""
        prompt = build_insight_prompt(scenario_records, "Where does my money go?", max_records=500)

        assert prompt.text.endswith("User Question:\nWhere does my money go?")
        assert "Do not use markdown" in prompt.text
        records = serialized_records(prompt.text)
        assert [r["id"] for r in records] == ["food", "salary"]
        assert records[0]["amount"] == "75.50"
        assert records[1]["amount"] == "2000"
        assert records[1]["type"] == "income"
        assert prompt.included_count == 2
        assert prompt.truncated is False

    def test_empty_ledger(self):
        """Test that an empty ledger is refused with the canned message."""
        with pytest.raises(EmptyLedgerError, match="You have no transactions to analyze"):
            build_insight_prompt([], "Anything?", max_records=500)

    @pytest.mark.parametrize("question", ["", "   ", None])
    def test_blank_question(self, scenario_records, question):
        """Test that a question is required."""
        with pytest.raises(TransactionValidationError, match="Prompt is required"):
            build_insight_prompt(scenario_records, question, max_records=500)

    def test_bounded_payload_keeps_most_recent(self, make_transaction):
        """Test that only the newest records are serialized, and the prompt says so."""
        base = datetime(2024, 1, 1)
        records = [
            make_transaction("1", "Travel", base + timedelta(days=i), id=f"t{i}")
            for i in range(5)
        ]

        prompt = build_insight_prompt(records, "Trends?", max_records=2)

        assert [r["id"] for r in serialized_records(prompt.text)] == ["t4", "t3"]
        assert "2 most recent of 5 transactions" in prompt.text
        assert prompt.truncated is True
        assert prompt.total_count == 5

    def test_amounts_serialized_exactly(self, make_transaction):
        """Test that amounts appear exactly as the ledger sums them."""
        records = [
            make_transaction("0.10", "Shopping", id="a"),
            make_transaction("12345678901234567890.05", "Travel", id="b"),
        ]

        prompt = build_insight_prompt(records, "Totals?", max_records=500)

        amounts = {r["id"]: r["amount"] for r in serialized_records(prompt.text)}
        assert amounts == {"a": "0.10", "b": "12345678901234567890.05"}

    def test_invalid_bound(self, scenario_records):
        """Test that the bound must be positive."""
        with pytest.raises(ValueError):
            build_insight_prompt(scenario_records, "Q?", max_records=0)

    def test_general_prompt(self, scenario_records):
        """Test the one-click question."""
        prompt = build_general_insight_prompt(scenario_records, max_records=500)
        assert prompt.question == GENERAL_INSIGHT_QUESTION
        assert prompt.text.endswith(GENERAL_INSIGHT_QUESTION)


class TestParseInsightResponse:
    """Tests for relaying the reply."""

    def test_reply_unmodified(self):
        """Test that the text is passed through as-is."""
        reply = "  - Eat out less\n- Cancel unused subscriptions\n"
        assert parse_insight_response(reply) == reply

    @pytest.mark.parametrize("reply", [None, "", "  \n"])
    def test_blank_reply(self, reply):
        """Test the fallback for missing replies."""
        assert parse_insight_response(reply) == FALLBACK_MESSAGE


class TestInsightFlow:
    """Tests for builder → service → parser."""

    async def test_ask(self, insight_flow, stub_agent, scenario_records, audit_storage):
        """Test a successful question."""
        response = await insight_flow.ask(scenario_records, "How am I doing?")

        assert response.text == "Spend less on dining out."
        assert response.used_fallback is False
        assert response.record_count == 2
        assert len(stub_agent.prompts) == 1
        assert "How am I doing?" in stub_agent.prompts[0]
        types = [e.event_type for e in audit_storage.events]
        assert AuditEventType.INSIGHT_REQUESTED in types
        assert AuditEventType.INSIGHT_GENERATED in types

    async def test_empty_ledger_never_calls_service(self, insight_flow, stub_agent):
        """Test the canned message and no external call."""
        response = await insight_flow.general_insights([])

        assert response.text == EMPTY_LEDGER_MESSAGE
        assert stub_agent.prompts == []

    async def test_service_failure_falls_back(
        self, failing_agent, audit_logger, audit_storage, scenario_records
    ):
        """Test that a service error becomes the fixed fallback text."""
        flow = InsightFlow(agent=failing_agent, audit_logger=audit_logger, max_records=500)

        response = await flow.general_insights(scenario_records)

        assert response.text == FALLBACK_MESSAGE
        assert response.used_fallback is True
        assert AuditEventType.INSIGHT_FAILED in [e.event_type for e in audit_storage.events]

    async def test_blank_reply_falls_back(self, blank_agent, scenario_records):
        """Test that an empty reply becomes the fallback text."""
        flow = InsightFlow(agent=blank_agent, max_records=500)

        response = await flow.ask(scenario_records, "Tips?")

        assert response.text == FALLBACK_MESSAGE
        assert response.used_fallback is True

    async def test_blank_question_raises(self, insight_flow, stub_agent, scenario_records):
        """Test that a blank question is rejected before the service."""
        with pytest.raises(TransactionValidationError):
            await insight_flow.ask(scenario_records, "  ")
        assert stub_agent.prompts == []

    async def test_not_configured(self, scenario_records):
        """Test the answer when no AI service is set up."""
        flow = InsightFlow(agent=None, max_records=500)

        response = await flow.general_insights(scenario_records)

        assert flow.is_configured is False
        assert response.text == NOT_CONFIGURED_MESSAGE
        assert response.used_fallback is True
