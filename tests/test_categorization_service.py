"""Tests for CategorizationService."""

import pytest
from decimal import Decimal

from budgetsync.config import CategorizationSettings
from budgetsync.domain.categorization import (
    CategorizationService,
    KeywordCategorizationProvider,
    average_confidence,
    describe_filter,
)
from budgetsync.domain.entities import (
    Category,
    ConfidenceScore,
    TransactionCategorization,
    TransactionFilter,
    TransactionId,
    TransactionStatus,
)
from budgetsync.domain.errors import CategorizationError, InvalidStateTransition
from budgetsync.domain.events import (
    BulkCategoryUpdated,
    CategoryUpdated,
    TransactionCategorized,
    TransactionsCategorized,
)
from budgetsync.domain.ports import CategorySuggestion


@pytest.fixture
def service(db, categorization_provider, publisher):
    return CategorizationService(db, categorization_provider, event_publisher=publisher)


def categorized(state):
    return state.with_suggestions("groceries", "Albert", None)


def submitted(state):
    return categorized(state).with_submission("ynab-42")


class TestCategorizeTransaction:
    """Automatic categorization."""

    def test_uses_provider_suggestion(self, db, service, store_transaction, categorization_provider):
        transaction_id = store_transaction("1", counterparty_name="ALBERT CZ")
        categorization_provider.suggestions["1"] = CategorySuggestion(
            "groceries", ConfidenceScore(0.9), payee_name="Albert", reasoning="supermarket"
        )

        result = service.categorize_transaction(transaction_id)

        assert result.category_id == "groceries"
        assert result.payee_name == "Albert"
        assert result.memo == "Payment"
        assert result.confidence == ConfidenceScore(0.9)
        assert result.reasoning == "supermarket"
        assert not result.is_default
        state = db.get_processing_state(transaction_id)
        assert state.status == TransactionStatus.CATEGORIZED
        assert state.suggested_category == "groceries"
        assert state.category_confidence == ConfidenceScore(0.9)

    def test_provider_sees_active_categories(self, db, service, store_transaction, categorization_provider):
        db.save_category(Category(id="groceries", name="Groceries"))
        db.save_category(Category(id="old", name="Old", active=False))
        seen = []

        def suggest(transaction, categories):
            seen.extend(c.id for c in categories)
            return None

        categorization_provider.suggest_category = suggest
        service.categorize_transaction(store_transaction("1"))
        assert seen == ["groceries"]

    def test_no_suggestion_uses_default_category(self, db, service, store_transaction):
        transaction_id = store_transaction("1", description="Transfer", counterparty_name="Jan Novak")

        result = service.categorize_transaction(transaction_id)

        assert result.category_id == "uncategorized"
        assert result.is_default
        assert result.confidence is None
        assert result.payee_name == "Jan Novak"
        assert result.memo == "Transfer"
        state = db.get_processing_state(transaction_id)
        assert state.status == TransactionStatus.CATEGORIZED
        assert state.effective_category == "uncategorized"

    def test_default_category_is_configurable(self, db, categorization_provider, store_transaction):
        service = CategorizationService(
            db, categorization_provider, settings=CategorizationSettings(default_category_id="inbox")
        )
        assert service.categorize_transaction(store_transaction("1")).category_id == "inbox"

    def test_ensure_default_category(self, db, service):
        created = service.ensure_default_category()
        assert created == Category(id="uncategorized", name="Uncategorized")
        assert db.get_category("uncategorized") == created

        db.save_category(Category(id="uncategorized", name="Inbox"))
        assert service.ensure_default_category().name == "Inbox"

    def test_missing_transaction_returns_none(self, service, categorization_provider):
        assert service.categorize_transaction(TransactionId("fio-2000", "missing")) is None
        assert categorization_provider.calls == []

    def test_submitted_transaction_is_left_alone(self, db, service, store_transaction, categorization_provider):
        transaction_id = store_transaction("1", update=submitted)
        assert service.categorize_transaction(transaction_id) is None
        assert categorization_provider.calls == []
        assert db.get_processing_state(transaction_id).status == TransactionStatus.SUBMITTED

    def test_categorized_transaction_is_left_alone(self, db, service, store_transaction, categorization_provider):
        transaction_id = store_transaction("1", update=categorized)
        before = db.get_processing_state(transaction_id)
        categorization_provider.suggestions["1"] = CategorySuggestion("fuel", ConfidenceScore(0.6))

        assert service.categorize_transaction(transaction_id) is None
        assert categorization_provider.calls == []
        assert db.get_processing_state(transaction_id) == before

    def test_overridden_transaction_is_left_alone(self, db, service, store_transaction, categorization_provider):
        transaction_id = store_transaction("1", update=lambda s: s.with_overrides("dining"))
        categorization_provider.suggestions["1"] = CategorySuggestion("groceries", ConfidenceScore(0.6))

        assert service.categorize_transaction(transaction_id) is None
        state = db.get_processing_state(transaction_id)
        assert state.suggested_category is None
        assert state.effective_category == "dining"

    def test_duplicate_transaction_is_left_alone(self, db, service, store_transaction, categorization_provider):
        transaction_id = store_transaction("1", update=lambda s: s.mark_duplicate())
        assert service.categorize_transaction(transaction_id) is None
        assert categorization_provider.calls == []
        assert db.get_processing_state(transaction_id).status == TransactionStatus.IMPORTED

    def test_provider_error_raises(self, service, store_transaction, categorization_provider):
        transaction_id = store_transaction("1")
        categorization_provider.errors["1"] = RuntimeError("AI service unavailable")

        with pytest.raises(CategorizationError, match="AI service unavailable") as exc_info:
            service.categorize_transaction(transaction_id)
        assert isinstance(exc_info.value.__cause__, RuntimeError)


class TestCategorizeTransactions:
    """Bulk automatic categorization."""

    def test_all_become_categorized(self, db, service, store_transaction, categorization_provider, events):
        ids = [store_transaction(n) for n in ("1", "2", "3")]
        categorization_provider.suggestions["1"] = CategorySuggestion("groceries", ConfidenceScore(0.5))
        categorization_provider.suggestions["2"] = CategorySuggestion("fuel", ConfidenceScore(1.0))

        result = service.categorize_transactions(ids)

        assert result.categorized_count == 3
        assert result.failed_count == 0
        assert result.average_confidence == ConfidenceScore(0.75)
        states = [db.get_processing_state(i) for i in ids]
        assert all(s.status == TransactionStatus.CATEGORIZED for s in states)
        assert states[2].effective_category == "uncategorized"

        batch_events = [e for e in events if isinstance(e, TransactionsCategorized)]
        assert len(batch_events) == 1
        assert batch_events[0].transaction_count == 3
        assert batch_events[0].account_id == "fio-2000"
        per_item = [e for e in events if isinstance(e, TransactionCategorized)]
        assert [e.by_ai for e in per_item] == [True, True, False]

    def test_failures_do_not_stop_the_batch(self, db, service, store_transaction, categorization_provider):
        ok = store_transaction("1")
        broken = store_transaction("2")
        done = store_transaction("3", update=submitted)
        missing = TransactionId("fio-2000", "missing")
        categorization_provider.errors["2"] = CategorizationError("rate limited")

        result = service.categorize_transactions([ok, broken, done, missing])

        assert result.categorized_count == 1
        assert result.failed_count == 3
        reasons = {f.transaction_id: f.reason for f in result.failures}
        assert reasons[broken] == "rate limited"
        assert reasons[done] == "Already submitted"
        assert "not found" in reasons[missing]
        assert db.get_processing_state(broken).status == TransactionStatus.IMPORTED

    def test_ineligible_states_are_reported(self, db, service, store_transaction, categorization_provider):
        ok = store_transaction("1")
        already = store_transaction("2", update=categorized)
        duplicate = store_transaction("3", update=lambda s: s.mark_duplicate())

        result = service.categorize_transactions([ok, already, duplicate])

        assert result.categorized_count == 1
        reasons = {f.transaction_id: f.reason for f in result.failures}
        assert reasons == {already: "Already categorized", duplicate: "Transaction is marked as duplicate"}
        assert categorization_provider.calls == [ok]
        assert db.get_processing_state(already).suggested_category == "groceries"

    def test_nothing_categorized_publishes_no_batch_event(self, service, events):
        result = service.categorize_transactions([TransactionId("fio-2000", "missing")])
        assert result.categorized_count == 0
        assert result.average_confidence is None
        assert events == []

    def test_categorize_imported(self, db, service, store_transaction):
        store_transaction("1")
        store_transaction("2", update=categorized)
        store_transaction("3", account_id="fio-3000")

        result = service.categorize_imported(account_id="fio-2000")

        assert result.categorized_count == 1
        assert db.count_processing_states_by_status("fio-3000")[TransactionStatus.IMPORTED] == 1

    def test_categorize_imported_skips_duplicates(self, db, service, store_transaction):
        store_transaction("1")
        duplicate = store_transaction("2", update=lambda s: s.mark_duplicate())

        result = service.categorize_imported()

        assert result.categorized_count == 1
        assert result.failed_count == 0
        assert db.get_processing_state(duplicate).status == TransactionStatus.IMPORTED


class TestAverageConfidence:
    """Confidence aggregation."""

    def make(self, confidence):
        return TransactionCategorization(TransactionId("a", "1"), "groceries", None, None, confidence)

    def test_mean_of_present_scores(self):
        result = average_confidence(
            [self.make(ConfidenceScore(0.5)), self.make(None), self.make(ConfidenceScore(1.0))]
        )
        assert result == ConfidenceScore(0.75)

    def test_no_scores(self):
        assert average_confidence([]) is None
        assert average_confidence([self.make(None)]) is None


class TestUpdateCategory:
    """Manual overrides."""

    def test_override_advances_imported(self, db, service, store_transaction, events):
        transaction_id = store_transaction("1")

        state = service.update_category(transaction_id, "dining", memo="lunch", payee_name="Bistro")

        assert state.status == TransactionStatus.CATEGORIZED
        assert state.effective_category == "dining"
        assert state.effective_memo == "lunch"
        assert db.get_processing_state(transaction_id) == state
        assert events == [
            CategoryUpdated(
                transaction_id=transaction_id,
                old_category=None,
                new_category="dining",
                occurred_at=events[0].occurred_at,
            )
        ]

    def test_override_keeps_suggestions(self, db, service, store_transaction):
        transaction_id = store_transaction("1", update=categorized)
        state = service.update_category(transaction_id, "dining")
        assert state.suggested_category == "groceries"
        assert state.suggested_payee_name == "Albert"
        assert state.effective_category == "dining"

    def test_override_is_idempotent(self, db, service, store_transaction, events):
        transaction_id = store_transaction("1")
        first = service.update_category(transaction_id, "dining", payee_name="Bistro")
        second = service.update_category(transaction_id, "dining", payee_name="Bistro")
        assert first == second
        assert db.get_processing_state(transaction_id) == first
        assert len(events) == 1

    def test_missing_transaction_returns_none(self, service):
        assert service.update_category(TransactionId("fio-2000", "missing"), "dining") is None

    def test_submitted_transaction_cannot_change(self, db, service, store_transaction):
        transaction_id = store_transaction("1", update=submitted)
        with pytest.raises(InvalidStateTransition):
            service.update_category(transaction_id, "dining")
        assert db.get_processing_state(transaction_id).effective_category == "groceries"


class TestBulkUpdateCategory:
    """Bulk manual overrides."""

    def test_submitted_matches_are_excluded(self, db, service, store_transaction, events):
        store_transaction("1", description="Coffee Shop")
        store_transaction("2", description="Morning Coffee")
        store_transaction("3", description="Coffee Beans", update=submitted)
        store_transaction("4", description="Rent")

        count = service.bulk_update_category(TransactionFilter(description_contains="Coffee"), "dining")

        assert count == 2
        assert db.get_processing_state(TransactionId("fio-2000", "3")).effective_category == "groceries"
        assert db.get_processing_state(TransactionId("fio-2000", "4")).status == TransactionStatus.IMPORTED
        (event,) = [e for e in events if isinstance(e, BulkCategoryUpdated)]
        assert event.count == 2
        assert event.category == "dining"
        assert "Coffee" in event.filter_criteria

    def test_unchanged_transactions_are_not_counted(self, service, store_transaction):
        store_transaction("1", description="Coffee", update=lambda s: s.with_overrides("dining"))
        store_transaction("2", description="Coffee")
        assert service.bulk_update_category(TransactionFilter(description_contains="Coffee"), "dining") == 1
        assert service.bulk_update_category(TransactionFilter(description_contains="Coffee"), "dining") == 0

    def test_amount_and_account_filters(self, db, service, store_transaction):
        store_transaction("1", amount="-20.00")
        store_transaction("2", amount="-200.00")
        store_transaction("3", amount="-20.00", account_id="fio-3000")

        count = service.bulk_update_category(
            TransactionFilter(account_id="fio-2000", min_amount=Decimal("-50"), max_amount=Decimal("0")),
            "snacks",
            memo="small",
        )

        assert count == 1
        state = db.get_processing_state(TransactionId("fio-2000", "1"))
        assert state.effective_category == "snacks"
        assert state.effective_memo == "small"

    def test_no_match_publishes_nothing(self, service, store_transaction, events):
        store_transaction("1", description="Rent")
        assert service.bulk_update_category(TransactionFilter(description_contains="Coffee"), "dining") == 0
        assert events == []


class TestKeywordProvider:
    """Rule-based categorization provider."""

    def test_first_matching_rule_wins(self, db, store_transaction):
        store_transaction("1", description="Nákup: ALBERT PRAHA", user_identification="Nákup: ALBERT PRAHA")
        transaction = db.get_transaction(TransactionId("fio-2000", "1"))
        provider = KeywordCategorizationProvider({"albert": "groceries", "praha": "travel"})

        suggestion = provider.suggest_category(transaction, [])

        assert suggestion.category_id == "groceries"
        assert suggestion.confidence == ConfidenceScore(0.7)
        assert suggestion.payee_name == "Nákup: ALBERT PRAHA"
        assert "albert" in suggestion.reasoning

    def test_no_match(self, db, store_transaction):
        store_transaction("1", description="Rent")
        transaction = db.get_transaction(TransactionId("fio-2000", "1"))
        assert KeywordCategorizationProvider({"albert": "groceries"}).suggest_category(transaction, []) is None


def test_describe_filter():
    assert describe_filter(TransactionFilter()) == "all transactions"
    assert describe_filter(TransactionFilter(account_id="fio-2000", description_contains="Coffee")) == (
        "account=fio-2000, description contains 'Coffee'"
    )
