"""Categorization domain service."""

from typing import Iterable, Mapping, Optional, Sequence

from budgetsync.config import CategorizationSettings
from budgetsync.database.base import Database
from budgetsync.domain.entities import (
    Category,
    CategorizationResult,
    ConfidenceScore,
    ItemFailure,
    Transaction,
    TransactionCategorization,
    TransactionFilter,
    TransactionId,
    TransactionProcessingState,
    TransactionStatus,
)
from budgetsync.domain.errors import (
    ALREADY_CATEGORIZED,
    ALREADY_SUBMITTED,
    MARKED_DUPLICATE,
    CategorizationError,
    DomainError,
    InvalidStateTransition,
    transaction_not_found,
)
from budgetsync.domain.events import (
    BulkCategoryUpdated,
    CategoryUpdated,
    EventPublisher,
    TransactionCategorized,
    TransactionsCategorized,
    discard_event,
)
from budgetsync.domain.port_calls import call_with_timeout
from budgetsync.domain.ports import CategorizationProvider, CategorySuggestion
from budgetsync.logging_setup import get_logger

logger = get_logger(__name__)


class KeywordCategorizationProvider(CategorizationProvider):
    """Rule-based provider: the first pattern found in the transaction text wins.

    Patterns are matched case-insensitively against the message, the user
    identification and the description.
    """

    def __init__(self, rules: Mapping[str, str], confidence: float = 0.7):
        self.rules = dict(rules)
        self.confidence = ConfidenceScore(confidence)

    def suggest_category(
        self, transaction: Transaction, categories: Sequence[Category]
    ) -> Optional[CategorySuggestion]:
        texts = (transaction.message, transaction.user_identification, transaction.description)
        search_text = " ".join(t for t in texts if t).lower()
        for pattern, category_id in self.rules.items():
            if pattern.lower() in search_text:
                return CategorySuggestion(
                    category_id=category_id,
                    confidence=self.confidence,
                    payee_name=transaction.user_identification,
                    memo=transaction.message,
                    reasoning=f"Matched rule '{pattern}'",
                )
        return None


def average_confidence(categorizations: Iterable[TransactionCategorization]) -> Optional[ConfidenceScore]:
    """Mean of the confidence scores that are present, or None if there are none."""
    values = [c.confidence.value for c in categorizations if c.confidence is not None]
    if not values:
        return None
    return ConfidenceScore.clamped(sum(values) / len(values))


def categorization_rejection(state: TransactionProcessingState) -> Optional[str]:
    """Reason a state may not be categorized automatically, or None if it may.

    Only Imported records that are not duplicates are eligible.
    """
    if state.status == TransactionStatus.SUBMITTED:
        return ALREADY_SUBMITTED
    if state.status == TransactionStatus.CATEGORIZED:
        return ALREADY_CATEGORIZED
    if state.is_duplicate:
        return MARKED_DUPLICATE
    return None


def describe_filter(transaction_filter: TransactionFilter) -> str:
    """Human-readable summary of the criteria set on a filter."""
    parts = []
    if transaction_filter.account_id is not None:
        parts.append(f"account={transaction_filter.account_id}")
    if transaction_filter.description_contains is not None:
        parts.append(f"description contains '{transaction_filter.description_contains}'")
    if transaction_filter.counterparty_contains is not None:
        parts.append(f"counterparty contains '{transaction_filter.counterparty_contains}'")
    if transaction_filter.transaction_type is not None:
        parts.append(f"type={transaction_filter.transaction_type}")
    if transaction_filter.min_amount is not None:
        parts.append(f"amount >= {transaction_filter.min_amount}")
    if transaction_filter.max_amount is not None:
        parts.append(f"amount <= {transaction_filter.max_amount}")
    return ", ".join(parts) or "all transactions"


class CategorizationService:
    """Service for automatic and manual transaction categorization."""

    def __init__(
        self,
        db: Database,
        provider: CategorizationProvider,
        settings: Optional[CategorizationSettings] = None,
        event_publisher: Optional[EventPublisher] = None,
    ):
        """Initialize categorization service.

        Args:
            db: Database instance
            provider: Source of category suggestions
            settings: Default category and provider timeout
            event_publisher: Callable receiving domain events
        """
        self.db = db
        self.provider = provider
        self.settings = settings or CategorizationSettings()
        self.publish = event_publisher or discard_event

    def ensure_default_category(self) -> Category:
        """Return the default category, creating it if it does not exist yet."""
        category = self.db.get_category(self.settings.default_category_id)
        if category is None:
            category = Category(id=self.settings.default_category_id, name=self.settings.default_category_name)
            self.db.save_category(category)
            logger.info("Created default category '%s'", category.id)
        return category

    def categorize_transaction(self, transaction_id: TransactionId) -> Optional[TransactionCategorization]:
        """Categorize a single transaction.

        When the provider has no suggestion the transaction still becomes
        Categorized, under the default category.

        Args:
            transaction_id: Transaction to categorize

        Returns:
            The categorization, or None if the transaction does not exist or
            is not an Imported, non-duplicate record

        Raises:
            CategorizationError: If the provider fails or times out
        """
        transaction = self.db.get_transaction(transaction_id)
        state = self.db.get_processing_state(transaction_id)
        if transaction is None or state is None:
            return None
        reason = categorization_rejection(state)
        if reason is not None:
            logger.debug("Not categorizing %s: %s", transaction_id, reason)
            return None
        return self._categorize(transaction, state)

    def categorize_transactions(self, transaction_ids: Sequence[TransactionId]) -> CategorizationResult:
        """Categorize several transactions.

        A failing item is counted and reported; it never stops the rest.

        Args:
            transaction_ids: Transactions to categorize

        Returns:
            CategorizationResult with counts, average confidence and failures
        """
        categorizations = []
        failures = []
        for transaction_id in transaction_ids:
            reason = None
            transaction = self.db.get_transaction(transaction_id)
            state = self.db.get_processing_state(transaction_id)
            if transaction is None or state is None:
                reason = transaction_not_found(transaction_id)
            else:
                reason = categorization_rejection(state)
            if reason is None:
                try:
                    categorizations.append(self._categorize(transaction, state))
                except (CategorizationError, DomainError) as exc:
                    reason = str(exc)
            if reason is not None:
                logger.warning("Could not categorize %s: %s", transaction_id, reason)
                failures.append(ItemFailure(transaction_id, reason))

        average = average_confidence(categorizations)
        if categorizations:
            accounts = {c.transaction_id.account_id for c in categorizations}
            self.publish(
                TransactionsCategorized(
                    transaction_count=len(categorizations),
                    account_id=accounts.pop() if len(accounts) == 1 else None,
                    average_confidence=average,
                )
            )
        logger.info("Categorized %d transactions, %d failed", len(categorizations), len(failures))
        return CategorizationResult(
            categorized_count=len(categorizations),
            failed_count=len(failures),
            average_confidence=average,
            failures=tuple(failures),
        )

    def categorize_imported(self, account_id: Optional[str] = None) -> CategorizationResult:
        """Categorize every transaction still in Imported status, skipping duplicates."""
        states = self.db.find_processing_states(account_id=account_id, status=TransactionStatus.IMPORTED)
        return self.categorize_transactions([s.transaction_id for s in states if not s.is_duplicate])

    def update_category(
        self,
        transaction_id: TransactionId,
        category_id: str,
        memo: Optional[str] = None,
        payee_name: Optional[str] = None,
    ) -> Optional[TransactionProcessingState]:
        """Manually set the category (and optionally memo and payee) of a transaction.

        Suggested values are kept; applying the same override twice changes
        nothing the second time.

        Args:
            transaction_id: Transaction to update
            category_id: Category to apply
            memo: Memo override, or None to keep the current one
            payee_name: Payee override, or None to keep the current one

        Returns:
            The resulting processing state, or None if the transaction does not exist

        Raises:
            InvalidStateTransition: If the transaction is already submitted
        """
        state = self.db.get_processing_state(transaction_id)
        if state is None:
            return None
        self._warn_unknown_category(category_id)

        updated = state.with_overrides(category_id, payee_name=payee_name, memo=memo)
        if updated == state:
            return state
        self.db.save_processing_state(updated)
        self.publish(
            CategoryUpdated(
                transaction_id=transaction_id,
                old_category=state.effective_category,
                new_category=category_id,
            )
        )
        return updated

    def bulk_update_category(
        self,
        transaction_filter: TransactionFilter,
        category_id: str,
        memo: Optional[str] = None,
        payee_name: Optional[str] = None,
    ) -> int:
        """Apply a manual category to every matching transaction that is not submitted.

        Args:
            transaction_filter: Criteria selecting the transactions
            category_id: Category to apply
            memo: Memo override, or None to keep the current ones
            payee_name: Payee override, or None to keep the current ones

        Returns:
            Number of transactions whose state actually changed
        """
        self._warn_unknown_category(category_id)
        updated_count = 0
        for transaction in self.db.find_transactions(transaction_filter):
            state = self.db.get_processing_state(transaction.id)
            if state is None or state.status == TransactionStatus.SUBMITTED:
                continue
            updated = state.with_overrides(category_id, payee_name=payee_name, memo=memo)
            if updated == state:
                continue
            try:
                self.db.save_processing_state(updated)
            except InvalidStateTransition as exc:
                # Submitted concurrently; its category is frozen now
                logger.warning("Skipping %s: %s", transaction.id, exc)
                continue
            updated_count += 1

        if updated_count:
            self.publish(
                BulkCategoryUpdated(
                    count=updated_count,
                    category=category_id,
                    filter_criteria=describe_filter(transaction_filter),
                )
            )
        logger.info("Bulk update to '%s' changed %d transactions", category_id, updated_count)
        return updated_count

    def _categorize(self, transaction: Transaction, state: TransactionProcessingState) -> TransactionCategorization:
        categories = self.db.list_categories(active_only=True)
        try:
            suggestion = call_with_timeout(
                self.provider.suggest_category,
                transaction,
                categories,
                timeout=self.settings.provider_timeout,
            )
        except CategorizationError:
            raise
        except Exception as exc:
            raise CategorizationError(f"Categorization of transaction {transaction.id} failed: {exc}") from exc

        default_payee = transaction.counterparty_name or transaction.user_identification
        default_memo = transaction.description or None
        if suggestion is None:
            categorization = TransactionCategorization(
                transaction_id=transaction.id,
                category_id=self.settings.default_category_id,
                payee_name=default_payee,
                memo=default_memo,
                confidence=None,
                is_default=True,
            )
        else:
            categorization = TransactionCategorization(
                transaction_id=transaction.id,
                category_id=suggestion.category_id,
                payee_name=suggestion.payee_name or default_payee,
                memo=suggestion.memo if suggestion.memo is not None else default_memo,
                confidence=suggestion.confidence,
                reasoning=suggestion.reasoning,
            )

        self.db.save_processing_state(
            state.with_suggestions(
                categorization.category_id,
                categorization.payee_name,
                categorization.memo,
                category_confidence=categorization.confidence,
            )
        )
        self.publish(
            TransactionCategorized(
                transaction_id=transaction.id,
                category=categorization.category_id,
                payee_name=categorization.payee_name,
                by_ai=suggestion is not None,
            )
        )
        return categorization

    def _warn_unknown_category(self, category_id: str) -> None:
        if category_id != self.settings.default_category_id and self.db.get_category(category_id) is None:
            logger.warning("Category '%s' is not known; applying it anyway", category_id)
