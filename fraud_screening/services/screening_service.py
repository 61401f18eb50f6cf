"""Batch fraud screening service.

A batch is split into consecutive groups of at most ``max_concurrency``
transactions. Groups run one after another; the transactions of a group
run concurrently and the whole group settles before the next one starts.

Each transaction is checked against its custom rules first; the pattern
detector is consulted only when no rule fires. Verdicts are persisted
append-only, and a failed write never changes the returned result.
"""

import asyncio
import logging
from collections.abc import Sequence

from fraud_screening.core.config import ScreeningConfig
from fraud_screening.core.errors import DetectionError, ScreeningTimeoutError
from fraud_screening.core.logging import get_logger
from fraud_screening.detection.pattern_detector import FraudDetector
from fraud_screening.domain.models import FraudVerdict, normalize_transaction
from fraud_screening.domain.rules import evaluate_rules
from fraud_screening.persistence.screening_repository import SaveResult, ScreeningRepository
from fraud_screening.schemas.screening import FraudSource, ResultEntry, TransactionIn

logger = logging.getLogger(__name__)

DETECTION_UNAVAILABLE_VERDICT = FraudVerdict(
    is_fraud_detected=False,
    fraud_source=FraudSource.ERROR,
    fraud_reason="Pattern detection unavailable",
    fraud_score=0.0,
)


class ScreeningResults:
    """Per-batch result mapping keyed by transaction_id.

    Duplicate ids overwrite silently; the later transaction in the batch wins.
    """

    def __init__(self):
        self._entries: dict[str, ResultEntry] = {}
        self.rule_hits = 0
        self.pattern_verdicts = 0
        self.detection_errors = 0
        self.persist_failures = 0

    def add(self, transaction_id: str, entry: ResultEntry) -> None:
        self._entries[transaction_id] = entry
        if entry.fraud_source == FraudSource.RULE:
            self.rule_hits += 1
        elif entry.fraud_source == FraudSource.PATTERN:
            self.pattern_verdicts += 1
        else:
            self.detection_errors += 1

    def __len__(self) -> int:
        return len(self._entries)

    def as_dict(self) -> dict[str, ResultEntry]:
        return dict(self._entries)

    def summary(self) -> dict[str, int]:
        return {
            "screened": len(self._entries),
            "rule_hits": self.rule_hits,
            "pattern_verdicts": self.pattern_verdicts,
            "detection_errors": self.detection_errors,
            "persist_failures": self.persist_failures,
        }


class TransactionProcessor:
    """Screens a single transaction and records the outcome."""

    def __init__(
        self,
        detector: FraudDetector,
        repository: ScreeningRepository | None,
        requester_id: str,
        isolate_detector_failures: bool = False,
    ):
        self.detector = detector
        self.repository = repository
        self.requester_id = requester_id
        self.isolate_detector_failures = isolate_detector_failures
        self.failed_saves: list[SaveResult] = []

    async def process(self, transaction: TransactionIn) -> tuple[str, ResultEntry]:
        """Screen one transaction, persist its verdict and return its result entry.

        Raises:
            DetectionError: The pattern detector failed and failures are not isolated.
        """
        fields = normalize_transaction(transaction)
        rules = transaction.custom_rules or []

        verdict = evaluate_rules(fields, rules) if rules else None
        if verdict is not None:
            logger.debug(
                "Custom rule violated",
                extra={"transaction_id": fields.key, "reason": verdict.fraud_reason},
            )
        else:
            try:
                verdict = await self.detector.detect(fields, rules)
            except DetectionError:
                if not self.isolate_detector_failures:
                    raise
                logger.exception(
                    "Pattern detection failed, marking transaction as unscreened",
                    extra={"transaction_id": fields.key},
                )
                return fields.key, DETECTION_UNAVAILABLE_VERDICT.to_result_entry(
                    transaction
                )

        entry = verdict.to_result_entry(transaction)

        if self.repository is not None:
            result = await self.repository.save(fields, verdict, self.requester_id)
            if not result.ok:
                logger.error(
                    "Database error while saving screening result",
                    extra={"transaction_id": result.transaction_id, "error": result.error},
                )
                self.failed_saves.append(result)

        return fields.key, entry


def partition(
    transactions: Sequence[TransactionIn],
    size: int,
) -> list[list[TransactionIn]]:
    """Split transactions into consecutive groups of at most ``size``, keeping order."""
    if size < 1:
        raise ValueError("group size must be at least 1")
    return [list(transactions[i : i + size]) for i in range(0, len(transactions), size)]


class ScreeningService:
    """Runs a batch of transactions through the screening pipeline."""

    def __init__(
        self,
        detector: FraudDetector,
        repository: ScreeningRepository | None,
        config: ScreeningConfig,
    ):
        self.detector = detector
        self.repository = repository
        self.config = config

    async def _run_group(
        self,
        processor: TransactionProcessor,
        group: list[TransactionIn],
    ) -> list[tuple[str, ResultEntry] | BaseException]:
        """Run one group concurrently and wait for every member to settle."""
        pending = asyncio.gather(
            *(processor.process(transaction) for transaction in group),
            return_exceptions=True,
        )
        if self.config.group_timeout is None:
            return await pending

        try:
            async with asyncio.timeout(self.config.group_timeout):
                return await pending
        except TimeoutError:
            raise ScreeningTimeoutError(
                "Screening group exceeded its deadline",
                details={
                    "group_timeout": self.config.group_timeout,
                    "transaction_ids": [t.key for t in group],
                },
            ) from None

    async def screen_batch(
        self,
        transactions: Sequence[TransactionIn],
        requester_id: str,
    ) -> dict[str, ResultEntry]:
        """Screen every transaction and return results keyed by transaction_id.

        Raises:
            DetectionError: A detector call failed and failures are not isolated.
                No partial results are returned.
            ScreeningTimeoutError: A group exceeded the configured deadline.
        """
        log = get_logger(__name__).bind(
            requester_id=requester_id,
            batch_size=len(transactions),
        )
        processor = TransactionProcessor(
            detector=self.detector,
            repository=self.repository,
            requester_id=requester_id,
            isolate_detector_failures=self.config.isolate_detector_failures,
        )
        results = ScreeningResults()
        groups = partition(transactions, self.config.max_concurrency)

        log.info("Batch screening started", groups=len(groups))

        for index, group in enumerate(groups):
            outcomes = await self._run_group(processor, group)

            failures = [outcome for outcome in outcomes if isinstance(outcome, BaseException)]
            if failures:
                log.error(
                    "Screening group failed",
                    group=index,
                    failed=len(failures),
                    error=str(failures[0]),
                )
                raise failures[0]

            for transaction_id, entry in outcomes:
                results.add(transaction_id, entry)

        results.persist_failures = len(processor.failed_saves)
        log.info("Batch screening completed", **results.summary())
        return results.as_dict()
