"""Two-phase confirm protocol: stage a classified action, then resolve it.

`stage` turns free text into a validated `StagedAction` parked in the pending store and returns a
localized preview. `resolve` consumes the staged action exactly once: it is either executed,
cancelled, or (if nobody answers in time) dropped by the expiry sweeper.

Every failure is reported through the result objects; neither entry point raises for bad input,
unknown ids or ledger failures.
"""

from __future__ import annotations

import logging
import secrets
from collections.abc import Sequence
from dataclasses import dataclass
from enum import StrEnum

from shopledger.actions.amounts import format_number
from shopledger.actions.composer import (
    DEFAULT_LOCALE,
    compose_message,
    compose_preview,
    compose_success,
    resolve_locale,
)
from shopledger.actions.executor import ExecutionOutcome, TransactionExecutor, bind_to_catalog
from shopledger.actions.models import ActionKind, ActionPayload, StagedAction
from shopledger.actions.pending import Clock, PendingActionStore, utc_now
from shopledger.actions.validator import validate
from shopledger.intent.parser import IntentClassifier, IntentParserError, ParseSource
from shopledger.ledger.base import (
    CatalogItem,
    DuplicateItemError,
    InsufficientStockError,
    ItemNotFoundError,
    RecordStore,
    RecordStoreError,
)

logger = logging.getLogger(__name__)

_MINT_ATTEMPTS = 5


class StageFailure(StrEnum):
    empty = "empty"
    classification = "classification"
    not_action = "not_action"
    validation = "validation"
    internal = "internal"


class ResolveStatus(StrEnum):
    executed = "executed"
    failed = "failed"
    cancelled = "cancelled"
    not_found = "not_found"
    forbidden = "forbidden"


class ErrorCode(StrEnum):
    item_not_found = "item_not_found"
    insufficient_stock = "insufficient_stock"
    duplicate_item = "duplicate_item"
    internal_failure = "internal_failure"


@dataclass(frozen=True)
class StageResult:
    """Outcome of `ActionEngine.stage`.

    `message` is always operator-ready text: the confirmation preview when staged, otherwise the
    localized explanation.
    """

    staged: bool
    message: str
    action: StagedAction | None = None
    confidence: float | None = None
    source: ParseSource | None = None
    failure: StageFailure | None = None
    reason: str | None = None

    @property
    def id(self) -> str | None:
        return self.action.id if self.action else None

    @property
    def kind(self) -> ActionKind | None:
        return self.action.kind if self.action else None


@dataclass(frozen=True)
class ResolveResult:
    """Outcome of `ActionEngine.resolve`."""

    status: ResolveStatus
    message: str
    kind: ActionKind | None = None
    outcome: ExecutionOutcome | None = None
    error: ErrorCode | None = None
    item_name: str | None = None

    @property
    def executed(self) -> bool:
        return self.status is ResolveStatus.executed

    @property
    def cancelled(self) -> bool:
        return self.status is ResolveStatus.cancelled


def mint_action_id(owner: str, clock: Clock = utc_now) -> str:
    """Build a fresh action id from the owner and the issue time.

    The random suffix keeps two requests from one owner in the same millisecond apart. Colons
    are replaced so the id can travel inside colon-separated callback payloads.
    """

    millis = int(clock().timestamp() * 1000)
    safe_owner = str(owner).replace(":", "-")
    return f"{safe_owner}_{millis}_{secrets.token_hex(4)}"


class ActionEngine:
    """Stages classified actions and resolves them against the record store."""

    def __init__(
            self,
            *,
            classifier: IntentClassifier,
            records: RecordStore,
            pending: PendingActionStore,
            executor: TransactionExecutor | None = None,
            default_locale: str = DEFAULT_LOCALE,
            clock: Clock = utc_now,
    ) -> None:
        self._classifier = classifier
        self._records = records
        self._pending = pending
        self._executor = executor or TransactionExecutor(records)
        self._default_locale = resolve_locale(default_locale)
        self._clock = clock

    async def _catalog(self, owner: str) -> Sequence[CatalogItem]:
        try:
            return await self._records.list_items(owner)
        except RecordStoreError:
            logger.warning("catalog unavailable for staging owner=%s", owner, exc_info=True)
            return ()

    def _not_staged(
            self,
            failure: StageFailure,
            reason: str,
            locale: str,
            *,
            confidence: float | None = None,
            source: ParseSource | None = None,
    ) -> StageResult:
        return StageResult(
            staged=False,
            message=compose_message("not_action", locale, reason=reason),
            confidence=confidence,
            source=source,
            failure=failure,
            reason=reason,
        )

    async def stage(self, owner: str, text: str, locale: str | None = None) -> StageResult:
        """Classify `text`, validate the proposed action and park it for confirmation."""

        locale = resolve_locale(locale, self._default_locale)
        if not (text or "").strip():
            return self._not_staged(StageFailure.empty, "Message is required", locale)

        catalog = await self._catalog(owner)
        try:
            parsed = await self._classifier.classify(
                text,
                catalog=tuple(item.name for item in catalog),
                locale=locale,
            )
        except IntentParserError as exc:
            logger.info("classification failed owner=%s reason=%s", owner, exc)
            return self._not_staged(StageFailure.classification, str(exc), locale)

        classification = parsed.classification
        if not classification.is_action:
            reason = classification.reason or "This is a query/question, not a database action"
            return self._not_staged(
                StageFailure.not_action,
                reason,
                locale,
                confidence=classification.confidence,
                source=parsed.source,
            )

        checked = validate(classification.action_type, classification.data)
        if not checked.ok:
            logger.info(
                "action rejected owner=%s kind=%s reason=%s",
                owner,
                classification.action_type,
                checked.reason,
            )
            return self._not_staged(
                StageFailure.validation,
                checked.reason or "Invalid action data",
                locale,
                confidence=classification.confidence,
                source=parsed.source,
            )

        action = self._park(owner, text, locale, bind_to_catalog(checked.payload, catalog))
        if action is None:
            logger.error("could not mint a unique action id owner=%s", owner)
            return StageResult(
                staged=False,
                message=compose_message("internal_failure", locale),
                confidence=classification.confidence,
                source=parsed.source,
                failure=StageFailure.internal,
                reason="could not mint a unique action id",
            )
        logger.info(
            "staged id=%s owner=%s kind=%s source=%s confidence=%s",
            action.id,
            owner,
            action.kind,
            parsed.source,
            classification.confidence,
        )
        return StageResult(
            staged=True,
            message=compose_preview(action.payload, locale),
            action=action,
            confidence=classification.confidence,
            source=parsed.source,
        )

    def _park(self, owner: str, text: str, locale: str, payload: ActionPayload) -> StagedAction | None:
        for _ in range(_MINT_ATTEMPTS):
            action = StagedAction(
                id=mint_action_id(owner, self._clock),
                owner=owner,
                payload=payload,
                locale=locale,
                issued_at=self._clock(),
                source_text=text,
            )
            if self._pending.put(action):
                return action
        return None

    async def resolve(
            self,
            owner: str,
            action_id: str,
            confirmed: bool,
            locale: str | None = None,
    ) -> ResolveResult:
        """Confirm or cancel a staged action.

        Only the owner may resolve an action; a foreign owner gets `forbidden` and the action stays
        pending. Otherwise the action is taken out of the store first, so it is consumed even if
        execution then fails.
        """

        pending = self._pending.get(action_id)
        if pending is None:
            logger.info("resolve id=%s owner=%s status=not_found", action_id, owner)
            return self._status(ResolveStatus.not_found, resolve_locale(locale, self._default_locale))

        if pending.owner != owner:
            logger.warning(
                "resolve id=%s owner=%s status=forbidden staged_by=%s",
                action_id,
                owner,
                pending.owner,
            )
            return self._status(ResolveStatus.forbidden, resolve_locale(locale, pending.locale))

        action = self._pending.take(action_id)
        if action is None:
            # Lost the race to a concurrent resolve or to the sweeper.
            logger.info("resolve id=%s owner=%s status=not_found", action_id, owner)
            return self._status(ResolveStatus.not_found, resolve_locale(locale, pending.locale))

        locale = resolve_locale(locale, action.locale)
        if not confirmed:
            logger.info("resolve id=%s owner=%s status=cancelled kind=%s", action_id, owner, action.kind)
            return ResolveResult(
                status=ResolveStatus.cancelled,
                message=compose_message("cancelled", locale),
                kind=action.kind,
            )

        return await self._execute(action, locale)

    def _status(self, status: ResolveStatus, locale: str) -> ResolveResult:
        return ResolveResult(status=status, message=compose_message(status.value, locale))

    async def _execute(self, action: StagedAction, locale: str) -> ResolveResult:
        try:
            outcome = await self._executor.execute(action.owner, action.payload)
        except ItemNotFoundError as exc:
            return self._failed(
                action,
                ErrorCode.item_not_found,
                exc.item_name,
                compose_message("item_not_found", locale, item=exc.item_name),
            )
        except InsufficientStockError as exc:
            return self._failed(
                action,
                ErrorCode.insufficient_stock,
                exc.item_name,
                compose_message(
                    "insufficient_stock",
                    locale,
                    item=exc.item_name,
                    available=format_number(exc.available),
                    requested=format_number(exc.requested),
                ),
            )
        except DuplicateItemError as exc:
            return self._failed(
                action,
                ErrorCode.duplicate_item,
                exc.item_name,
                compose_message("duplicate_item", locale, item=exc.item_name),
            )
        except Exception:
            logger.exception("execution failed id=%s owner=%s kind=%s", action.id, action.owner, action.kind)
            return self._failed(
                action,
                ErrorCode.internal_failure,
                None,
                compose_message("internal_failure", locale),
            )

        logger.info("resolve id=%s owner=%s status=executed kind=%s", action.id, action.owner, action.kind)
        return ResolveResult(
            status=ResolveStatus.executed,
            message=compose_success(outcome, locale),
            kind=action.kind,
            outcome=outcome,
        )

    def _failed(
            self,
            action: StagedAction,
            error: ErrorCode,
            item_name: str | None,
            message: str,
    ) -> ResolveResult:
        if error is not ErrorCode.internal_failure:
            logger.info(
                "resolve id=%s owner=%s status=failed kind=%s error=%s item=%s",
                action.id,
                action.owner,
                action.kind,
                error,
                item_name,
            )
        return ResolveResult(
            status=ResolveStatus.failed,
            message=message,
            kind=action.kind,
            error=error,
            item_name=item_name,
        )
