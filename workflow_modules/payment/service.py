"""
Payment Module Service (``workflow_modules.payment.service``).

Binds the payment transition table to the shared ``WorkflowFacade``.
Creation status depends on ``transactionType`` (Income -> Received,
Expense -> Paid); ``refund`` opens a refund request that a
decision-maker approves (Refunded) or declines.

Creating an Expense payment for a subscriber that already has payments
is a renewal: the subscriber's ISP activation and renewal dates are taken
from the payment and it returns to ``Active/approved``, so the daily
expiry sweep sees the new renewal date.
"""

from __future__ import annotations

from typing import Any, Mapping

from workflow_kernel.domain.records import Action, ActorRef, EntityType, TransactionType
from workflow_kernel.exceptions import InvalidTransitionError, RecordNotFoundError
from workflow_kernel.logging_config import get_logger
from workflow_kernel.services.decision_resolver import DecisionResult
from workflow_kernel.services.record_store import RecordStore
from workflow_modules.automation import as_date
from workflow_modules.facade import EntityDefinition, WorkflowFacade
from workflow_modules.payment.workflows import PAYMENT_TABLE
from workflow_modules.subscriber.service import SubscriberWorkflow

logger = get_logger("modules.payment.service")

PAYMENT_TRACKED_FIELDS = (
    "transactionMode",
    "amount",
    "activationDate",
    "expiryDate",
)

DATE_FIELDS = ("transactionDate", "activationDate", "expiryDate")

PAYMENT_DEFINITION = EntityDefinition(
    entity_type=EntityType.PAYMENT,
    id_prefix="TR-",
    id_digits=10,
    table=PAYMENT_TABLE,
    tracked_fields=PAYMENT_TRACKED_FIELDS,
    required_fields=(
        "subscriberId",
        "transactionType",
        "transactionMode",
        "transactionDate",
        "activationDate",
        "expiryDate",
        "amount",
    ),
    side_actions=frozenset({Action.REFUND}),
)


class PaymentWorkflow(WorkflowFacade):
    """Payment lifecycle operations.

    ``subscribers`` is the facade renewals go through; by default one is
    built over the same store.
    """

    definition = PAYMENT_DEFINITION

    def __init__(
        self,
        store: RecordStore,
        *args: Any,
        subscribers: SubscriberWorkflow | None = None,
        **kwargs: Any,
    ):
        super().__init__(store, *args, **kwargs)
        self._subscribers = subscribers or SubscriberWorkflow(store, clock=self._clock)

    def create(
        self,
        fields: Mapping[str, Any],
        actor: ActorRef,
        remark: str | None = None,
    ) -> DecisionResult:
        """Create a payment, renewing the subscriber first for a repeat expense.

        A renewal against an unknown subscriber aborts the payment.  A
        renewal the subscriber's workflow refuses (pending request, status
        that cannot renew) is logged and the payment is still created.
        """
        rejected = self._check_form(fields)
        if rejected is not None:
            return rejected
        if fields["transactionType"] == TransactionType.EXPENSE.value:
            aborted = self._renew_subscriber(fields, actor)
            if aborted is not None:
                return aborted
        return super().create(fields, actor, remark)

    def refund(self, entity_id: str, actor: ActorRef) -> DecisionResult:
        return self.side_action(entity_id, Action.REFUND, actor)

    def _check_form(self, fields: Mapping[str, Any]) -> DecisionResult | None:
        rejected = super()._check_form(fields)
        if rejected is not None:
            return rejected
        invalid = [name for name in DATE_FIELDS if as_date(fields.get(name)) is None]
        if not invalid:
            return None
        return DecisionResult.failure(InvalidTransitionError(
            self.entity_type.value, None, None, Action.PROPOSE_CREATE.value,
            f"invalid date format: {', '.join(invalid)}",
        ))

    def _renew_subscriber(self, fields: Mapping[str, Any], actor: ActorRef) -> DecisionResult | None:
        subscriber_id = str(fields["subscriberId"])
        if not any(p.get("subscriberId") == subscriber_id for p in self.list_records()):
            return None

        result = self._subscribers.renew(
            subscriber_id, actor, fields["activationDate"], fields["expiryDate"],
        )
        if isinstance(result.error, RecordNotFoundError):
            return DecisionResult.failure(result.error)
        if not result.ok:
            logger.warning(
                "subscriber_renewal_skipped",
                extra={"subscriber_id": subscriber_id, "error_code": result.error_code},
            )
        return None
