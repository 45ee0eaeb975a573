"""
Subscriber Module Service (``workflow_modules.subscriber.service``).

Responsibility
--------------
Binds the subscriber transition table to the shared ``WorkflowFacade``
and adds the suspend/reactivate conveniences.

Architecture position
---------------------
**Modules layer** -- thin facade.  All state changes go through
``WorkflowFacade`` and the kernel ``DecisionResolver``.

Usage::

    workflow = SubscriberWorkflow(store, clock=clock)
    created = workflow.create({"customerName": "Acme", ...}, actor)
    workflow.decide(created.record.record_id, "approve", approver)
    workflow.suspend(created.record.record_id, actor)
"""

from __future__ import annotations

from workflow_kernel.domain.records import Action, ActorRef, EntityType
from workflow_kernel.services.decision_resolver import DecisionResult
from workflow_modules.facade import EntityDefinition, WorkflowFacade
from workflow_modules.subscriber.workflows import SUBSCRIBER_TABLE

SUBSCRIBER_TRACKED_FIELDS = (
    "customerName",
    "siteName",
    "siteCode",
    "siteAddress",
    "localContact.name",
    "localContact.contact",
    "ispInfo.name",
    "ispInfo.contact",
    "ispInfo.broadbandPlan",
    "ispInfo.numberOfMonths",
    "ispInfo.otc",
    "ispInfo.mrc",
    "credentials.username",
    "credentials.password",
    "credentials.circuitId",
    "credentials.accountId",
)

SUBSCRIBER_DEFINITION = EntityDefinition(
    entity_type=EntityType.SUBSCRIBER,
    id_prefix="SUB-",
    id_digits=5,
    table=SUBSCRIBER_TABLE,
    tracked_fields=SUBSCRIBER_TRACKED_FIELDS,
    required_fields=("customerName", "siteName", "siteAddress"),
    side_actions=frozenset({Action.SUSPEND, Action.REACTIVATE}),
    system_actions=frozenset({Action.EXPIRE, Action.RENEW}),
)


class SubscriberWorkflow(WorkflowFacade):
    """Subscriber lifecycle operations."""

    definition = SUBSCRIBER_DEFINITION

    def suspend(self, entity_id: str, actor: ActorRef) -> DecisionResult:
        """Request suspension (or lifting of an existing suspension)."""
        return self.side_action(entity_id, Action.SUSPEND, actor)

    def reactivate(self, entity_id: str, actor: ActorRef) -> DecisionResult:
        return self.side_action(entity_id, Action.REACTIVATE, actor)

    def expire(self, entity_id: str, actor: ActorRef) -> DecisionResult:
        """Move an Active subscriber past its renewal date to InActive."""
        return self.system_action(entity_id, Action.EXPIRE, actor)

    def renew(
        self,
        entity_id: str,
        actor: ActorRef,
        activation_date: str,
        renewal_date: str,
    ) -> DecisionResult:
        """Apply a paid renewal: new ISP dates and Active/approved."""
        return self.system_action(
            entity_id, Action.RENEW, actor,
            extra={"ispInfo": {"currentActivationDate": activation_date, "renewalDate": renewal_date}},
        )
