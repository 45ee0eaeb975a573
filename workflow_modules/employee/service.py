"""
Employee Module Service (``workflow_modules.employee.service``).

Binds the employee transition table to the shared ``WorkflowFacade`` and
adds deactivate/reactivate conveniences.  ``roles`` is tracked as a whole
list: a proposal that reorders roles is a change.
"""

from __future__ import annotations

from workflow_kernel.domain.records import Action, ActorRef, EntityType
from workflow_kernel.services.decision_resolver import DecisionResult
from workflow_modules.employee.workflows import EMPLOYEE_TABLE
from workflow_modules.facade import EntityDefinition, WorkflowFacade

EMPLOYEE_DEFINITION = EntityDefinition(
    entity_type=EntityType.EMPLOYEE,
    id_prefix="EMP-",
    id_digits=5,
    table=EMPLOYEE_TABLE,
    tracked_fields=("name", "email", "contact", "roles"),
    required_fields=("name", "email", "contact"),
    side_actions=frozenset({Action.DEACTIVATE, Action.REACTIVATE}),
)


class EmployeeWorkflow(WorkflowFacade):
    """Employee lifecycle operations."""

    definition = EMPLOYEE_DEFINITION

    def deactivate(self, entity_id: str, actor: ActorRef) -> DecisionResult:
        return self.side_action(entity_id, Action.DEACTIVATE, actor)

    def reactivate(self, entity_id: str, actor: ActorRef) -> DecisionResult:
        return self.side_action(entity_id, Action.REACTIVATE, actor)
