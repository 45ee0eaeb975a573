"""
Entity workflow modules.

Importing this package registers the subscriber, payment, employee and
ticket transition tables with the kernel.  Each entity package holds a
declarative ``workflows.py`` and a thin ``service.py`` facade over
``workflow_modules.facade.WorkflowFacade``.
"""

from workflow_modules.employee.service import EmployeeWorkflow
from workflow_modules.facade import EntityDefinition, WorkflowFacade
from workflow_modules.payment.service import PaymentWorkflow
from workflow_modules.subscriber.service import SubscriberWorkflow
from workflow_modules.ticket.service import TicketWorkflow

__all__ = [
    "EmployeeWorkflow",
    "EntityDefinition",
    "PaymentWorkflow",
    "SubscriberWorkflow",
    "TicketWorkflow",
    "WorkflowFacade",
]
