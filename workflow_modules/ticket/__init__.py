"""Ticket workflow module: transition table and facade."""

from workflow_modules.ticket.service import TICKET_DEFINITION, TicketWorkflow
from workflow_modules.ticket.workflows import TICKET_TABLE

__all__ = ["TICKET_DEFINITION", "TICKET_TABLE", "TicketWorkflow"]
