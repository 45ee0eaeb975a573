"""Payment workflow module: transition table and facade."""

from workflow_modules.payment.service import PAYMENT_DEFINITION, PaymentWorkflow
from workflow_modules.payment.workflows import PAYMENT_TABLE

__all__ = ["PAYMENT_DEFINITION", "PAYMENT_TABLE", "PaymentWorkflow"]
