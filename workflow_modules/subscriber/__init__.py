"""Subscriber workflow module: transition table and facade."""

from workflow_modules.subscriber.service import SUBSCRIBER_DEFINITION, SubscriberWorkflow
from workflow_modules.subscriber.workflows import SUBSCRIBER_TABLE

__all__ = ["SUBSCRIBER_DEFINITION", "SUBSCRIBER_TABLE", "SubscriberWorkflow"]
