"""Billing, returns and purchase workflows."""

from pharmabill.services.billing import BillingSession, DraftState
from pharmabill.services.purchases import receive_purchase
from pharmabill.services.returns import process_return

__all__ = ["BillingSession", "DraftState", "process_return", "receive_purchase"]
