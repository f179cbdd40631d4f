"""Exceptions raised at the pricing-plan store boundary."""


class MalformedPricingPlan(Exception):
    """A stored pricing plan row failed validation."""

    def __init__(self, service_type: str, detail: str):
        self.service_type = service_type
        self.detail = detail
        super().__init__(f"Pricing plan for '{service_type}' is malformed: {detail}")
