"""Utility for resolving customer names to IDs."""

from szamla.domain.customer import CustomerService
from szamla.domain.errors import NotFoundError


def resolve_customer(customer_service: CustomerService, customer: str | int) -> int:
    """Resolve customer name or ID to customer ID.

    Args:
        customer_service: CustomerService instance
        customer: Customer name (str) or ID (int or string representation of int)

    Returns:
        Customer ID

    Raises:
        NotFoundError: If customer is not found
    """
    try:
        customer_id = int(customer)
    except (ValueError, TypeError):
        customer_id = None

    if customer_id is not None:
        if customer_service.get_customer(customer_id) is None:
            raise NotFoundError(f"Customer ID {customer_id} not found")
        return customer_id

    found = customer_service.find_by_name(str(customer))
    if found is None:
        raise NotFoundError(f"Customer '{customer}' not found")
    return found.id
