"""Customer domain service."""

from typing import Optional
from szamla.database.base import Database
from szamla.domain.entities import Customer as CustomerEntity
from szamla.domain.errors import ConflictError, ValidationError


class CustomerService:
    """Service for managing customers."""

    def __init__(self, db: Database):
        """Initialize customer service.

        Args:
            db: Database instance
        """
        self.db = db

    def create_customer(
        self,
        name: str,
        tax_number: Optional[str] = None,
        eu_tax_number: Optional[str] = None,
        zip_code: Optional[str] = None,
        city: Optional[str] = None,
        address: Optional[str] = None,
        country: str = "HU",
        email: Optional[str] = None,
        phone: Optional[str] = None,
        payment_deadline_days: int = 8,
        is_company: bool = True,
    ) -> int:
        """Create a new customer.

        Args:
            name: Customer name (unique)
            tax_number: Hungarian tax number
            eu_tax_number: EU VAT number
            zip_code: Postal code
            city: City
            address: Street address
            country: ISO country code
            email: Contact e-mail
            phone: Contact phone
            payment_deadline_days: Days between issue date and payment deadline
            is_company: False for private individuals

        Returns:
            Customer ID

        Raises:
            ValidationError: If name is empty or payment days are negative
            ConflictError: If a customer with the same name exists
        """
        name = name.strip()
        if not name:
            raise ValidationError("Customer name cannot be empty")
        if payment_deadline_days < 0:
            raise ValidationError("Payment deadline days cannot be negative")
        if self.db.get_customer_by_name(name) is not None:
            raise ConflictError(f"Customer with name '{name}' already exists")

        return self.db.create_customer(
            name=name,
            tax_number=tax_number,
            eu_tax_number=eu_tax_number,
            zip_code=zip_code,
            city=city,
            address=address,
            country=country,
            email=email,
            phone=phone,
            payment_deadline_days=payment_deadline_days,
            is_company=is_company,
        )

    def get_customer(self, customer_id: int) -> Optional[CustomerEntity]:
        """Get customer by ID.

        Returns:
            Customer entity or None if not found
        """
        return self.db.get_customer(customer_id)

    def find_by_name(self, name: str) -> Optional[CustomerEntity]:
        """Get customer by exact name."""
        return self.db.get_customer_by_name(name)

    def list_customers(self, active_only: bool = False) -> list[CustomerEntity]:
        """List customers ordered by name."""
        return self.db.list_customers(active_only=active_only)
