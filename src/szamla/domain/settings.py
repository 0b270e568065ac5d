"""Company settings domain service."""

from dataclasses import fields, replace
from decimal import Decimal, InvalidOperation

from szamla.billing.base import BackendType
from szamla.database.base import Database
from szamla.domain.entities import CompanySettings
from szamla.domain.errors import ValidationError

# Fields that are maintained by the database, not by users.
READ_ONLY_FIELDS = frozenset({"updated_at"})

EDITABLE_FIELDS = tuple(f.name for f in fields(CompanySettings) if f.name not in READ_ONLY_FIELDS)


class CompanySettingsService:
    """Service for reading and changing the seller's company settings."""

    def __init__(self, db: Database):
        """Initialize company settings service.

        Args:
            db: Database instance
        """
        self.db = db

    def get_settings(self) -> CompanySettings:
        """Get current settings (defaults are created on first use)."""
        return self.db.get_company_settings()

    def update_settings(self, **changes) -> CompanySettings:
        """Update one or more settings fields.

        Args:
            **changes: Field names of CompanySettings and their new values

        Returns:
            The stored settings

        Raises:
            ValidationError: If a field is unknown or a value is invalid
        """
        unknown = sorted(set(changes) - set(EDITABLE_FIELDS))
        if unknown:
            raise ValidationError(f"Unknown setting(s): {', '.join(unknown)}")

        if changes.get("invoicing_backend") is not None:
            code = str(changes["invoicing_backend"]).strip().upper()
            if code not in {b.value for b in BackendType}:
                valid = ", ".join(b.value for b in BackendType)
                raise ValidationError(f"Unknown invoicing backend '{code}'. Valid backends: {valid}")
            changes["invoicing_backend"] = code

        if "default_vat_rate" in changes:
            try:
                rate = Decimal(str(changes["default_vat_rate"]))
            except InvalidOperation as e:
                raise ValidationError(f"Invalid default VAT rate '{changes['default_vat_rate']}'") from e
            if not rate.is_finite() or rate < 0 or rate > 100:
                raise ValidationError("Default VAT rate must be between 0 and 100")
            changes["default_vat_rate"] = rate

        for required in ("company_name", "country_code"):
            if required in changes and changes[required] is None:
                changes[required] = ""

        days = changes.get("default_payment_deadline_days", 0)
        if days is None or int(days) < 0:
            raise ValidationError("Default payment deadline days cannot be negative")

        if "default_currency" in changes:
            currency = (changes["default_currency"] or "").strip().upper()
            if len(currency) != 3:
                raise ValidationError("Currency must be a three-letter code, e.g. HUF")
            changes["default_currency"] = currency

        settings = replace(self.db.get_company_settings(), **changes)
        return self.db.save_company_settings(settings)

    def backend_type(self) -> BackendType:
        """Return the configured invoicing backend, NAV_EXPORT if unset or unknown."""
        return BackendType.from_code(self.get_settings().invoicing_backend)
