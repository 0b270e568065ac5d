"""SQLAlchemy models for szamla database."""

from datetime import datetime, UTC
from sqlalchemy import (
    Column,
    Integer,
    String,
    ForeignKey,
    DateTime,
    Date,
    Numeric,
    Boolean,
    create_engine,
)
from sqlalchemy.orm import declarative_base, relationship, sessionmaker, Session

Base = declarative_base()

# Seconds a SQLite connection waits for a competing writer before failing.
SQLITE_BUSY_TIMEOUT = 30


class Customer(Base):
    """Customer (buyer) model."""

    __tablename__ = "customers"

    id = Column(Integer, primary_key=True)
    name = Column(String, nullable=False)
    tax_number = Column(String, nullable=True)
    eu_tax_number = Column(String, nullable=True)
    zip_code = Column(String, nullable=True)
    city = Column(String, nullable=True)
    address = Column(String, nullable=True)
    country = Column(String, default="HU", nullable=False)
    email = Column(String, nullable=True)
    phone = Column(String, nullable=True)
    payment_deadline_days = Column(Integer, default=8, nullable=False)
    is_active = Column(Boolean, default=True, nullable=False)
    is_company = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime, default=lambda: datetime.now(UTC), nullable=False)

    # Relationships
    invoices = relationship("Invoice", back_populates="customer")


class CompanySettings(Base):
    """Singleton row with seller data and billing configuration."""

    __tablename__ = "company_settings"

    id = Column(Integer, primary_key=True)
    company_name = Column(String, default="", nullable=False)
    address = Column(String, nullable=True)
    zip_code = Column(String, nullable=True)
    city = Column(String, nullable=True)
    country_code = Column(String, default="HU", nullable=False)
    tax_number = Column(String, nullable=True)
    eu_tax_number = Column(String, nullable=True)
    bank_name = Column(String, nullable=True)
    bank_account = Column(String, nullable=True)
    email = Column(String, nullable=True)
    phone = Column(String, nullable=True)
    invoicing_backend = Column(String, default="NAV_EXPORT", nullable=True)
    szamlazz_agent_key = Column(String, nullable=True)
    billingo_api_key = Column(String, nullable=True)
    billingo_block_id = Column(Integer, nullable=True)
    default_currency = Column(String, default="HUF", nullable=False)
    default_payment_deadline_days = Column(Integer, default=8, nullable=False)
    default_vat_rate = Column(Numeric(5, 2), default=27, nullable=False)
    invoice_footer_text = Column(String, nullable=True)
    updated_at = Column(DateTime, default=lambda: datetime.now(UTC), nullable=False)


class SequenceCounter(Base):
    """Invoice number counter, one row per sequence key."""

    __tablename__ = "sequence_counters"

    sequence_key = Column(String, primary_key=True)
    prefix = Column(String, nullable=False)
    next_number = Column(Integer, nullable=False)


class Invoice(Base):
    """Invoice header model."""

    __tablename__ = "invoices"

    id = Column(Integer, primary_key=True)
    invoice_number = Column(String, unique=True, nullable=True)
    customer_id = Column(Integer, ForeignKey("customers.id"), nullable=True)
    issue_date = Column(Date, nullable=True)
    delivery_date = Column(Date, nullable=True)
    payment_deadline = Column(Date, nullable=True)
    payment_date = Column(Date, nullable=True)
    payment_method = Column(String, nullable=True)
    currency = Column(String, nullable=True)
    exchange_rate = Column(Numeric(12, 6), nullable=True)
    net_amount = Column(Numeric(14, 2), default=0, nullable=False)
    vat_amount = Column(Numeric(14, 2), default=0, nullable=False)
    gross_amount = Column(Numeric(14, 2), default=0, nullable=False)
    status = Column(String, default="DRAFT", nullable=False)
    is_paid = Column(Boolean, default=False, nullable=False)
    is_sent = Column(Boolean, default=False, nullable=False)
    transaction_id = Column(String, nullable=True)
    sent_at = Column(DateTime, nullable=True)
    external_id = Column(String, nullable=True)
    document_url = Column(String, nullable=True)
    billing_backend = Column(String, nullable=True)
    is_reverse_charge = Column(Boolean, default=False, nullable=False)
    is_cash_accounting = Column(Boolean, default=False, nullable=False)
    notes = Column(String, nullable=True)
    footer_text = Column(String, nullable=True)
    created_at = Column(DateTime, default=lambda: datetime.now(UTC), nullable=False)
    updated_at = Column(DateTime, default=lambda: datetime.now(UTC), nullable=False)

    # Relationships
    customer = relationship("Customer", back_populates="invoices")
    items = relationship(
        "InvoiceItem",
        back_populates="invoice",
        cascade="all, delete-orphan",
        order_by="InvoiceItem.line_number",
    )


class InvoiceItem(Base):
    """Invoice line model."""

    __tablename__ = "invoice_items"

    id = Column(Integer, primary_key=True)
    invoice_id = Column(Integer, ForeignKey("invoices.id"), nullable=False)
    line_number = Column(Integer, nullable=False)
    description = Column(String, nullable=False)
    unit_of_measure = Column(String, default="db", nullable=False)
    quantity = Column(Numeric(14, 4), nullable=False)
    unit_price = Column(Numeric(14, 4), nullable=False)
    vat_rate = Column(Numeric(5, 2), nullable=True)
    vat_exemption_reason = Column(String, nullable=True)
    vat_exemption_code = Column(String, nullable=True)
    discount_percent = Column(Numeric(5, 2), default=0, nullable=False)
    discount_amount = Column(Numeric(14, 2), default=0, nullable=False)
    net_amount = Column(Numeric(14, 2), nullable=False)
    vat_amount = Column(Numeric(14, 2), nullable=False)
    gross_amount = Column(Numeric(14, 2), nullable=False)
    notes = Column(String, nullable=True)

    # Relationships
    invoice = relationship("Invoice", back_populates="items")


def create_session_factory(database_url: str) -> sessionmaker[Session]:
    """Create a SQLAlchemy session factory."""
    connect_args = {}
    if database_url.startswith("sqlite"):
        # Sessions are opened per allocation from worker threads.
        connect_args = {"check_same_thread": False, "timeout": SQLITE_BUSY_TIMEOUT}
    engine = create_engine(database_url, echo=False, connect_args=connect_args)
    Base.metadata.create_all(engine)
    return sessionmaker(bind=engine)
