"""Payment allocation tests.

- process_payment: validation, status transitions, error cases
- process_bulk_payment: ordered allocation and leftover
- withdraw_balance
"""
import pytest

from billing.errors import (
    ValidationError, InvoiceNotFound, AlreadyPaid, InvoiceCancelled,
    Overpayment, InsufficientBalance, CustomerNotFound,
)
from database.models import Customer, Invoice, Payment


@pytest.fixture
def invoice_id(make_invoice, customer, room):
    """A pending 60.00 invoice for one hour in the room."""
    return make_invoice(customer.id, room.id, minutes=60)


class TestProcessPayment:
    """Tests for process_payment."""

    def test_partial_then_full(self, billing, temp_db, customer, invoice_id):
        billing.process_payment(invoice_id, 2500, "card")
        invoice = billing.invoices.get_invoice(invoice_id)
        assert invoice.status == "partially_paid"
        assert invoice.paid_amount == 2500
        assert invoice.paid_date is None

        billing.process_payment(invoice_id, 3500)
        invoice = billing.invoices.get_invoice(invoice_id)
        assert invoice.status == "paid"
        assert invoice.paid_amount == 6000
        assert invoice.paid_date is not None
        assert [p.amount for p in invoice.payments] == [2500, 3500]
        assert temp_db.customers.get(customer.id).total_spent == 6000

    def test_non_positive_amount(self, billing, invoice_id):
        with pytest.raises(ValidationError):
            billing.process_payment(invoice_id, 0)
        with pytest.raises(ValidationError):
            billing.process_payment(invoice_id, -100)

    def test_invalid_method(self, billing, invoice_id):
        with pytest.raises(ValidationError):
            billing.process_payment(invoice_id, 100, "bitcoin")

    def test_unknown_invoice(self, billing):
        with pytest.raises(InvoiceNotFound):
            billing.process_payment(99999, 100)

    def test_overpayment_records_nothing(self, billing, base_crud, invoice_id):
        with pytest.raises(Overpayment) as exc_info:
            billing.process_payment(invoice_id, 6001)

        assert exc_info.value.remaining == 6000
        assert base_crud.count(Payment) == 0
        assert billing.invoices.get_invoice(invoice_id).paid_amount == 0

    def test_already_paid(self, billing, invoice_id):
        billing.process_payment(invoice_id, 6000)
        with pytest.raises(AlreadyPaid):
            billing.process_payment(invoice_id, 1)

    def test_cancelled_invoice(self, billing, base_crud, invoice_id):
        base_crud.update_by_id(Invoice, invoice_id, status="cancelled")
        with pytest.raises(InvoiceCancelled):
            billing.process_payment(invoice_id, 100)


class TestBulkPayment:
    """Tests for process_bulk_payment."""

    def test_allocates_in_order(self, billing, make_invoice, customer, desk, room,
                                temp_db):
        """50.00 and 80.00 invoices paid with 100.00."""
        first = make_invoice(customer.id, desk.id, minutes=150)
        second = make_invoice(customer.id, room.id, minutes=80)
        assert billing.invoices.get_invoice(first).total == 5000
        assert billing.invoices.get_invoice(second).total == 8000

        leftover = billing.process_bulk_payment([first, second], 10000)

        a = billing.invoices.get_invoice(first)
        b = billing.invoices.get_invoice(second)
        assert leftover == 0
        assert (a.status, a.paid_amount) == ("paid", 5000)
        assert (b.status, b.paid_amount) == ("partially_paid", 5000)
        assert temp_db.customers.get(customer.id).total_spent == 10000

    def test_leftover_is_returned(self, billing, invoice_id, base_crud):
        leftover = billing.process_bulk_payment([invoice_id], 7000)
        assert leftover == 1000
        assert billing.invoices.get_invoice(invoice_id).status == "paid"
        assert base_crud.count(Payment) == 1

    def test_skips_paid_invoices(self, billing, make_invoice, customer, desk, room):
        first = make_invoice(customer.id, desk.id, minutes=60)
        second = make_invoice(customer.id, room.id, minutes=60)
        billing.process_payment(first, 2000)

        assert billing.process_bulk_payment([first, second], 1000) == 0
        assert billing.invoices.get_invoice(second).paid_amount == 1000

    def test_empty_list_or_zero_amount(self, billing, invoice_id, base_crud):
        assert billing.process_bulk_payment([], 1000) == 0
        assert billing.process_bulk_payment([invoice_id], 0) == 0
        assert base_crud.count(Payment) == 0

    def test_unknown_invoice_rolls_back_batch(self, billing, invoice_id, base_crud):
        with pytest.raises(InvoiceNotFound):
            billing.process_bulk_payment([invoice_id, 99999], 10000)
        assert base_crud.count(Payment) == 0
        assert billing.invoices.get_invoice(invoice_id).paid_amount == 0


class TestWithdrawBalance:
    """Tests for withdraw_balance."""

    def test_withdraw(self, billing, base_crud, customer):
        base_crud.update_by_id(Customer, customer.id, balance=3000)
        billing.withdraw_balance(customer.id, 1200)

        assert base_crud.get_by_id(Customer, customer.id).balance == 1800
        refund = base_crud.get_all(Payment)[-1]
        assert refund.amount == -1200
        assert refund.payment_type == "refund"
        voucher = base_crud.get_by_id(Invoice, refund.invoice_id)
        assert voucher.total == 0
        assert voucher.status == "paid"
        assert voucher.invoice_number.startswith("WDR-")

    def test_insufficient_balance(self, billing, customer):
        with pytest.raises(InsufficientBalance):
            billing.withdraw_balance(customer.id, 1)

    def test_unknown_customer(self, billing):
        with pytest.raises(CustomerNotFound):
            billing.withdraw_balance(99999, 100)
