"""收款分配 —— 单笔收款、批量收款与余额提现。

每次收款都追加一条 Payment 流水，并同步更新账单已付金额、状态
以及顾客累计消费，全部在一个事务内完成。
"""
from datetime import datetime
from typing import Optional, List
from sqlalchemy.orm import Session
from loguru import logger

from config.billing_config import billing_config
from database.base_crud import BaseCRUD
from database.connection import DatabaseConnection
from database.models import Invoice, Payment, Customer
from .errors import (
    ValidationError, InvoiceNotFound, CustomerNotFound, AlreadyPaid,
    InvoiceCancelled, Overpayment, InsufficientBalance
)
from .invoices import InvoiceGenerator
from .money import format_amount


class PaymentAllocator(BaseCRUD):
    """收款分配器。"""

    def __init__(self, conn: DatabaseConnection,
                 invoices: InvoiceGenerator) -> None:
        super().__init__(conn)
        self._invoices = invoices

    @staticmethod
    def _check_method(method: str) -> None:
        if method not in billing_config.get_payment_methods():
            raise ValidationError(f"invalid payment method: {method}")

    def _get_invoice(self, sess: Session, invoice_id: int) -> Invoice:
        invoice = sess.query(Invoice).filter(Invoice.id == invoice_id).first()
        if invoice is None:
            raise InvoiceNotFound(invoice_id)
        return invoice

    @staticmethod
    def _apply(sess: Session, invoice: Invoice, amount: int, method: str,
               notes: Optional[str], count_spent: bool = True) -> Payment:
        """记一笔收款并更新账单与顾客累计消费。

        count_spent 为 False 时不计入累计消费。
        """
        now = datetime.now()
        payment = Payment(
            invoice_id=invoice.id,
            amount=amount,
            method=method,
            payment_type="payment",
            date=now,
            notes=notes,
        )
        sess.add(payment)

        invoice.paid_amount += amount
        if invoice.paid_amount >= invoice.total:
            invoice.status = "paid"
            invoice.paid_date = now
        else:
            invoice.status = "partially_paid"

        customer = sess.query(Customer).filter(
            Customer.id == invoice.customer_id
        ).first()
        if customer is None:
            raise CustomerNotFound(invoice.customer_id)
        if count_spent:
            customer.total_spent += amount
        sess.flush()
        return payment

    def process_payment(self, invoice_id: int, amount: int,
                        method: str = "cash", notes: Optional[str] = None,
                        session: Optional[Session] = None) -> Payment:
        """对一张账单收款。

        Args:
            invoice_id: 账单ID。
            amount: 收款金额，必须为正且不超过剩余应付。
            method: cash / card / transfer。
            notes: 备注（可选）。
            session: 外部会话（可选）。

        Returns:
            新建的 Payment。

        Raises:
            ValidationError: 金额不为正或收款方式无效。
            InvoiceNotFound: 账单不存在。
            InvoiceCancelled: 账单已作废。
            AlreadyPaid: 账单已付清。
            Overpayment: 金额超过剩余应付。
        """
        if amount <= 0:
            raise ValidationError("payment amount must be positive")
        self._check_method(method)

        def _do(sess):
            invoice = self._get_invoice(sess, invoice_id)
            if invoice.status == "cancelled":
                raise InvoiceCancelled(invoice_id)
            remaining = invoice.total - invoice.paid_amount
            if remaining <= 0:
                raise AlreadyPaid(invoice_id)
            if amount > remaining:
                raise Overpayment(invoice_id, amount, remaining)
            return self._apply(sess, invoice, amount, method, notes)

        payment = self._run(_do, session)
        logger.info(
            f"Payment of {format_amount(amount)} ({method}) recorded "
            f"on invoice {invoice_id}"
        )
        return payment

    def process_bulk_payment(self, invoice_ids: List[int], amount: int,
                             method: str = "cash",
                             notes: Optional[str] = None,
                             session: Optional[Session] = None) -> int:
        """用一笔款按给定顺序依次冲抵多张账单。

        每张账单收 ``min(剩余款, 应付)``，款项用完即停止。已付清或已作废的
        账单跳过。账单都付清后仍有剩余时，剩余部分不入账，返回给调用方。

        Args:
            invoice_ids: 账单ID列表，按此顺序分配。
            amount: 总金额。
            method: cash / card / transfer。
            notes: 备注（可选）。

        Returns:
            未分配的剩余金额。列表为空或金额不为正时不做任何操作，返回 0。

        Raises:
            InvoiceNotFound: 任一账单不存在（整批回滚）。
        """
        if not invoice_ids or amount <= 0:
            return 0
        self._check_method(method)

        def _do(sess):
            remaining = amount
            for invoice_id in invoice_ids:
                if remaining <= 0:
                    break
                invoice = self._get_invoice(sess, invoice_id)
                if invoice.status == "cancelled":
                    continue
                due = invoice.total - invoice.paid_amount
                if due <= 0:
                    continue
                portion = min(remaining, due)
                self._apply(sess, invoice, portion, method, notes)
                remaining -= portion
            return remaining

        leftover = self._run(_do, session)
        logger.info(
            f"Bulk payment of {format_amount(amount)} ({method}) allocated "
            f"across {len(invoice_ids)} invoice(s)"
        )
        if leftover > 0:
            logger.warning(
                f"Bulk payment left {format_amount(leftover)} unallocated"
            )
        return leftover

    def pay_from_balance(self, sess: Session, invoice: Invoice) -> bool:
        """用顾客余额全额支付账单。

        余额不足以付清剩余应付时不做任何操作（不支持部分抵扣）。
        余额抵扣不计入累计消费。

        Returns:
            是否已支付。
        """
        due = invoice.total - invoice.paid_amount
        if due <= 0:
            return False
        customer = sess.query(Customer).filter(
            Customer.id == invoice.customer_id
        ).first()
        if customer is None or customer.balance < due:
            return False

        customer.balance -= due
        self._apply(sess, invoice, due, "balance", "Paid from balance",
                    count_spent=False)
        return True

    def withdraw_balance(self, customer_id: int, amount: int,
                         method: str = "cash",
                         notes: Optional[str] = None,
                         session: Optional[Session] = None) -> Payment:
        """顾客余额提现。

        生成一张总额为 0 的已付提现账单，记一笔负数退款流水并扣减余额。

        Raises:
            ValidationError: 金额不为正或方式无效。
            CustomerNotFound: 顾客不存在。
            InsufficientBalance: 余额不足。
        """
        if amount <= 0:
            raise ValidationError("withdrawal amount must be positive")
        self._check_method(method)

        def _do(sess):
            customer = self.get_by_id(Customer, customer_id, session=sess)
            if customer is None:
                raise CustomerNotFound(customer_id)
            if customer.balance < amount:
                raise InsufficientBalance(customer_id, customer.balance, amount)

            invoice = self._invoices.create_withdrawal_invoice(sess, customer_id)
            payment = Payment(
                invoice_id=invoice.id,
                amount=-amount,
                method=method,
                payment_type="refund",
                date=datetime.now(),
                notes=notes or "Balance withdrawal",
            )
            sess.add(payment)
            customer.balance -= amount
            sess.flush()
            return payment

        payment = self._run(_do, session)
        logger.info(
            f"Customer {customer_id} withdrew {format_amount(amount)} "
            f"from balance ({method})"
        )
        return payment
