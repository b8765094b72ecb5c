"""账单生成 —— 从已结束的时段或新订阅生成账单与明细行。"""
from datetime import datetime, timedelta
from typing import Optional, List
from sqlalchemy.orm import Session
from loguru import logger

from config.settings import settings
from database.base_crud import BaseCRUD
from database.connection import DatabaseConnection
from database.models import (
    Invoice, LineItem, InventoryConsumption, SessionRecord, Resource
)
from .money import format_amount


class InvoiceGenerator(BaseCRUD):
    """账单生成器。

    账单编号格式为 ``<前缀>-<YYYYMMDDHHMMSS>-<账单ID>``。时间戳只用于
    可读性，唯一性由自增ID保证，同一秒内生成多张账单也不会重复。
    """

    def __init__(self, conn: DatabaseConnection) -> None:
        super().__init__(conn)

    @staticmethod
    def _due_date(now: datetime) -> datetime:
        return now + timedelta(days=settings.invoice_due_days)

    @staticmethod
    def _assign_number(sess: Session, invoice: Invoice, prefix: str,
                       now: datetime) -> None:
        sess.add(invoice)
        sess.flush()
        invoice.invoice_number = (
            f"{prefix}-{now:%Y%m%d%H%M%S}-{invoice.id:06d}"
        )
        sess.flush()

    def create_invoice_from_session(self, sess: Session,
                                    session: SessionRecord
                                    ) -> Optional[Invoice]:
        """为已结束的时段生成账单。

        总金额为 0 的时段（例如订阅用户且无消费）不生成账单，也不写明细行。

        Args:
            sess: 调用方事务会话。
            session: 已结束的时段。

        Returns:
            新建的 Invoice，免费时段返回 None。
        """
        if session.total_amount <= 0:
            return None

        now = datetime.now()
        invoice = Invoice(
            customer_id=session.customer_id,
            session_id=session.id,
            amount=session.total_amount,
            discount=0,
            total=session.total_amount,
            paid_amount=0,
            status="pending",
            due_date=self._due_date(now),
        )
        self._assign_number(sess, invoice, "INV", now)

        resource = sess.query(Resource).filter(
            Resource.id == session.resource_id
        ).first()
        resource_name = resource.name if resource else str(session.resource_id)
        sess.add(LineItem(
            invoice_id=invoice.id,
            description=f"Session at {resource_name}",
            quantity=1,
            rate=session.session_cost,
            amount=session.session_cost,
        ))

        consumptions = sess.query(InventoryConsumption).filter(
            InventoryConsumption.session_id == session.id
        ).order_by(InventoryConsumption.id).all()
        for c in consumptions:
            sess.add(LineItem(
                invoice_id=invoice.id,
                description=c.item_name,
                quantity=c.quantity,
                rate=c.price,
                amount=c.price * c.quantity,
            ))

        sess.flush()
        logger.info(
            f"Invoice {invoice.invoice_number} created for session {session.id}: "
            f"{format_amount(invoice.total)}"
        )
        return invoice

    def create_subscription_invoice(self, sess: Session, customer_id: int,
                                    plan_type: str, price: int) -> Invoice:
        """为新订阅生成未付账单（一行套餐明细）。"""
        now = datetime.now()
        invoice = Invoice(
            customer_id=customer_id,
            amount=price,
            discount=0,
            total=price,
            paid_amount=0,
            status="unpaid",
            due_date=self._due_date(now),
        )
        self._assign_number(sess, invoice, "SUB", now)
        sess.add(LineItem(
            invoice_id=invoice.id,
            description=f"Subscription: {plan_type} Plan",
            quantity=1,
            rate=price,
            amount=price,
        ))
        sess.flush()
        logger.info(
            f"Invoice {invoice.invoice_number} created for {plan_type} "
            f"subscription of customer {customer_id}: {format_amount(price)}"
        )
        return invoice

    def create_withdrawal_invoice(self, sess: Session,
                                  customer_id: int) -> Invoice:
        """生成余额提现凭证账单（总额为 0，直接为已付）。"""
        now = datetime.now()
        invoice = Invoice(
            customer_id=customer_id,
            amount=0,
            discount=0,
            total=0,
            paid_amount=0,
            status="paid",
            due_date=now,
            paid_date=now,
        )
        self._assign_number(sess, invoice, "WDR", now)
        return invoice

    def get_invoice(self, invoice_id: int,
                    session: Optional[Session] = None) -> Optional[Invoice]:
        """获取账单（含明细行与收付款流水）。"""
        def _query(sess):
            invoice = sess.query(Invoice).filter(
                Invoice.id == invoice_id
            ).first()
            if invoice is not None:
                # 会话关闭前加载关联数据
                _ = invoice.line_items, invoice.payments
            return invoice

        if session:
            return _query(session)

        with self._get_session() as sess:
            return _query(sess)

    def get_outstanding_invoices(self, customer_id: int,
                                 session: Optional[Session] = None
                                 ) -> List[Invoice]:
        """获取顾客仍有欠款的账单，按创建顺序排列。"""
        def _query(sess):
            return sess.query(Invoice).filter(
                Invoice.customer_id == customer_id,
                Invoice.status.in_(("pending", "unpaid", "partially_paid")),
                Invoice.total > Invoice.paid_amount
            ).order_by(Invoice.id).all()

        if session:
            return _query(session)

        with self._get_session() as sess:
            return _query(sess)
