"""订阅管理 —— 创建、取消、按比例退款、升级、重新激活与到期。

每位顾客同一时刻最多一个有效订阅：创建与重新激活前都会先停用
该顾客已有的有效订阅。顾客类型（customer_type）跟随当前有效订阅的
套餐类型，没有有效订阅时为 visitor。
"""
from datetime import datetime, timedelta
from typing import Optional
from sqlalchemy.orm import Session
from loguru import logger

from config.billing_config import billing_config
from database.base_crud import BaseCRUD
from database.connection import DatabaseConnection
from database.models import Subscription, Customer, Invoice, Payment
from .errors import (
    ValidationError, CustomerNotFound, SubscriptionNotFound,
    MissingInvoiceLink
)
from .invoices import InvoiceGenerator
from .money import plan_days, prorate_refund, format_amount
from .payments import PaymentAllocator


class SubscriptionManager(BaseCRUD):
    """订阅管理器。"""

    def __init__(self, conn: DatabaseConnection,
                 invoices: InvoiceGenerator,
                 payments: PaymentAllocator) -> None:
        super().__init__(conn)
        self._invoices = invoices
        self._payments = payments

    # ================================================================
    # 内部工具
    # ================================================================

    def _get_customer(self, sess: Session, customer_id: int) -> Customer:
        customer = self.get_by_id(Customer, customer_id, session=sess)
        if customer is None:
            raise CustomerNotFound(customer_id)
        return customer

    def _get_subscription(self, sess: Session,
                          subscription_id: int) -> Subscription:
        sub = sess.query(Subscription).filter(
            Subscription.id == subscription_id
        ).first()
        if sub is None:
            raise SubscriptionNotFound(subscription_id)
        return sub

    @staticmethod
    def _deactivate(sub: Subscription, status: str = "inactive") -> None:
        sub.is_active = False
        sub.status = status

    def _deactivate_active(self, sess: Session, customer_id: int) -> None:
        active = sess.query(Subscription).filter(
            Subscription.customer_id == customer_id,
            Subscription.is_active.is_(True)
        ).all()
        for sub in active:
            self._deactivate(sub)
        sess.flush()

    @staticmethod
    def _reset_customer_type(sess: Session, customer_id: int) -> None:
        """顾客没有有效订阅时恢复为 visitor。"""
        sess.flush()
        remaining = sess.query(Subscription).filter(
            Subscription.customer_id == customer_id,
            Subscription.is_active.is_(True)
        ).count()
        if remaining == 0:
            customer = sess.query(Customer).filter(
                Customer.id == customer_id
            ).first()
            if customer is not None:
                customer.customer_type = "visitor"

    @staticmethod
    def _validate_plan(plan_type: str, price: int) -> None:
        if plan_type not in billing_config.get_plan_days():
            raise ValidationError(
                f"invalid plan type: {plan_type} "
                f"(must be one of {', '.join(billing_config.get_plan_days())})"
            )
        if price <= 0:
            raise ValidationError("subscription price must be positive")

    def _create(self, sess: Session, customer_id: int, plan_type: str,
                price: int, start_date: datetime) -> Subscription:
        customer = self._get_customer(sess, customer_id)
        self._deactivate_active(sess, customer_id)

        invoice = self._invoices.create_subscription_invoice(
            sess, customer_id, plan_type, price
        )
        sub = Subscription(
            customer_id=customer_id,
            plan_type=plan_type,
            price=price,
            start_date=start_date,
            end_date=start_date + timedelta(days=plan_days(plan_type)),
            is_active=True,
            status="active",
            invoice_id=invoice.id,
        )
        sess.add(sub)
        customer.customer_type = plan_type
        sess.flush()
        return sub

    # ================================================================
    # 对外操作
    # ================================================================

    def create_subscription(self, customer_id: int, plan_type: str,
                            price: int,
                            start_date: Optional[datetime] = None,
                            session: Optional[Session] = None
                            ) -> Subscription:
        """创建订阅并生成未付账单。

        Args:
            customer_id: 顾客ID。
            plan_type: weekly / half-monthly / monthly。
            price: 套餐价格。
            start_date: 开始时间，默认当前时间。
            session: 外部会话（可选）。

        Returns:
            新建的 Subscription（已关联账单）。

        Raises:
            ValidationError: 套餐类型无效或价格不为正。
            CustomerNotFound: 顾客不存在。
        """
        self._validate_plan(plan_type, price)
        start_date = start_date or datetime.now()

        sub = self._run(
            lambda sess: self._create(sess, customer_id, plan_type,
                                      price, start_date),
            session
        )
        logger.info(
            f"Subscription {sub.id} created: customer {customer_id}, "
            f"{plan_type} plan, {format_amount(price)}"
        )
        return sub

    def cancel_subscription(self, subscription_id: int,
                            session: Optional[Session] = None) -> None:
        """停用订阅（不退款）。"""
        def _do(sess):
            sub = self._get_subscription(sess, subscription_id)
            self._deactivate(sub)
            self._reset_customer_type(sess, sub.customer_id)

        self._run(_do, session)
        logger.info(f"Subscription {subscription_id} cancelled")

    def refund_subscription(self, subscription_id: int, method: str = "balance",
                            now: Optional[datetime] = None,
                            session: Optional[Session] = None) -> int:
        """按未使用时长比例退款并停用订阅。

        ``method == "cash"`` 时退款不超过关联账单已收金额：在账单上记一笔负数
        退款流水，已付金额相应减少，退款累计到 refunded_amount，账单作废；
        超出已收金额的部分不退。其他方式把退款记入顾客余额。

        Args:
            subscription_id: 订阅ID。
            method: cash 或 balance。
            now: 计算剩余时长的时间点，默认当前时间。

        Returns:
            实际退款金额。

        Raises:
            SubscriptionNotFound: 订阅不存在。
            ValidationError: 订阅已停用。
            MissingInvoiceLink: 现金退款但订阅没有关联账单。
        """
        now = now or datetime.now()

        def _do(sess):
            sub = self._get_subscription(sess, subscription_id)
            if not sub.is_active:
                raise ValidationError(
                    f"subscription {subscription_id} is already inactive"
                )

            refund = prorate_refund(sub.price, sub.start_date, sub.end_date, now)
            self._deactivate(sub)

            if method == "cash":
                if sub.invoice_id is None:
                    raise MissingInvoiceLink(subscription_id)
                invoice = sess.query(Invoice).filter(
                    Invoice.id == sub.invoice_id
                ).first()
                if invoice is None:
                    raise MissingInvoiceLink(subscription_id)
                refund = min(refund, invoice.paid_amount)
                if refund > 0:
                    sess.add(Payment(
                        invoice_id=invoice.id,
                        amount=-refund,
                        method="cash",
                        payment_type="refund",
                        date=now,
                        notes=f"Prorated refund for subscription {subscription_id}",
                    ))
                invoice.paid_amount -= refund
                invoice.refunded_amount += refund
                invoice.status = "cancelled"
            else:
                customer = self._get_customer(sess, sub.customer_id)
                customer.balance += refund

            self._reset_customer_type(sess, sub.customer_id)
            sess.flush()
            return refund

        refund = self._run(_do, session)
        logger.info(
            f"Subscription {subscription_id} refunded "
            f"{format_amount(refund)} via {method}"
        )
        return refund

    def upgrade_subscription(self, customer_id: int, new_plan_type: str,
                             new_price: int,
                             start_date: Optional[datetime] = None,
                             session: Optional[Session] = None
                             ) -> Subscription:
        """升级订阅。

        当前有效订阅的剩余价值按比例记入顾客余额后停用，随后按
        create_subscription 的流程创建新订阅；余额足以付清新账单时
        自动全额抵扣，否则账单保持未付，余额保留。

        Returns:
            新建的 Subscription。
        """
        self._validate_plan(new_plan_type, new_price)
        start_date = start_date or datetime.now()

        def _do(sess):
            customer = self._get_customer(sess, customer_id)
            now = datetime.now()
            current = sess.query(Subscription).filter(
                Subscription.customer_id == customer_id,
                Subscription.is_active.is_(True)
            ).order_by(Subscription.id.desc()).first()

            credit = 0
            if current is not None:
                credit = prorate_refund(
                    current.price, current.start_date, current.end_date, now
                )
                customer.balance += credit
                self._deactivate(current)
                sess.flush()

            sub = self._create(sess, customer_id, new_plan_type,
                               new_price, start_date)
            invoice = sess.query(Invoice).filter(
                Invoice.id == sub.invoice_id
            ).first()
            paid = self._payments.pay_from_balance(sess, invoice)
            return sub, credit, paid

        sub, credit, paid = self._run(_do, session)
        logger.info(
            f"Customer {customer_id} upgraded to {new_plan_type}: "
            f"credited {format_amount(credit)}, auto-paid={paid}"
        )
        return sub

    def reactivate_subscription(self, subscription_id: int,
                                session: Optional[Session] = None
                                ) -> Subscription:
        """重新激活订阅，先停用该顾客的其他有效订阅。"""
        def _do(sess):
            sub = self._get_subscription(sess, subscription_id)
            self._deactivate_active(sess, sub.customer_id)
            sub.is_active = True
            sub.status = "active"
            customer = self._get_customer(sess, sub.customer_id)
            customer.customer_type = sub.plan_type
            sess.flush()
            return sub

        sub = self._run(_do, session)
        logger.info(f"Subscription {subscription_id} reactivated")
        return sub

    def expire_subscriptions(self, now: Optional[datetime] = None,
                             session: Optional[Session] = None) -> int:
        """把已过结束时间的有效订阅标记为 expired。

        Returns:
            本次过期的订阅数量。
        """
        now = now or datetime.now()

        def _do(sess):
            due = sess.query(Subscription).filter(
                Subscription.is_active.is_(True),
                Subscription.end_date <= now
            ).all()
            for sub in due:
                self._deactivate(sub, status="expired")
            for customer_id in {sub.customer_id for sub in due}:
                self._reset_customer_type(sess, customer_id)
            sess.flush()
            return len(due)

        expired = self._run(_do, session)
        if expired:
            logger.info(f"{expired} subscription(s) expired")
        return expired

    def get_active_subscription(self, customer_id: int,
                                session: Optional[Session] = None
                                ) -> Optional[Subscription]:
        subs = self.get_all(
            Subscription,
            filters={"customer_id": customer_id, "is_active": True},
            session=session
        )
        return subs[-1] if subs else None

    @staticmethod
    def days_remaining(sub: Subscription,
                       now: Optional[datetime] = None) -> int:
        """有效订阅的剩余整天数，已停用或已过期为 0。"""
        now = now or datetime.now()
        if not sub.is_active or sub.end_date <= now:
            return 0
        return int((sub.end_date - now).total_seconds() // 86400)
