"""计费引擎 —— 统一门面（Facade）。

VenueBilling 组合了全部计费组件，共享同一个持久化上下文
（DatabaseManager 持有的 DatabaseConnection），提供两套 API：

1. **组件访问**（细粒度）：通过 ``billing.sessions``、``billing.payments`` 等
   属性直接访问组件，返回 ORM 对象。

2. **便捷方法**（粗粒度）：每个对外操作一个扁平方法，返回ID或基本类型；
   每个方法恰好占用一个写事务。

Example::

    db = DatabaseManager("sqlite:///data/venue.db")
    db.create_tables()
    billing = VenueBilling(db)

    session_id = billing.start_session(customer.id, desk.id)
    billing.add_inventory_consumption(session_id, coffee.id, 2)
    invoice_id = billing.end_session(session_id)
    billing.process_payment(invoice_id, 3000, "cash")
"""
from datetime import datetime
from typing import Optional, List, Dict, Any

from database.manager import DatabaseManager
from .inventory_ledger import InventoryLedger
from .invoices import InvoiceGenerator
from .payments import PaymentAllocator
from .sessions import SessionLifecycleManager
from .subscriptions import SubscriptionManager


class VenueBilling:
    """计费引擎门面。

    Attributes:
        db: 数据库管理器。
        ledger: 库存账本。
        sessions: 时段生命周期管理器。
        invoices: 账单生成器。
        payments: 收款分配器。
        subscriptions: 订阅管理器。
    """

    def __init__(self, db: DatabaseManager) -> None:
        self.db = db
        conn = db.conn

        self.ledger = InventoryLedger(conn)
        self.sessions = SessionLifecycleManager(conn, self.ledger)
        self.invoices = InvoiceGenerator(conn)
        self.payments = PaymentAllocator(conn, self.invoices)
        self.subscriptions = SubscriptionManager(
            conn, self.invoices, self.payments
        )

    # ================================================================
    # 时段
    # ================================================================

    def start_session(self, customer_id: int, resource_id: int) -> int:
        """开始时段，返回时段ID。"""
        return self.sessions.start_session(customer_id, resource_id).id

    def add_inventory_consumption(self, session_id: int, item_id: int,
                                  quantity: int) -> None:
        self.sessions.add_inventory_consumption(session_id, item_id, quantity)

    def remove_inventory_consumption(self, session_id: int,
                                     item_id: int) -> None:
        self.sessions.remove_inventory_consumption(session_id, item_id)

    def update_inventory_consumption(self, session_id: int, item_id: int,
                                     new_quantity: int) -> None:
        self.sessions.update_inventory_consumption(
            session_id, item_id, new_quantity
        )

    def end_session(self, session_id: int) -> Optional[int]:
        """结束时段并生成账单（同一事务）。

        Returns:
            账单ID，免费时段返回 None。
        """
        with self.db.transaction() as sess:
            record = self.sessions.end_session(session_id, session=sess)
            invoice = self.invoices.create_invoice_from_session(sess, record)
        self.sessions.log_session_end(record)
        return invoice.id if invoice is not None else None

    def get_active_sessions(self) -> List[Dict[str, Any]]:
        return self.sessions.get_active_sessions()

    # ================================================================
    # 库存
    # ================================================================

    def adjust_stock(self, item_id: int, delta: int,
                     reason: str = "restock",
                     notes: Optional[str] = None) -> int:
        """入库或调整库存，返回调整后的库存数量。"""
        return self.ledger.adjust_stock(item_id, delta, reason, notes).quantity

    # ================================================================
    # 收款
    # ================================================================

    def process_payment(self, invoice_id: int, amount: int,
                        method: str = "cash",
                        notes: Optional[str] = None) -> None:
        self.payments.process_payment(invoice_id, amount, method, notes)

    def process_bulk_payment(self, invoice_ids: List[int], amount: int,
                             method: str = "cash",
                             notes: Optional[str] = None) -> int:
        """批量收款，返回未分配的剩余金额。"""
        return self.payments.process_bulk_payment(
            invoice_ids, amount, method, notes
        )

    def withdraw_balance(self, customer_id: int, amount: int,
                         method: str = "cash",
                         notes: Optional[str] = None) -> None:
        self.payments.withdraw_balance(customer_id, amount, method, notes)

    # ================================================================
    # 订阅
    # ================================================================

    def create_subscription(self, customer_id: int, plan_type: str,
                            price: int,
                            start_date: Optional[datetime] = None) -> int:
        """创建订阅，返回订阅ID。"""
        return self.subscriptions.create_subscription(
            customer_id, plan_type, price, start_date
        ).id

    def cancel_subscription(self, subscription_id: int) -> None:
        self.subscriptions.cancel_subscription(subscription_id)

    def refund_subscription(self, subscription_id: int,
                            method: str = "balance") -> int:
        """退订并按比例退款，返回退款金额。"""
        return self.subscriptions.refund_subscription(subscription_id, method)

    def upgrade_subscription(self, customer_id: int, new_plan_type: str,
                             new_price: int,
                             start_date: Optional[datetime] = None) -> int:
        """升级订阅，返回新订阅ID。"""
        return self.subscriptions.upgrade_subscription(
            customer_id, new_plan_type, new_price, start_date
        ).id

    def reactivate_subscription(self, subscription_id: int) -> None:
        self.subscriptions.reactivate_subscription(subscription_id)

    def expire_subscriptions(self, now: Optional[datetime] = None) -> int:
        return self.subscriptions.expire_subscriptions(now)
