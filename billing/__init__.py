"""计费核心 - 场馆按时计费、库存消耗、账单、收款与订阅

核心组件：
- calculate_session_cost: 时长计费（纯函数）
- InventoryLedger: 库存账本
- SessionLifecycleManager: 时段生命周期与资源占用
- InvoiceGenerator: 账单生成
- PaymentAllocator: 收款分配
- SubscriptionManager: 订阅管理
- VenueBilling: 统一门面

使用示例：
    ```python
    from database import DatabaseManager
    from billing import VenueBilling

    db = DatabaseManager("sqlite:///data/venue.db")
    db.create_tables()
    billing = VenueBilling(db)
    ```
"""
from billing.engine import VenueBilling
from billing.errors import (
    BillingError, ValidationError, NotFoundError, ConflictError,
    ConsistencyViolation,
)
from billing.inventory_ledger import InventoryLedger
from billing.invoices import InvoiceGenerator
from billing.money import calculate_session_cost
from billing.payments import PaymentAllocator
from billing.sessions import SessionLifecycleManager
from billing.subscriptions import SubscriptionManager

__all__ = [
    "VenueBilling",
    "BillingError",
    "ValidationError",
    "NotFoundError",
    "ConflictError",
    "ConsistencyViolation",
    "InventoryLedger",
    "InvoiceGenerator",
    "PaymentAllocator",
    "SessionLifecycleManager",
    "SubscriptionManager",
    "calculate_session_cost",
]
