"""计费核心异常定义。

四类错误都在事务内抛出，由写入槽位回滚后原样交给调用方：

- ValidationError：调用参数不合法，任何修改之前拒绝
- NotFoundError：按ID找不到实体
- ConflictError：实体当前状态不允许该操作
- ConsistencyViolation：执行会破坏库存或金额约束
"""


class BillingError(Exception):
    """计费核心异常基类。"""
    pass


class ValidationError(BillingError):
    """调用参数不合法。"""
    pass


# ========== NotFound ==========

class NotFoundError(BillingError):
    """按ID找不到实体。"""

    entity = "Entity"

    def __init__(self, entity_id):
        self.entity_id = entity_id
        super().__init__(f"{self.entity} {entity_id} not found")


class ResourceNotFound(NotFoundError):
    entity = "Resource"


class CustomerNotFound(NotFoundError):
    entity = "Customer"


class SessionNotFound(NotFoundError):
    entity = "Session"


class InvoiceNotFound(NotFoundError):
    entity = "Invoice"


class SubscriptionNotFound(NotFoundError):
    entity = "Subscription"


class InventoryItemNotFound(NotFoundError):
    entity = "Inventory item"


class ConsumptionNotFound(NotFoundError):
    """时段内没有该商品的消耗记录。"""

    def __init__(self, session_id, item_id):
        self.session_id = session_id
        self.item_id = item_id
        BillingError.__init__(
            self,
            f"Session {session_id} has no consumption of item {item_id}"
        )


# ========== Conflict ==========

class ConflictError(BillingError):
    """实体当前状态不允许该操作。"""
    pass


class ResourceBusy(ConflictError):

    def __init__(self, resource_id):
        self.resource_id = resource_id
        super().__init__(f"Resource {resource_id} is already occupied")


class AlreadyClosed(ConflictError):

    def __init__(self, session_id):
        self.session_id = session_id
        super().__init__(f"Session {session_id} is already closed")


class AlreadyPaid(ConflictError):

    def __init__(self, invoice_id):
        self.invoice_id = invoice_id
        super().__init__(f"Invoice {invoice_id} is already fully paid")


class InvoiceCancelled(ConflictError):

    def __init__(self, invoice_id):
        self.invoice_id = invoice_id
        super().__init__(f"Invoice {invoice_id} is cancelled")


# ========== Consistency ==========

class ConsistencyViolation(BillingError):
    """操作会破坏库存或金额约束。"""
    pass


class InsufficientStock(ConsistencyViolation):

    def __init__(self, item_id, available: int, requested: int):
        self.item_id = item_id
        self.available = available
        self.requested = requested
        super().__init__(
            f"Insufficient stock for item {item_id}: "
            f"only {available} available, {requested} requested"
        )


class Overpayment(ConsistencyViolation):

    def __init__(self, invoice_id, amount: int, remaining: int):
        self.invoice_id = invoice_id
        self.amount = amount
        self.remaining = remaining
        super().__init__(
            f"Payment amount ({amount}) exceeds remaining balance "
            f"({remaining}) of invoice {invoice_id}"
        )


class InsufficientBalance(ConsistencyViolation):

    def __init__(self, customer_id, balance: int, requested: int):
        self.customer_id = customer_id
        self.balance = balance
        self.requested = requested
        super().__init__(
            f"Customer {customer_id} balance ({balance}) "
            f"is less than {requested}"
        )


class MissingInvoiceLink(ConsistencyViolation):

    def __init__(self, subscription_id):
        self.subscription_id = subscription_id
        super().__init__(
            f"Subscription {subscription_id} has no linked invoice "
            f"to refund against"
        )
