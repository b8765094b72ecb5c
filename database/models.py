"""SQLAlchemy ORM 模型定义。

本模块定义了所有数据库表的ORM模型，包括：
- 顾客、资源（座位/房间/工位）、库存商品等基础实体
- 使用时段、库存消耗、库存变动等运营记录
- 账单、明细行、收付款、订阅等财务数据

所有金额字段均为整数，单位为最小货币单位（皮阿斯特），避免浮点误差。
"""
from typing import List, Optional
from sqlalchemy import (
    Column, Integer, String, Text, Boolean, DateTime,
    ForeignKey, CheckConstraint
)
from sqlalchemy.orm import declarative_base
from sqlalchemy.orm import relationship
from datetime import datetime

# SQLAlchemy declarative base，所有模型都继承自此类
# 设置 __allow_unmapped__ = True 以兼容 SQLAlchemy 2.0 的类型注解要求
Base = declarative_base()

Base.__allow_unmapped__ = True


class Customer(Base):
    """顾客表模型。

    存储顾客的基本信息及财务汇总（余额、累计消费）。

    Attributes:
        id: 主键，自增整数。
        name: 顾客姓名，必填，最大长度100字符。
        phone: 联系电话，必填，最大长度20字符。
        customer_type: 顾客类型，visitor（散客）或当前订阅套餐类型，默认visitor。
        balance: 账户余额（退款入账、升级抵扣），不可为负。
        total_spent: 累计实付金额，不可为负。
        notes: 备注信息，可选。
        archived_at: 归档时间，非空表示已归档（软删除）。
        created_at: 创建时间。
    """
    __tablename__ = "customers"

    id: int = Column(Integer, primary_key=True, autoincrement=True)
    name: str = Column(String(100), nullable=False)
    phone: str = Column(String(20), nullable=False, default="")
    customer_type: str = Column(String(20), nullable=False, default="visitor")
    balance: int = Column(Integer, nullable=False, default=0)
    total_spent: int = Column(Integer, nullable=False, default=0)
    notes: Optional[str] = Column(Text)
    archived_at: Optional[datetime] = Column(DateTime)
    created_at: datetime = Column(DateTime, default=datetime.now)

    # Relationships
    subscriptions: List["Subscription"] = relationship("Subscription", back_populates="customer")
    invoices: List["Invoice"] = relationship("Invoice", back_populates="customer")

    __table_args__ = (
        CheckConstraint("balance >= 0", name="ck_customer_balance"),
        CheckConstraint("total_spent >= 0", name="ck_customer_total_spent"),
    )


class Resource(Base):
    """可计时资源表模型（座位、房间、工位）。

    Attributes:
        id: 主键，自增整数。
        name: 资源名称，必填。
        resource_type: 资源类型：seat / room / desk。
        rate_per_hour: 每小时费率。
        daily_cap: 单次时段的费用封顶，为空或0表示不封顶。
        is_available: 是否空闲。当且仅当存在一个进行中的时段引用它时为False。
        archived_at: 归档时间（软删除）。
        created_at: 创建时间。
    """
    __tablename__ = "resources"

    id: int = Column(Integer, primary_key=True, autoincrement=True)
    name: str = Column(String(100), nullable=False)
    resource_type: str = Column(String(20), nullable=False, default="seat")  # seat / room / desk
    rate_per_hour: int = Column(Integer, nullable=False, default=0)
    daily_cap: Optional[int] = Column(Integer)
    is_available: bool = Column(Boolean, nullable=False, default=True)
    archived_at: Optional[datetime] = Column(DateTime)
    created_at: datetime = Column(DateTime, default=datetime.now)

    sessions: List["SessionRecord"] = relationship("SessionRecord", back_populates="resource")

    __table_args__ = (
        CheckConstraint("rate_per_hour >= 0", name="ck_resource_rate"),
        CheckConstraint("daily_cap IS NULL OR daily_cap >= 0", name="ck_resource_daily_cap"),
    )


class InventoryItem(Base):
    """库存商品表模型（饮料、零食等）。

    库存数量只能通过 InventoryLedger 修改。
    """
    __tablename__ = "inventory_items"

    id: int = Column(Integer, primary_key=True, autoincrement=True)
    name: str = Column(String(100), nullable=False)
    category: str = Column(String(50), nullable=False, default="other")  # beverage / snack / other
    price: int = Column(Integer, nullable=False, default=0)
    quantity: int = Column(Integer, nullable=False, default=0)
    min_stock: int = Column(Integer, nullable=False, default=0)
    archived_at: Optional[datetime] = Column(DateTime)
    created_at: datetime = Column(DateTime, default=datetime.now)

    inventory_logs: List["InventoryLog"] = relationship("InventoryLog", back_populates="item")

    __table_args__ = (
        CheckConstraint("price >= 0", name="ck_item_price"),
        CheckConstraint("quantity >= 0", name="ck_item_quantity"),
        CheckConstraint("min_stock >= 0", name="ck_item_min_stock"),
    )


class InventoryLog(Base):
    """库存变动记录表模型。

    记录每一次库存变动，包括时段消耗、退回、入库、调整等操作。

    Attributes:
        id: 主键，自增整数。
        item_id: 商品ID，外键关联inventory_items表。
        change_type: 变动类型：consumption（消耗）/ return（退回）/ restock（入库）/ adjustment（调整）。
        quantity_change: 数量变动，正数入库，负数出库。
        quantity_after: 变动后库存数量。
        session_id: 关联时段ID，可选。
        notes: 备注信息，可选。
        created_at: 创建时间。
    """
    __tablename__ = "inventory_logs"

    id: int = Column(Integer, primary_key=True, autoincrement=True)
    item_id: int = Column(Integer, ForeignKey("inventory_items.id"), nullable=False)
    change_type: str = Column(String(20), nullable=False)  # consumption / return / restock / adjustment
    quantity_change: int = Column(Integer, nullable=False)
    quantity_after: int = Column(Integer, nullable=False)
    session_id: Optional[int] = Column(Integer, ForeignKey("sessions.id"))
    notes: Optional[str] = Column(Text)
    created_at: datetime = Column(DateTime, default=datetime.now)

    item: "InventoryItem" = relationship("InventoryItem", back_populates="inventory_logs")


class SessionRecord(Base):
    """使用时段表模型（核心业务表）。

    记录顾客对某个资源的一次使用。费率与封顶在开始时快照，
    之后资源价格的修改不影响进行中的时段。

    状态机：active -> completed（单向，终态）。

    Attributes:
        id: 主键，自增整数。
        customer_id: 顾客ID。
        resource_id: 资源ID。
        resource_rate: 开始时快照的每小时费率。
        daily_cap: 开始时快照的费用封顶，可选。
        started_at: 开始时间。
        ended_at: 结束时间，进行中为空。
        is_subscribed: 开始时顾客是否持有有效订阅（订阅用户时长免费）。
        inventory_total: 库存消耗累计金额。
        session_cost: 时长费用，结束时计算。
        total_amount: 总金额 = 时长费用 + 库存消耗。
        status: active / completed。
    """
    __tablename__ = "sessions"

    id: int = Column(Integer, primary_key=True, autoincrement=True)
    customer_id: int = Column(Integer, ForeignKey("customers.id"), nullable=False, index=True)
    resource_id: int = Column(Integer, ForeignKey("resources.id"), nullable=False, index=True)
    resource_rate: int = Column(Integer, nullable=False, default=0)
    daily_cap: Optional[int] = Column(Integer)
    started_at: datetime = Column(DateTime, nullable=False)
    ended_at: Optional[datetime] = Column(DateTime)
    is_subscribed: bool = Column(Boolean, nullable=False, default=False)
    inventory_total: int = Column(Integer, nullable=False, default=0)
    session_cost: int = Column(Integer, nullable=False, default=0)
    total_amount: int = Column(Integer, nullable=False, default=0)
    status: str = Column(String(20), nullable=False, default="active")  # active / completed
    created_at: datetime = Column(DateTime, default=datetime.now)

    customer: "Customer" = relationship("Customer")
    resource: "Resource" = relationship("Resource", back_populates="sessions")
    consumptions: List["InventoryConsumption"] = relationship(
        "InventoryConsumption", back_populates="session",
        order_by="InventoryConsumption.id"
    )

    __table_args__ = (
        CheckConstraint("status IN ('active', 'completed')", name="ck_session_status"),
        CheckConstraint("inventory_total >= 0", name="ck_session_inventory_total"),
        CheckConstraint("session_cost >= 0", name="ck_session_cost"),
        CheckConstraint("total_amount >= 0", name="ck_session_total"),
    )


class InventoryConsumption(Base):
    """时段库存消耗表模型。

    每次添加写一行，修改数量时原地更新，数量归零时删除。
    price 为添加时商品单价的快照。
    """
    __tablename__ = "inventory_consumptions"

    id: int = Column(Integer, primary_key=True, autoincrement=True)
    session_id: int = Column(Integer, ForeignKey("sessions.id"), nullable=False, index=True)
    item_id: int = Column(Integer, ForeignKey("inventory_items.id"), nullable=False, index=True)
    item_name: str = Column(String(100), nullable=False)
    quantity: int = Column(Integer, nullable=False)
    price: int = Column(Integer, nullable=False)
    added_at: datetime = Column(DateTime, nullable=False)
    created_at: datetime = Column(DateTime, default=datetime.now)

    session: "SessionRecord" = relationship("SessionRecord", back_populates="consumptions")

    __table_args__ = (
        CheckConstraint("quantity > 0", name="ck_consumption_quantity"),
        CheckConstraint("price >= 0", name="ck_consumption_price"),
    )


class Invoice(Base):
    """账单表模型。

    由时段结束或订阅创建时生成，之后只允许收付款与退款流程修改。

    Attributes:
        id: 主键，自增整数。
        invoice_number: 账单编号，唯一。
        customer_id: 顾客ID。
        session_id: 关联时段ID，订阅账单为空。
        amount: 原始金额。
        discount: 折扣金额。
        total: 应付总额。
        paid_amount: 已付金额，0 <= paid_amount <= total。
        refunded_amount: 累计退款金额。
        status: pending / unpaid / partially_paid / paid / cancelled。
        due_date: 到期日。
        paid_date: 付清时间，可选。
        created_at: 创建时间。
    """
    __tablename__ = "invoices"

    id: int = Column(Integer, primary_key=True, autoincrement=True)
    invoice_number: Optional[str] = Column(String(40), unique=True)
    customer_id: int = Column(Integer, ForeignKey("customers.id"), nullable=False, index=True)
    session_id: Optional[int] = Column(Integer, ForeignKey("sessions.id"))
    amount: int = Column(Integer, nullable=False, default=0)
    discount: int = Column(Integer, nullable=False, default=0)
    total: int = Column(Integer, nullable=False, default=0)
    paid_amount: int = Column(Integer, nullable=False, default=0)
    refunded_amount: int = Column(Integer, nullable=False, default=0)
    status: str = Column(String(20), nullable=False, default="unpaid")
    due_date: datetime = Column(DateTime, nullable=False)
    paid_date: Optional[datetime] = Column(DateTime)
    created_at: datetime = Column(DateTime, default=datetime.now)

    customer: "Customer" = relationship("Customer", back_populates="invoices")
    line_items: List["LineItem"] = relationship(
        "LineItem", back_populates="invoice", order_by="LineItem.id"
    )
    payments: List["Payment"] = relationship(
        "Payment", back_populates="invoice", order_by="Payment.id"
    )

    __table_args__ = (
        CheckConstraint(
            "status IN ('pending', 'unpaid', 'partially_paid', 'paid', 'cancelled')",
            name="ck_invoice_status"
        ),
        CheckConstraint("amount >= 0", name="ck_invoice_amount"),
        CheckConstraint("discount >= 0", name="ck_invoice_discount"),
        CheckConstraint("total >= 0", name="ck_invoice_total"),
        CheckConstraint("paid_amount >= 0 AND paid_amount <= total", name="ck_invoice_paid"),
        CheckConstraint("refunded_amount >= 0", name="ck_invoice_refunded"),
    )


class LineItem(Base):
    """账单明细行表模型，随账单一起创建，只追加不修改。"""
    __tablename__ = "line_items"

    id: int = Column(Integer, primary_key=True, autoincrement=True)
    invoice_id: int = Column(Integer, ForeignKey("invoices.id"), nullable=False, index=True)
    description: str = Column(String(200), nullable=False)
    quantity: int = Column(Integer, nullable=False, default=1)
    rate: int = Column(Integer, nullable=False, default=0)
    amount: int = Column(Integer, nullable=False, default=0)
    created_at: datetime = Column(DateTime, default=datetime.now)

    invoice: "Invoice" = relationship("Invoice", back_populates="line_items")

    __table_args__ = (
        CheckConstraint("quantity > 0", name="ck_line_item_quantity"),
        CheckConstraint("rate >= 0", name="ck_line_item_rate"),
        CheckConstraint("amount >= 0", name="ck_line_item_amount"),
    )


class Payment(Base):
    """收付款流水表模型。

    只追加，从不修改。amount 为正表示收款，为负表示退款。

    Attributes:
        id: 主键，自增整数。
        invoice_id: 账单ID。
        amount: 金额，正数收款，负数退款。
        method: cash / card / transfer / balance。
        payment_type: payment / refund。
        date: 发生时间。
        notes: 备注。
    """
    __tablename__ = "payments"

    id: int = Column(Integer, primary_key=True, autoincrement=True)
    invoice_id: int = Column(Integer, ForeignKey("invoices.id"), nullable=False, index=True)
    amount: int = Column(Integer, nullable=False)
    method: str = Column(String(20), nullable=False)
    payment_type: str = Column(String(20), nullable=False, default="payment")
    date: datetime = Column(DateTime, nullable=False)
    notes: Optional[str] = Column(Text)
    created_at: datetime = Column(DateTime, default=datetime.now)

    invoice: "Invoice" = relationship("Invoice", back_populates="payments")

    __table_args__ = (
        CheckConstraint("amount != 0", name="ck_payment_amount"),
        CheckConstraint(
            "method IN ('cash', 'card', 'transfer', 'balance')",
            name="ck_payment_method"
        ),
        CheckConstraint("payment_type IN ('payment', 'refund')", name="ck_payment_type"),
    )


class Subscription(Base):
    """订阅表模型。

    每位顾客同一时刻最多只有一个有效订阅。

    Attributes:
        id: 主键，自增整数。
        customer_id: 顾客ID。
        plan_type: weekly / half-monthly / monthly。
        price: 订阅时的价格。
        start_date: 开始时间。
        end_date: 结束时间。
        is_active: 是否有效。
        status: active / expired / inactive。
        invoice_id: 关联账单ID。
        created_at: 创建时间。
    """
    __tablename__ = "subscriptions"

    id: int = Column(Integer, primary_key=True, autoincrement=True)
    customer_id: int = Column(Integer, ForeignKey("customers.id"), nullable=False, index=True)
    plan_type: str = Column(String(20), nullable=False)
    price: int = Column(Integer, nullable=False)
    start_date: datetime = Column(DateTime, nullable=False)
    end_date: datetime = Column(DateTime, nullable=False)
    is_active: bool = Column(Boolean, nullable=False, default=False)
    status: str = Column(String(20), nullable=False, default="inactive")
    invoice_id: Optional[int] = Column(Integer, ForeignKey("invoices.id"))
    created_at: datetime = Column(DateTime, default=datetime.now)

    customer: "Customer" = relationship("Customer", back_populates="subscriptions")
    invoice: Optional["Invoice"] = relationship("Invoice")

    __table_args__ = (
        CheckConstraint(
            "plan_type IN ('weekly', 'half-monthly', 'monthly')",
            name="ck_subscription_plan"
        ),
        CheckConstraint("price >= 0", name="ck_subscription_price"),
        CheckConstraint(
            "status IN ('active', 'expired', 'inactive')",
            name="ck_subscription_status"
        ),
    )
