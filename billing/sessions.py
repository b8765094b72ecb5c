"""时段生命周期 —— 资源占用与时段状态机。

状态机：active -> completed（单向，终态）。

开始时段时资源标记为占用，结束时释放；两步都与时段记录的写入
在同一事务内完成，外部永远观察不到“时段已建但资源未占用”的中间状态。
"""
from datetime import datetime
from typing import Optional, List, Dict, Any
from sqlalchemy.orm import Session
from loguru import logger

from database.base_crud import BaseCRUD
from database.connection import DatabaseConnection
from database.models import (
    SessionRecord, Resource, Customer, Subscription
)
from .errors import (
    ValidationError, ResourceNotFound, CustomerNotFound, ResourceBusy,
    SessionNotFound, AlreadyClosed
)
from .inventory_ledger import InventoryLedger
from .money import calculate_session_cost, duration_minutes, format_amount


class SessionLifecycleManager(BaseCRUD):
    """时段生命周期管理器。

    Attributes:
        ledger: 库存账本，负责消耗记录与库存数量。
    """

    def __init__(self, conn: DatabaseConnection,
                 ledger: InventoryLedger) -> None:
        super().__init__(conn)
        self.ledger = ledger

    def start_session(self, customer_id: int, resource_id: int,
                      session: Optional[Session] = None) -> SessionRecord:
        """为顾客在资源上开始一个时段。

        Args:
            customer_id: 顾客ID。
            resource_id: 资源ID。
            session: 外部会话（可选）。

        Returns:
            新建的 SessionRecord（已快照费率与封顶）。

        Raises:
            ResourceNotFound: 资源不存在或已归档。
            CustomerNotFound: 顾客不存在或已归档。
            ResourceBusy: 资源已被占用。
        """
        def _do(sess):
            resource = self.get_by_id(Resource, resource_id, session=sess)
            if resource is None:
                raise ResourceNotFound(resource_id)
            if not resource.is_available:
                raise ResourceBusy(resource_id)
            if self.get_by_id(Customer, customer_id, session=sess) is None:
                raise CustomerNotFound(customer_id)

            active_subs = self.count(
                Subscription,
                filters={"customer_id": customer_id, "is_active": True},
                session=sess
            )

            record = SessionRecord(
                customer_id=customer_id,
                resource_id=resource_id,
                resource_rate=resource.rate_per_hour,
                daily_cap=resource.daily_cap,
                started_at=datetime.now(),
                is_subscribed=active_subs > 0,
                inventory_total=0,
                session_cost=0,
                total_amount=0,
                status="active",
            )
            sess.add(record)
            resource.is_available = False
            sess.flush()
            return record

        record = self._run(_do, session)
        logger.info(
            f"Session {record.id} started: customer {customer_id} "
            f"on resource {resource_id} (subscribed={record.is_subscribed})"
        )
        return record

    def _get_active(self, sess: Session, session_id: int) -> SessionRecord:
        record = sess.query(SessionRecord).filter(
            SessionRecord.id == session_id
        ).first()
        if record is None:
            raise SessionNotFound(session_id)
        if record.status != "active":
            raise AlreadyClosed(session_id)
        return record

    def add_inventory_consumption(self, session_id: int, item_id: int,
                                  quantity: int,
                                  session: Optional[Session] = None) -> None:
        """向进行中的时段添加库存消耗。

        Raises:
            ValidationError: 数量不为正。
            SessionNotFound / AlreadyClosed: 时段不存在或已结束。
            InventoryItemNotFound: 商品不存在。
            InsufficientStock: 库存不足。
        """
        if quantity <= 0:
            raise ValidationError("quantity must be positive")

        def _do(sess):
            record = self._get_active(sess, session_id)
            self.ledger.consume(sess, record, item_id, quantity)

        self._run(_do, session)
        logger.info(f"Session {session_id}: added {quantity} x item {item_id}")

    def remove_inventory_consumption(self, session_id: int, item_id: int,
                                     session: Optional[Session] = None) -> None:
        """撤销时段内某商品的消耗并退回库存。"""
        def _do(sess):
            record = self._get_active(sess, session_id)
            return self.ledger.release(sess, record, item_id)

        returned = self._run(_do, session)
        logger.info(
            f"Session {session_id}: removed item {item_id}, "
            f"{returned} returned to stock"
        )

    def update_inventory_consumption(self, session_id: int, item_id: int,
                                     new_quantity: int,
                                     session: Optional[Session] = None) -> None:
        """修改时段内某商品的消耗数量，new_quantity <= 0 等同于撤销。"""
        def _do(sess):
            record = self._get_active(sess, session_id)
            self.ledger.change_quantity(sess, record, item_id, new_quantity)

        self._run(_do, session)
        logger.info(
            f"Session {session_id}: item {item_id} quantity set to {new_quantity}"
        )

    def end_session(self, session_id: int,
                    session: Optional[Session] = None) -> SessionRecord:
        """结束时段：计算费用、标记完成并释放资源。

        订阅用户时长费用为 0，库存消耗照常计费。

        Returns:
            已结束的 SessionRecord，供账单生成使用。

        Raises:
            SessionNotFound: 时段不存在。
            AlreadyClosed: 时段已结束。
        """
        def _do(sess):
            record = self._get_active(sess, session_id)

            ended_at = datetime.now()
            minutes = duration_minutes(record.started_at, ended_at)
            session_cost = 0
            if not record.is_subscribed:
                session_cost = calculate_session_cost(
                    minutes, record.resource_rate, record.daily_cap
                )

            record.ended_at = ended_at
            record.session_cost = session_cost
            record.total_amount = session_cost + record.inventory_total
            record.status = "completed"

            resource = sess.query(Resource).filter(
                Resource.id == record.resource_id
            ).first()
            if resource is not None:
                resource.is_available = True
            sess.flush()
            return record

        record = self._run(_do, session)
        # 外部事务由调用方在提交后记录
        if session is None:
            self.log_session_end(record)
        return record

    @staticmethod
    def log_session_end(record: SessionRecord) -> None:
        minutes = duration_minutes(record.started_at, record.ended_at)
        logger.info(
            f"Session {record.id} ended after {minutes} min: "
            f"cost {format_amount(record.session_cost)}, "
            f"total {format_amount(record.total_amount)}"
        )

    def get_session(self, session_id: int,
                    session: Optional[Session] = None
                    ) -> Optional[SessionRecord]:
        return self.get_by_id(SessionRecord, session_id, session=session)

    def get_active_sessions(self,
                            session: Optional[Session] = None
                            ) -> List[Dict[str, Any]]:
        """获取所有进行中的时段及当前已用分钟数。

        Returns:
            时段信息字典列表。
        """
        def _query(sess):
            now = datetime.now()
            records = sess.query(SessionRecord).filter(
                SessionRecord.status == "active"
            ).order_by(SessionRecord.started_at).all()
            return [
                {
                    "id": r.id,
                    "customer_id": r.customer_id,
                    "customer_name": r.customer.name if r.customer else "",
                    "resource_id": r.resource_id,
                    "resource_name": r.resource.name if r.resource else "",
                    "started_at": r.started_at,
                    "duration_minutes": duration_minutes(r.started_at, now),
                    "is_subscribed": r.is_subscribed,
                    "inventory_total": r.inventory_total,
                }
                for r in records
            ]

        if session:
            return _query(session)

        with self._get_session() as sess:
            return _query(sess)
