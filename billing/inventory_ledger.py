"""库存账本 —— 时段库存消耗与库存数量的原子变动。

每一次库存数量变化都同时写一条 InventoryLog，库存数量与时段
inventory_total 在同一事务内一起修改。
"""
from datetime import datetime
from typing import Optional, List
from sqlalchemy.orm import Session
from loguru import logger

from database.base_crud import BaseCRUD
from database.connection import DatabaseConnection
from database.models import (
    InventoryItem, InventoryLog, InventoryConsumption, SessionRecord
)
from .errors import (
    ValidationError, InventoryItemNotFound, ConsumptionNotFound,
    InsufficientStock
)


class InventoryLedger(BaseCRUD):
    """库存账本。

    consume / release / change_quantity 必须在调用方的事务中执行，
    由 SessionLifecycleManager 负责校验时段状态。
    """

    def __init__(self, conn: DatabaseConnection) -> None:
        super().__init__(conn)

    def _get_item(self, sess: Session, item_id: int) -> InventoryItem:
        item = self.get_by_id(InventoryItem, item_id, session=sess)
        if item is None:
            raise InventoryItemNotFound(item_id)
        return item

    @staticmethod
    def _move_stock(sess: Session, item: InventoryItem, delta: int,
                    change_type: str, session_id: Optional[int] = None,
                    notes: Optional[str] = None) -> None:
        if item.quantity + delta < 0:
            raise InsufficientStock(item.id, item.quantity, -delta)
        item.quantity += delta
        sess.add(InventoryLog(
            item_id=item.id,
            change_type=change_type,
            quantity_change=delta,
            quantity_after=item.quantity,
            session_id=session_id,
            notes=notes,
        ))

    def consume(self, sess: Session, session: SessionRecord,
                item_id: int, quantity: int) -> InventoryConsumption:
        """从库存扣减并记入时段消耗。

        Args:
            sess: 调用方事务会话。
            session: 进行中的时段。
            item_id: 商品ID。
            quantity: 数量，必须为正。

        Returns:
            新建的消耗记录（单价为当前商品价格快照）。

        Raises:
            ValidationError: 数量不为正。
            InventoryItemNotFound: 商品不存在或已归档。
            InsufficientStock: 库存不足。
        """
        if quantity <= 0:
            raise ValidationError("quantity must be positive")

        item = self._get_item(sess, item_id)
        self._move_stock(sess, item, -quantity, "consumption", session.id)

        consumption = InventoryConsumption(
            session_id=session.id,
            item_id=item.id,
            item_name=item.name,
            quantity=quantity,
            price=item.price,
            added_at=datetime.now(),
        )
        sess.add(consumption)
        session.inventory_total += item.price * quantity
        sess.flush()
        return consumption

    def _consumptions(self, sess: Session, session: SessionRecord,
                      item_id: int) -> List[InventoryConsumption]:
        rows = sess.query(InventoryConsumption).filter(
            InventoryConsumption.session_id == session.id,
            InventoryConsumption.item_id == item_id
        ).order_by(InventoryConsumption.id).all()
        if not rows:
            raise ConsumptionNotFound(session.id, item_id)
        return rows

    def release(self, sess: Session, session: SessionRecord,
                item_id: int) -> int:
        """撤销时段内某商品的全部消耗，库存按消耗数量退回。

        Returns:
            退回的总数量。
        """
        rows = self._consumptions(sess, session, item_id)
        item = sess.query(InventoryItem).filter(
            InventoryItem.id == item_id
        ).first()

        returned = 0
        for row in rows:
            returned += row.quantity
            session.inventory_total -= row.price * row.quantity
            sess.delete(row)
        if item is not None:
            self._move_stock(sess, item, returned, "return", session.id)
        sess.flush()
        return returned

    def change_quantity(self, sess: Session, session: SessionRecord,
                        item_id: int, new_quantity: int) -> None:
        """把时段内某商品的消耗总数改为 new_quantity。

        增加时从库存扣减并原地增加最新一行；减少时退回库存并从最新一行
        开始递减，数量归零的行删除。new_quantity <= 0 等同于撤销。
        """
        if new_quantity <= 0:
            self.release(sess, session, item_id)
            return

        rows = self._consumptions(sess, session, item_id)
        old_quantity = sum(row.quantity for row in rows)
        diff = new_quantity - old_quantity
        if diff == 0:
            return

        if diff > 0:
            item = self._get_item(sess, item_id)
            self._move_stock(sess, item, -diff, "consumption", session.id)
            latest = rows[-1]
            latest.quantity += diff
            session.inventory_total += latest.price * diff
            sess.flush()
            return

        to_return = -diff
        for row in reversed(rows):
            if to_return == 0:
                break
            taken = min(row.quantity, to_return)
            session.inventory_total -= row.price * taken
            to_return -= taken
            if taken == row.quantity:
                sess.delete(row)
            else:
                row.quantity -= taken

        item = sess.query(InventoryItem).filter(
            InventoryItem.id == item_id
        ).first()
        if item is not None:
            self._move_stock(sess, item, -diff, "return", session.id)
        sess.flush()

    def adjust_stock(self, item_id: int, delta: int,
                     reason: str = "restock",
                     notes: Optional[str] = None,
                     session: Optional[Session] = None) -> InventoryItem:
        """入库或手工调整库存。

        Args:
            item_id: 商品ID。
            delta: 数量变动，正数入库，负数出库。
            reason: restock / adjustment。
            notes: 备注（可选）。

        Returns:
            调整后的 InventoryItem。

        Raises:
            ValidationError: delta 为 0 或 reason 无效。
            InventoryItemNotFound: 商品不存在。
            InsufficientStock: 调整后库存为负。
        """
        if delta == 0:
            raise ValidationError("stock adjustment must not be zero")
        if reason not in ("restock", "adjustment"):
            raise ValidationError(f"invalid stock adjustment reason: {reason}")

        def _do(sess):
            item = self._get_item(sess, item_id)
            self._move_stock(sess, item, delta, reason, notes=notes)
            sess.flush()
            return item

        item = self._run(_do, session)
        logger.info(
            f"Stock of item {item_id} adjusted by {delta} ({reason}), "
            f"now {item.quantity}"
        )
        return item

    def get_low_stock_items(self,
                            session: Optional[Session] = None
                            ) -> List[InventoryItem]:
        """获取库存不高于阈值的商品。"""
        def _query(sess):
            return sess.query(InventoryItem).filter(
                InventoryItem.quantity <= InventoryItem.min_stock,
                InventoryItem.archived_at.is_(None)
            ).order_by(InventoryItem.id).all()

        if session:
            return _query(session)

        with self._get_session() as sess:
            return _query(sess)
