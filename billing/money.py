"""金额与计费计算。

所有金额都是整数（最小货币单位：皮阿斯特，100 皮阿斯特 = 1 镑），
计算全程使用整数运算，避免浮点误差累积。
"""
from datetime import datetime
from decimal import Decimal, ROUND_HALF_UP
from typing import Optional

from config.billing_config import billing_config

PIASTERS_PER_UNIT = 100


def calculate_session_cost(minutes: int, hourly_rate: int,
                           daily_cap: Optional[int] = None) -> int:
    """按时长与费率计算时段费用。

    ``minutes * hourly_rate // 60``，daily_cap 大于 0 时封顶。
    时长不大于 0 时费用为 0。
    """
    if minutes <= 0:
        return 0
    cost = (minutes * hourly_rate) // 60
    if daily_cap and daily_cap > 0 and cost > daily_cap:
        return daily_cap
    return cost


def calculate_total(*amounts: int) -> int:
    return sum(amounts)


def format_amount(piasters: int) -> str:
    """把最小货币单位格式化为两位小数字符串，例如 1250 -> "12.50"。"""
    sign = "-" if piasters < 0 else ""
    whole, frac = divmod(abs(piasters), PIASTERS_PER_UNIT)
    return f"{sign}{whole}.{frac:02d}"


def to_piasters(amount) -> int:
    """把以镑为单位的金额换算为皮阿斯特（四舍五入）。"""
    value = Decimal(str(amount)) * PIASTERS_PER_UNIT
    return int(value.quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def duration_minutes(started_at: datetime, ended_at: datetime) -> int:
    """整分钟时长，不足一分钟的部分舍去，不会为负。"""
    seconds = (ended_at - started_at).total_seconds()
    return max(0, int(seconds // 60))


def plan_days(plan_type: str) -> int:
    """订阅套餐天数，未知套餐抛出 KeyError。"""
    return billing_config.get_plan_days()[plan_type]


def prorate_refund(price: int, start_date: datetime, end_date: datetime,
                   now: datetime) -> int:
    """按未使用时长比例计算订阅退款。

    等价于 ``floor(price / 总天数 * 剩余天数)``，剩余天数可为小数；
    按秒计算以保持整数运算。已过期返回 0，尚未开始返回全额。
    """
    total_seconds = int((end_date - start_date).total_seconds())
    if total_seconds <= 0 or price <= 0:
        return 0
    remaining_seconds = int((end_date - now).total_seconds())
    remaining_seconds = max(0, min(remaining_seconds, total_seconds))
    return (price * remaining_seconds) // total_seconds
