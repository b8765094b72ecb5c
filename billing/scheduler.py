"""定时任务调度器 - 通用的任务调度框架

订阅到期检查等具体任务由调用方以回调形式注入。
"""
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.cron import CronTrigger
from typing import Callable, Optional
from loguru import logger
import asyncio


class Scheduler:
    """定时任务调度器

    通用的任务调度框架，不包含具体的业务逻辑
    业务逻辑通过回调函数注入
    """

    def __init__(self, loop: Optional[asyncio.AbstractEventLoop] = None):
        """初始化调度器

        Args:
            loop: 事件循环，默认使用当前运行中的事件循环
        """
        self.scheduler = AsyncIOScheduler(event_loop=loop)

    def add_daily_task(
        self,
        task_func: Callable,
        hour: int = 0,
        minute: int = 5,
        task_id: str = 'daily_task',
        task_name: str = '每日任务'
    ):
        """添加每日定时任务

        Args:
            task_func: 任务函数
            hour: 小时 (0-23)
            minute: 分钟 (0-59)
            task_id: 任务ID
            task_name: 任务名称
        """
        self.scheduler.add_job(
            task_func,
            trigger=CronTrigger(hour=hour, minute=minute),
            id=task_id,
            name=task_name,
            replace_existing=True
        )
        logger.info(f"Added daily task '{task_name}' at {hour:02d}:{minute:02d}")

    def get_job(self, job_id: str):
        return self.scheduler.get_job(job_id)

    def start(self):
        """启动调度器"""
        self.scheduler.start()
        logger.info("Scheduler started")

    def stop(self):
        """停止调度器"""
        self.scheduler.shutdown()
        logger.info("Scheduler stopped")

    def remove_job(self, job_id: str):
        """移除任务

        Args:
            job_id: 任务ID
        """
        try:
            self.scheduler.remove_job(job_id)
            logger.info(f"Job {job_id} removed")
        except Exception as e:
            logger.warning(f"Failed to remove job {job_id}: {e}")


def make_expiry_task(billing) -> Callable[[], int]:
    """构造订阅到期检查任务。

    任务自身捕获并记录异常，不让一次失败影响调度器后续运行。
    """
    def _expire_subscriptions() -> int:
        try:
            return billing.expire_subscriptions()
        except Exception as e:
            logger.error(f"Subscription expiry check failed: {e}")
            return 0

    return _expire_subscriptions
