#!/usr/bin/env python3
"""场馆计费服务 - 应用入口

启动计费服务后台进程，提供：
1. 数据库初始化（建表）
2. 每日订阅到期检查（APScheduler 定时任务）

使用方式：
    python app.py

    # 指定数据库
    python app.py --db sqlite:///data/venue.db

    # 启动时立即执行一次到期检查
    python app.py --expire-now

环境变量（在 .env 文件中配置，运行 python scripts/setup_env.py 生成）：
    DATABASE_URL            数据库连接地址
    WRITE_TIMEOUT_SECONDS   写入槽位等待时间（默认 5 秒）
    INVOICE_DUE_DAYS        账单到期天数（默认 7 天）
    EXPIRY_CHECK_HOUR       每日到期检查的小时（默认 0）
    EXPIRY_CHECK_MINUTE     每日到期检查的分钟（默认 5）
    LOG_LEVEL               日志级别（默认 INFO）
"""
import argparse
import asyncio
import signal
import sys

from loguru import logger


def _configure_logging(level: str) -> None:
    logger.remove()
    logger.add(sys.stderr, level=level.upper())


async def _cleanup(scheduler, db):
    """统一资源清理函数。"""
    logger.info("Cleaning up...")

    if scheduler is not None:
        try:
            scheduler.stop()
        except Exception as e:
            logger.warning(f"Error stopping scheduler: {e}")

    if db is not None:
        try:
            db.close()
        except Exception as e:
            logger.warning(f"Error closing database: {e}")

    logger.info("Service stopped")


async def main():
    from config.settings import settings

    parser = argparse.ArgumentParser(description="场馆计费服务")
    parser.add_argument("--db", default=None,
                        help="数据库连接 URL（默认读取 DATABASE_URL）")
    parser.add_argument("--expire-now", action="store_true",
                        help="启动时立即执行一次订阅到期检查")
    args = parser.parse_args()

    _configure_logging(settings.log_level)

    scheduler = None
    db = None

    try:
        from database import DatabaseManager
        from billing import VenueBilling
        from billing.scheduler import Scheduler, make_expiry_task

        db = DatabaseManager(args.db)
        db.create_tables()
        logger.info(f"Database connected: {db.database_url}")

        billing = VenueBilling(db)
        expiry_task = make_expiry_task(billing)

        if args.expire_now:
            expiry_task()

        scheduler = Scheduler(asyncio.get_running_loop())
        scheduler.add_daily_task(
            expiry_task,
            hour=settings.expiry_check_hour,
            minute=settings.expiry_check_minute,
            task_id="subscription_expiry",
            task_name="订阅到期检查",
        )
        scheduler.start()

        loop = asyncio.get_running_loop()
        shutdown_event = asyncio.Event()

        def signal_handler(signum):
            logger.info(f"Received signal {signum}, shutting down...")
            shutdown_event.set()

        for sig in (signal.SIGINT, signal.SIGTERM):
            loop.add_signal_handler(sig, signal_handler, sig)

        logger.info("Venue billing service running, press Ctrl+C to stop")
        await shutdown_event.wait()

    except asyncio.CancelledError:
        logger.info("Task cancelled, cleaning up...")
    finally:
        await _cleanup(scheduler, db)


def run():
    try:
        asyncio.run(main())
    except (KeyboardInterrupt, SystemExit):
        pass


if __name__ == "__main__":
    run()
