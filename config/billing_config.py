"""
计费配置接口 - 支持可替换的套餐与支付方式配置

新场馆可以实现自己的计费配置，替换默认配置。
"""
from abc import ABC, abstractmethod
from typing import List, Dict


class BillingConfig(ABC):
    """计费配置抽象基类"""

    @abstractmethod
    def get_plan_days(self) -> Dict[str, int]:
        """获取订阅套餐及其天数"""
        pass

    @abstractmethod
    def get_payment_methods(self) -> List[str]:
        """获取前台可用的收款方式"""
        pass


class CoworkingSpaceConfig(BillingConfig):
    """共享办公空间计费配置"""

    def get_plan_days(self) -> Dict[str, int]:
        return {
            "weekly": 7,
            "half-monthly": 15,
            "monthly": 30,
        }

    def get_payment_methods(self) -> List[str]:
        return ["cash", "card", "transfer"]


# 全局计费配置实例（可以在 app.py 中替换）
billing_config: BillingConfig = CoworkingSpaceConfig()
