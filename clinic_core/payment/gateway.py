"""
支付网关接口 - 域无关的支付处理方抽象

支付处理方被视为不透明的外部服务：先创建支付意图（payment intent），
随后异步报告该意图的结果。clinic 层实现具体网关（如 Stripe）。
"""
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Dict, List, Optional


class PaymentGatewayError(Exception):
    """支付处理方调用失败（网络、鉴权、处理方内部错误）"""


@dataclass
class PaymentError:
    """
    处理方报告的支付失败详情

    Attributes:
        message: 失败描述
        code: 错误码（如 card_declined）
        decline_code: 发卡行拒付码（如 insufficient_funds）
    """

    message: Optional[str] = None
    code: Optional[str] = None
    decline_code: Optional[str] = None


@dataclass
class PaymentIntentInfo:
    """
    支付意图快照

    Attributes:
        id: 处理方分配的意图ID
        status: 处理方状态（succeeded / requires_payment_method / canceled ...）
        amount: 金额（最小货币单位，如美分）
        currency: 货币代码（小写）
        payment_method_types: 支付方式类型列表
        last_payment_error: 最近一次失败详情
        metadata: 创建意图时附带的元数据
        client_secret: 前端确认支付所需的密钥
    """

    id: str
    status: str
    amount: int
    currency: str
    payment_method_types: List[str] = field(default_factory=list)
    last_payment_error: Optional[PaymentError] = None
    metadata: Dict[str, str] = field(default_factory=dict)
    client_secret: Optional[str] = None


class IPaymentGateway(ABC):
    """支付网关接口"""

    @abstractmethod
    def create_intent(
        self,
        amount: int,
        currency: str,
        metadata: Optional[Dict[str, str]] = None,
    ) -> PaymentIntentInfo:
        """创建支付意图

        Args:
            amount: 金额（最小货币单位）
            currency: 货币代码
            metadata: 附带元数据（如 bookingId）

        Raises:
            PaymentGatewayError: 处理方调用失败
        """

    @abstractmethod
    def retrieve_intent(self, intent_id: str) -> PaymentIntentInfo:
        """按ID获取支付意图当前状态

        Raises:
            PaymentGatewayError: 处理方调用失败
        """
