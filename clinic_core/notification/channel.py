"""
通知渠道接口 - 域无关的通知抽象

clinic 层实现具体渠道（邮件），事件处理器只依赖注册表和 Notification。
"""
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Dict, Optional


@dataclass(frozen=True)
class Notification:
    """
    一条待发送的通知

    Attributes:
        recipient: 接收方（邮件渠道为邮箱地址）
        subject: 标题
        body: 正文
        content_type: 正文格式，'html' 或 'plain'
    """
    recipient: str
    subject: str
    body: str
    content_type: str = "html"


class INotificationChannel(ABC):
    """通知渠道接口"""

    channel_type: str = ""

    @abstractmethod
    def send(self, notification: Notification) -> bool:
        """发送通知；失败时返回 False，不抛出异常"""


class NotificationChannelRegistry:
    """
    通知渠道注册表

    每个应用实例一份，在 lifespan 中注册渠道后放入 app.state。
    """

    def __init__(self) -> None:
        self._channels: Dict[str, INotificationChannel] = {}

    def register(self, channel: INotificationChannel) -> None:
        """注册渠道，同类型的旧渠道被替换"""
        if not channel.channel_type:
            raise ValueError(f"{channel.__class__.__name__} has no channel_type")
        self._channels[channel.channel_type] = channel

    def get_channel(self, channel_type: str) -> Optional[INotificationChannel]:
        return self._channels.get(channel_type)

    def send(self, channel_type: str, notification: Notification) -> bool:
        """通过指定渠道发送，渠道未注册时返回 False"""
        channel = self._channels.get(channel_type)
        if channel is None:
            return False
        return channel.send(notification)
