"""
通知渠道抽象层 - 仅定义接口，clinic 层实现具体渠道
"""
from clinic_core.notification.channel import (
    Notification, INotificationChannel, NotificationChannelRegistry
)

__all__ = ["Notification", "INotificationChannel", "NotificationChannelRegistry"]
