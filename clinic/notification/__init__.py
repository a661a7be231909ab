"""
通知模块 - 邮件渠道与模板
"""
from clinic.notification.email_channel import EmailChannel

__all__ = ["EmailChannel"]
