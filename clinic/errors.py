"""
业务异常定义

- ValidationError: 日期/时间/房间数据格式错误，整个请求拒绝，不做部分写入
- ConflictError: 房间/日期/时段已被占用
- NotFoundError: 预订/用户/支付意图不存在
- UpstreamError: 支付处理方或邮件服务失败
- StorageError: 意外的存储失败
"""
from typing import Optional


class ClinicError(Exception):
    """业务异常基类"""

    status_code = 500

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)


class ValidationError(ClinicError, ValueError):
    """请求数据不合法"""

    status_code = 400


class ConflictError(ClinicError):
    """房间时段冲突"""

    status_code = 409

    def __init__(self, message: str, room_id: Optional[int] = None, room_name: Optional[str] = None):
        super().__init__(message)
        self.room_id = room_id
        self.room_name = room_name


class NotFoundError(ClinicError, LookupError):
    """对象不存在"""

    status_code = 404


class UpstreamError(ClinicError):
    """外部服务调用失败"""

    status_code = 502

    def __init__(self, message: str, service: str = ""):
        super().__init__(message)
        self.service = service


class StorageError(ClinicError):
    """意外的存储失败"""

    status_code = 500
