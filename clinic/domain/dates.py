"""
日期/时间规范化

上游调用方传来的日期格式并不统一（YYYY-MM-DD、ISO 时间戳、MM/DD/YYYY、
RFC 2822 字符串、date/datetime 对象），写库前统一规范化为 YYYY-MM-DD。
"""
import calendar
import re
from datetime import date, datetime, UTC
from email.utils import parsedate_to_datetime
from typing import Any

from clinic.errors import ValidationError

DATE_RE = re.compile(r"^\d{4}-\d{2}-\d{2}$")
TIME_RE = re.compile(r"^([0-1]?[0-9]|2[0-3]):([0-5][0-9])$")
US_DATE_RE = re.compile(r"^(\d{1,2})/(\d{1,2})/(\d{4})$")


def normalize_date(value: Any) -> str:
    """
    规范化为 YYYY-MM-DD

    带时区的时间戳先换算到 UTC 再取日期部分。

    Raises:
        ValidationError: 无法解析
    """
    if isinstance(value, datetime):
        return _datetime_to_date(value).isoformat()
    if isinstance(value, date):
        return value.isoformat()
    if not isinstance(value, str) or not value.strip():
        raise ValidationError(f"不支持的日期格式: {value!r}")

    text = value.strip()

    if DATE_RE.match(text):
        try:
            return date.fromisoformat(text).isoformat()
        except ValueError:
            raise ValidationError(f"无效日期: {text}")

    m = US_DATE_RE.match(text)
    if m:
        month, day, year = (int(g) for g in m.groups())
        try:
            return date(year, month, day).isoformat()
        except ValueError:
            raise ValidationError(f"无效日期: {text}")

    # ISO 8601 时间戳，如 2025-06-02T00:00:00.000Z
    try:
        parsed = datetime.fromisoformat(text.replace("Z", "+00:00"))
        return _datetime_to_date(parsed).isoformat()
    except ValueError:
        pass

    # RFC 2822，如 Mon, 02 Jun 2025 00:00:00 GMT
    try:
        parsed = parsedate_to_datetime(text)
        return _datetime_to_date(parsed).isoformat()
    except (TypeError, ValueError, IndexError):
        pass

    raise ValidationError(f"无效日期格式: {text}")


def _datetime_to_date(value: datetime) -> date:
    if value.tzinfo is not None:
        value = value.astimezone(UTC)
    return value.date()


def normalize_time(value: Any) -> str:
    """
    校验并规范化 24 小时制 HH:MM

    Raises:
        ValidationError: 格式错误
    """
    if not isinstance(value, str):
        raise ValidationError(f"时间必须为 HH:MM 格式: {value!r}")
    m = TIME_RE.match(value.strip())
    if not m:
        raise ValidationError(f"时间必须为 HH:MM 格式: {value}")
    return f"{int(m.group(1)):02d}:{m.group(2)}"


def is_weekend(day: date) -> bool:
    """周六、周日"""
    return day.weekday() >= 5


def is_past(day: date, today: date) -> bool:
    return day < today


def month_days(year: int, month: int) -> list:
    """某月所有日期"""
    if not 1 <= month <= 12:
        raise ValidationError(f"无效月份: {month}")
    if not date.min.year <= year <= date.max.year:
        raise ValidationError(f"无效年份: {year}")
    last_day = calendar.monthrange(year, month)[1]
    return [date(year, month, day) for day in range(1, last_day + 1)]
