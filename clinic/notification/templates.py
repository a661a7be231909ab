"""
邮件模板
返回 (subject, html)；所有用户输入经 HTML 转义
"""
from datetime import date
from html import escape
from typing import Any, Dict, List, Tuple

FOOTER = """
    <div style="text-align: center; margin-top: 30px; color: #6b7280;">
        <p>Hire a Clinic</p>
        <p>2140 N Lake Forest Dr #100, McKinney, TX 75071</p>
    </div>
"""

SLOT_LABELS = {
    "full": "Full Day",
    "morning": "Morning",
    "evening": "Evening",
}


def _wrap(title: str, body: str) -> str:
    return (
        '<div style="font-family: Arial, sans-serif; max-width: 600px; margin: 0 auto;">'
        f'<h1 style="color: #3b82f6; text-align: center;">{title}</h1>'
        f"{body}{FOOTER}</div>"
    )


def _format_day(value: str) -> str:
    return date.fromisoformat(value).strftime("%m/%d/%Y")


def _room_block(room: Dict[str, Any]) -> str:
    items = "".join(
        f"<li>{_format_day(d['date'])} ({escape(d['start_time'])} - {escape(d['end_time'])})</li>"
        for d in room.get("dates", [])
    )
    slot = SLOT_LABELS.get(room.get("time_slot"), escape(str(room.get("time_slot"))))
    return (
        '<div style="margin-bottom: 15px;">'
        f"<p><strong>Room:</strong> {escape(room.get('name', ''))}</p>"
        f"<p><strong>Time Slot:</strong> {slot}</p>"
        f"<p><strong>Dates:</strong></p><ul>{items}</ul></div>"
    )


def booking_confirmation_email(
    customer_name: str,
    booking_id: int,
    booking_type: str,
    total_amount: str,
    rooms: List[Dict[str, Any]],
) -> Tuple[str, str]:
    """预订确认邮件"""
    rooms_html = "".join(_room_block(room) for room in rooms)
    body = (
        f"<p>Dear {escape(customer_name)},</p>"
        "<p>Thank you for booking with Hire a Clinic. Your booking has been confirmed.</p>"
        '<div style="background-color: #f3f4f6; padding: 20px; border-radius: 8px; margin: 20px 0;">'
        '<h2 style="color: #1f2937; margin-top: 0;">Booking Details</h2>'
        f"<p><strong>Booking ID:</strong> {booking_id}</p>"
        f"<p><strong>Booking Type:</strong> {escape(booking_type).capitalize()}</p>"
        f"<p><strong>Total Amount:</strong> ${escape(total_amount)}</p>"
        f'<h3 style="color: #1f2937;">Room Details</h3>{rooms_html}</div>'
        "<p>For any questions or assistance, please don't hesitate to contact us.</p>"
    )
    return "Booking Confirmation - Hire a Clinic", _wrap("Booking Confirmation", body)


def registration_email(
    first_name: str,
    verification_url: str,
    verification_code: str,
) -> Tuple[str, str]:
    """注册验证邮件：验证链接或 6 位验证码二选一"""
    body = (
        f"<p>Dear {escape(first_name)},</p>"
        "<p>Thank you for registering with Hire a Clinic. To complete your registration "
        "and activate your account, you can either:</p>"
        '<div style="text-align: center; margin: 30px 0;">'
        f'<a href="{escape(verification_url, quote=True)}" style="background-color: #3b82f6; '
        'color: white; padding: 12px 24px; text-decoration: none; border-radius: 6px;">'
        "Verify Email Address</a></div>"
        "<p>Or enter this verification code:</p>"
        '<div style="text-align: center; font-size: 32px; letter-spacing: 8px; font-weight: bold;">'
        f"{escape(verification_code)}</div>"
        "<p>This link and code will expire in 24 hours.</p>"
    )
    return "Welcome to Hire a Clinic!", _wrap("Welcome to Hire a Clinic", body)


def verification_success_email(first_name: str, login_url: str) -> Tuple[str, str]:
    """邮箱验证成功邮件"""
    body = (
        f"<p>Dear {escape(first_name)},</p>"
        "<p>Your email address has been verified. You can now sign in and book clinic rooms.</p>"
        '<div style="text-align: center; margin: 30px 0;">'
        f'<a href="{escape(login_url, quote=True)}" style="background-color: #3b82f6; '
        'color: white; padding: 12px 24px; text-decoration: none; border-radius: 6px;">'
        "Sign In</a></div>"
    )
    return "Email Verified - Hire a Clinic", _wrap("Email Verified", body)
