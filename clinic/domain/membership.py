"""
会员激活规则

首次支付成功时免除后续押金。直接支付校验与预订确认两条对账入口
都使用同一判断，保证相同事件序列得到相同终态。
"""


def should_activate(payment_succeeded: bool, is_membership_active: bool) -> bool:
    """支付成功且用户尚未激活会员"""
    return bool(payment_succeeded) and not bool(is_membership_active)
