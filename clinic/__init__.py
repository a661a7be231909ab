"""
诊所房间租赁后端
预订、可用性、定价与支付对账
"""
__version__ = "0.1.0"
