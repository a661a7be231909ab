"""
clinic_core - 领域无关的框架层

- engine: 事件总线、状态机
- notification: 通知渠道接口
- payment: 支付网关接口

业务层（clinic）实现具体渠道与网关，通过构造函数注入到服务中。
"""
