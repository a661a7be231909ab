"""
领域层 - 纯业务规则，不做 I/O

- pricing: 定价计算
- availability: 可用性规则
- booking: 预订聚合校验与状态机
- membership: 会员激活规则
- dates: 日期/时间规范化
"""
