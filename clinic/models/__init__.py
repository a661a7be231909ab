"""
数据模型
- ontology: SQLAlchemy 本体对象
- schemas: Pydantic 请求/响应模式
"""
