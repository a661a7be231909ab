"""
初始化数据
房间表为空时写入默认诊室
"""
import logging
from sqlalchemy.orm import Session

from clinic.models.ontology import Room

logger = logging.getLogger(__name__)

DEFAULT_ROOMS = [
    {"id": 1, "name": "Room 1", "description": "Consultation room 1"},
    {"id": 2, "name": "Room 2", "description": "Consultation room 2"},
    {"id": 3, "name": "Room 3", "description": "Consultation room 3"},
]


def seed_rooms(db: Session) -> int:
    """写入默认房间，返回新增数量"""
    if db.query(Room).count() > 0:
        return 0
    for data in DEFAULT_ROOMS:
        db.add(Room(**data))
    db.commit()
    logger.info(f"Seeded {len(DEFAULT_ROOMS)} rooms")
    return len(DEFAULT_ROOMS)
