"""
房间路由
"""
from typing import List
from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session
from clinic.database import get_db
from clinic.models.ontology import Room
from clinic.models.schemas import RoomResponse

router = APIRouter(prefix="/rooms", tags=["房间"])


@router.get("", response_model=List[RoomResponse])
def list_rooms(db: Session = Depends(get_db)):
    """获取可预订房间列表"""
    return db.query(Room).filter(Room.is_active.is_(True)).order_by(Room.id).all()
