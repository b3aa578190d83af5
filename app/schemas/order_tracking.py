from pydantic import BaseModel, Field
from typing import Optional, List
from datetime import datetime
from app.models.order import OrderStatus


class OrderStatusUpdate(BaseModel):
    status: OrderStatus
    tracking_number: Optional[str] = Field(None, max_length=100)
    notes: Optional[str] = None


class OrderStatusHistoryResponse(BaseModel):
    id: int
    order_id: int
    old_status: Optional[str]
    new_status: str
    created_by: str  # Actor email, or "system"
    notes: Optional[str]
    created_at: datetime

    class Config:
        from_attributes = True


class OrderTrackingResponse(BaseModel):
    order_id: int
    current_status: str
    tracking_number: Optional[str]
    status_history: List[OrderStatusHistoryResponse]

    class Config:
        from_attributes = True
