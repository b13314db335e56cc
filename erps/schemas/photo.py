# erps/schemas/photo.py
from datetime import datetime
from typing import Optional
from erps.schemas.base import CamelModel


class PhotoIn(CamelModel):
    category: Optional[str] = None      # GENERATOR | COUPLER | GENERATOR_RED_LIGHT | COUPLERS | CORROSION_OR_CLEAR
    url: Optional[str] = None
    description: Optional[str] = None


class PhotoOut(CamelModel):
    id: str
    warranty_id: Optional[str]
    inspection_id: Optional[str]
    category: Optional[str]
    url: str
    description: Optional[str]
    uploaded_at: Optional[datetime]
