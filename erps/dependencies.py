# erps/dependencies.py
"""
Shared FastAPI dependencies.
Actors identify themselves with the X-Actor-Id header (issued by the partner portal);
the lifecycle services decide what that actor may do.
"""

from typing import Optional
from fastapi import Depends, Header, Request
from sqlalchemy.orm import Session
from erps.database import get_db
from erps.services.inspection_service import InspectionLifecycle
from erps.services.notification_service import LifecycleNotifier
from erps.services.scheduler import LifecycleScheduler
from erps.services.warranty_service import WarrantyLifecycle

_notifier = LifecycleNotifier()


def get_actor_id(x_actor_id: Optional[str] = Header(None)) -> Optional[str]:
    return x_actor_id


def get_notifier() -> LifecycleNotifier:
    return _notifier


def get_client_ip(request: Request) -> Optional[str]:
    forwarded = request.headers.get("X-Forwarded-For")
    if forwarded:
        return forwarded.split(",")[0].strip()
    return request.client.host if request.client else None


def get_warranty_lifecycle(db: Session = Depends(get_db),
                           notifier: LifecycleNotifier = Depends(get_notifier)) -> WarrantyLifecycle:
    return WarrantyLifecycle(db, notifier)


def get_inspection_lifecycle(db: Session = Depends(get_db),
                             notifier: LifecycleNotifier = Depends(get_notifier)) -> InspectionLifecycle:
    return InspectionLifecycle(db, notifier)


def get_scheduler(request: Request) -> LifecycleScheduler:
    return request.app.state.scheduler
