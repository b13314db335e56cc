# erps/routers/health.py
"""
System health check endpoint.
Returns status of backend + DB + notification gateway reachability + scheduler.
"""

import requests
from fastapi import APIRouter, Depends, Request
from sqlalchemy.orm import Session
from sqlalchemy import text
from erps.database import get_db
from erps.config import settings
from datetime import datetime

router = APIRouter()


def _check_gateway(url: str) -> str:
    try:
        resp = requests.head(url, timeout=3)
        return "ok" if resp.status_code < 500 else f"http_{resp.status_code}"
    except requests.exceptions.ConnectionError:
        return "unreachable"
    except requests.exceptions.RequestException as e:
        return f"error: {str(e)}"


@router.get("/health", summary="System health check")
def health_check(request: Request, db: Session = Depends(get_db)):
    """
    Returns:
    - Backend status
    - Database connectivity
    - Email / SMS gateway reachability (when configured)
    - Scheduler state
    """
    result = {
        "status": "ok",
        "timestamp": datetime.utcnow().isoformat(),
        "backend": "ok",
        "database": "unknown",
        "gateways": {},
        "scheduler": "disabled",
    }

    # Check database
    try:
        db.execute(text("SELECT 1"))
        result["database"] = "ok"
    except Exception as e:
        result["database"] = f"error: {str(e)}"
        result["status"] = "degraded"

    for name, url in (("email", settings.EMAIL_GATEWAY_URL), ("sms", settings.SMS_GATEWAY_URL)):
        if not url:
            result["gateways"][name] = "not configured"
            continue
        result["gateways"][name] = _check_gateway(url)
        if result["gateways"][name] != "ok":
            result["status"] = "degraded"

    scheduler = getattr(request.app.state, "scheduler", None)
    if scheduler is not None:
        result["scheduler"] = "running" if scheduler.started else "stopped"

    return result
