"""API module for alert-service.

Usage:
    uvicorn alert_service.main:app --host 0.0.0.0 --port 8000
"""

from alert_service.api.routes import router

__all__ = ["router"]
