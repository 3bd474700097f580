"""
API routers. All are mounted under API_PREFIX by app.main.
"""

from app.routers import orders, realtime, restaurants, webhooks

__all__ = ["orders", "realtime", "restaurants", "webhooks"]
