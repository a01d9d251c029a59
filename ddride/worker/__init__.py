"""
Worker package for background tasks
"""
from ddride.worker.celery_app import celery_app

__all__ = ["celery_app"]
