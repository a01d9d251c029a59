"""
Celery Tasks for periodic maintenance
"""
import logging
from celery import shared_task
from sqlalchemy.exc import SQLAlchemyError
from ddride.db.database import SessionLocal

logger = logging.getLogger(__name__)


def get_db_session():
    """Get database session for tasks"""
    return SessionLocal()


@shared_task(bind=True, max_retries=3, default_retry_delay=60)
def reconcile_revoked_drivers(self):
    """
    Re-apply the revocation cascade to every revoked driver.

    Repairs assignments, pending requests and sessions left behind by a
    partially failed cascade. Drivers whose repair fails again are listed
    in the result and picked up by the next run.
    """
    from ddride.services.trust_service import trust_service

    db = get_db_session()
    try:
        result = trust_service.reconcile_revoked(db)
        logger.info(f"Reconcile completed: {result}")
        return result
    except SQLAlchemyError as e:
        logger.error(f"Reconcile failed: {e}")
        raise self.retry(exc=e)
    finally:
        db.close()


@shared_task(bind=True, max_retries=3, default_retry_delay=30)
def activate_due_events(self):
    """Flip upcoming events whose start time has passed to active"""
    from ddride.services.event_service import event_service

    db = get_db_session()
    try:
        activated = event_service.activate_due_events(db)
        return {"activated": activated}
    except SQLAlchemyError as e:
        logger.error(f"Event activation failed: {e}")
        raise self.retry(exc=e)
    finally:
        db.close()
