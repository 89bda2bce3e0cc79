from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.interval import IntervalTrigger
from sqlalchemy.exc import SQLAlchemyError
import logging

from core.config import CALL_SWEEP_INTERVAL_SECONDS, TYPING_PURGE_INTERVAL_SECONDS
from core.db import get_db_context
from routers.calls.service import expire_ringing_calls
from routers.messaging.service import purge_stale_typing

logger = logging.getLogger(__name__)

# Create a global scheduler instance that can be accessed by other modules
scheduler = BackgroundScheduler()

# ========= Scheduled Tasks =========

def sweep_unanswered_calls():
    """Move calls that rang past the timeout to missed"""
    try:
        with get_db_context() as db:
            missed = expire_ringing_calls(db)
            if missed:
                logger.info(f"Scheduled sweep marked {missed} calls as missed")
    except SQLAlchemyError as e:
        logger.error(f"Error in sweep_unanswered_calls: {str(e)}", exc_info=True)

def purge_typing_indicators():
    """Delete typing rows nobody refreshed within the timeout"""
    try:
        with get_db_context() as db:
            purge_stale_typing(db)
    except SQLAlchemyError as e:
        logger.error(f"Error in purge_typing_indicators: {str(e)}", exc_info=True)

# ========= Scheduler Setup =========

def start_scheduler():
    """Initialize and start the scheduler"""
    if scheduler.running:
        return

    scheduler.add_job(
        sweep_unanswered_calls,
        IntervalTrigger(seconds=CALL_SWEEP_INTERVAL_SECONDS),
        id='sweep_unanswered_calls',
        replace_existing=True,
        max_instances=1,
        coalesce=True,
    )

    scheduler.add_job(
        purge_typing_indicators,
        IntervalTrigger(seconds=TYPING_PURGE_INTERVAL_SECONDS),
        id='purge_typing_indicators',
        replace_existing=True,
        max_instances=1,
        coalesce=True,
    )

    scheduler.start()
    logger.info("Scheduler started successfully")

def stop_scheduler():
    if scheduler.running:
        scheduler.shutdown(wait=False)
        logger.info("Scheduler stopped")
