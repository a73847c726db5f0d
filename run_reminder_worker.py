"""
Appointment Reminder Worker Runner
Run this as a separate process: python run_reminder_worker.py
(set REMINDERS_ENABLED=false on the API so reminders are not scheduled twice)
"""

import asyncio
import logging
import sys

from propertyhub.workers.reminder_worker import run_reminder_worker

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    handlers=[logging.StreamHandler(sys.stdout)],
)

logger = logging.getLogger(__name__)

if __name__ == "__main__":
    logger.info("🚀 Starting Appointment Reminder Worker...")
    try:
        asyncio.run(run_reminder_worker())
    except KeyboardInterrupt:
        logger.info("👋 Reminder worker stopped by user")
    except Exception as e:
        logger.error(f"❌ Reminder worker crashed: {e}")
        sys.exit(1)
