import logging

import uvicorn

from crm_auth.config import settings
from crm_auth.main import create_app
from crm_auth.middleware.logging import setup_structured_logging

setup_structured_logging(log_level=settings.log_level, json_format=settings.log_json)
logger = logging.getLogger(__name__)

app = create_app(settings)

if settings.debug:
    logger.info(f"Running in {settings.environment} mode")
    logging.getLogger("sqlalchemy.engine").setLevel(logging.INFO)


if __name__ == "__main__":
    uvicorn.run("main:app", host="0.0.0.0", port=8000, reload=settings.debug)
