import sys
import os
import logging

# Add parent directory to path for libs import
sys.path.insert(0, os.path.dirname(os.path.dirname(__file__)))

import uvicorn
from config import ApplicationConfig
from src.api.app import create_app

logging.basicConfig(
    level=ApplicationConfig.LOG_LEVEL,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)

app = create_app(ApplicationConfig)

if __name__ == "__main__":
    uvicorn.run(
        "api:app",
        host=ApplicationConfig.API_HOST,
        port=ApplicationConfig.API_PORT,
        # The in-process export worker must not be restarted by the reloader
        reload=ApplicationConfig.EXPORT_WORKER_MODE != "in_process",
        log_level=ApplicationConfig.LOG_LEVEL.lower(),
    )
