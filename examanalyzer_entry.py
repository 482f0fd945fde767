"""
Entry point for running the ExamAnalyzer API server.
"""
import logging
import os

import uvicorn

from examanalyzer.app.settings import get_data_home

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def main():
    logging.basicConfig(level=os.getenv("EXAMANALYZER_LOG_LEVEL", "INFO"), format=LOG_FORMAT)
    logger = logging.getLogger("examanalyzer")

    # Writable user data directory (settings, SQLite database, progress snapshots)
    data_home = get_data_home()
    data_home.mkdir(parents=True, exist_ok=True)
    logger.info("User Data Directory: %s", data_home)

    # Import the app after logging is configured so startup messages are shown
    from examanalyzer.main import app

    uvicorn.run(
        app,
        host=os.getenv("EXAMANALYZER_HOST", "127.0.0.1"),
        port=int(os.getenv("EXAMANALYZER_PORT", "8000")),
        log_level="info"
    )


if __name__ == "__main__":
    main()
