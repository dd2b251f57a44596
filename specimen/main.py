import logging
import traceback

import uvicorn

from specimen.api.app import create_app
from specimen.config import Config
from specimen.utils.logger import setup_logger

logger = setup_logger(__name__)

def main():
    """Main entry point"""
    Config.validate()

    app = create_app()
    logger.info(f"Starting Specimen API on {Config.API_HOST}:{Config.API_PORT}")

    try:
        uvicorn.run(
            app,
            host=Config.API_HOST,
            port=Config.API_PORT,
            log_level="debug" if Config.DEBUG else "info"
        )
    except Exception as e:
        logging.error(f"Fatal error: {e}")
        traceback.print_exc()
        raise

if __name__ == "__main__":
    main()
