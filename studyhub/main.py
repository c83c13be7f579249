"""Main entry point for the gamification API server"""
import logging
import uvicorn
from studyhub.config import validate_config, LOG_LEVEL, API_HOST, API_PORT
from studyhub.api.server import create_api_application

# Configure logging
logging.basicConfig(
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
    level=getattr(logging, LOG_LEVEL.upper())
)

logger = logging.getLogger(__name__)


def main() -> None:
    """Main application entry point"""
    # Validate configuration
    logger.info("Validating configuration...")
    validate_config()

    logger.info(f"Starting API server on {API_HOST}:{API_PORT}")
    uvicorn.run(
        create_api_application(),
        host=API_HOST,
        port=API_PORT,
        log_level=LOG_LEVEL.lower()
    )


if __name__ == "__main__":
    main()
