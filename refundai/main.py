"""Application entry point for the REFUND.AI API server."""

import uvicorn

from refundai.api.app import app
from refundai.utils.config import load_config
from refundai.utils.logger import get_logger, setup_logging

logger = get_logger(__name__)


def main() -> None:
    """Start the FastAPI application server on the configured address."""
    config = load_config()
    setup_logging(config.log_level)
    logger.info(
        "Starting REFUND.AI API on %s:%d (LLM model %s)",
        config.server.host,
        config.server.port,
        config.llm.model,
    )
    uvicorn.run(app, host=config.server.host, port=config.server.port)


if __name__ == "__main__":
    main()
