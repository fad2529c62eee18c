"""
Knowledge Hub API Server

Serves knowledge documents, full-text search, version history and @mention
suggestions over HTTP. Run with ``python main.py`` or ``uvicorn main:app``.
"""

import logging

from knowledge_hub.api.app import create_app
from knowledge_hub.lib.config import ConfigLoader
from knowledge_hub.lib.logger import setup_logging

logger = logging.getLogger(__name__)

config = ConfigLoader()

setup_logging(log_level=config.get_env("log_level", "INFO"), structured=False)

app = create_app(config)


if __name__ == "__main__":
    import uvicorn

    server_config = config.get("server", {})
    uvicorn.run(
        "main:app",
        host=server_config.get("host", "127.0.0.1"),
        port=server_config.get("port", 9100),
        reload=server_config.get("reload", False),
        log_level=config.get_env("log_level", "INFO").lower(),
    )
