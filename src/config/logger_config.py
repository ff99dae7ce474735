import os
from pathlib import Path

from loguru import logger

log_dir = Path(os.getenv("WIKI_INDEX_LOG_DIR", "logs"))
log_file = log_dir / "wiki_index_{time}.log"

logger.remove()
logger.add(
    log_file,
    rotation="256 MB",
    retention="10 days",
    compression="zip",
    encoding="utf-8",
    level=os.getenv("LOG_LEVEL", "INFO"),
    # Pool workers and the bulk executor log from their own threads.
    enqueue=True,
)
