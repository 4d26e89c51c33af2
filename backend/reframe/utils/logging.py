import logging
import sys

AUDIT_LOGGER = "reframe.audit"


def setup_logging(level: str = "INFO") -> None:
    """Configure application-wide logging.

    Audit records go through the same handler; they are already JSON, so
    they keep the pipe-separated prefix and stay greppable by logger name.
    """
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
        handlers=[logging.StreamHandler(sys.stdout)],
    )
    logging.getLogger(AUDIT_LOGGER).setLevel(logging.INFO)

    # Quiet noisy third-party loggers
    for name in ("uvicorn.access", "sqlalchemy.engine", "httpx", "openai", "langchain"):
        logging.getLogger(name).setLevel(logging.WARNING)
