import datetime
import logging.config
import os
import uuid

import structlog
import yaml

CONFIG_FILE = os.path.join(os.path.dirname(__file__), "config.yaml")
RUN_PLACEHOLDER = "logs/current_run"


def _new_run_dir(log_root: str) -> str:
    stamp = datetime.datetime.now().strftime("%Y%m%d_%H%M%S")
    run_dir = os.path.join(log_root, "logs", f"{stamp}_{uuid.uuid4().hex[:8]}")
    os.makedirs(run_dir, exist_ok=True)
    return run_dir


def _load_config(run_dir: str, level: str | None) -> dict:
    with open(CONFIG_FILE) as f:
        cfg = yaml.safe_load(f)
    for handler in cfg["handlers"].values():
        if "filename" in handler:
            handler["filename"] = handler["filename"].replace(RUN_PLACEHOLDER, run_dir)
    if level is not None:
        cfg["root"]["level"] = level.upper()
    return cfg


def init_logging(log_root: str | None = None, level: str | None = None) -> str:
    """
    Route training events to ``<log_root>/logs/<run id>/train.jsonl``.

    The run id is a timestamp plus a short random suffix.  ``level``
    overrides the root level of the bundled config.  Returns the run
    folder.
    """
    run_dir = _new_run_dir(log_root if log_root is not None else os.getcwd())
    logging.config.dictConfig(_load_config(run_dir, level))

    # one JSON object per event, written by the stdlib handlers
    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.JSONRenderer(),
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )
    return run_dir
