"""
@file logging.py
@brief Centralized logging configuration
@details
Configures application logging with support for file and stdout output.
Safely handles log directory creation.

@author Gleba Project
@date 2026-10-18
@version 1.0
@license AGPL-3.0
"""

import logging
import sys
import os


def _resolve_log_dir():
    """
    @brief Pick a writable log directory or None
    @details
    LOG_DIR wins when set. Otherwise /app/logs (container) is tried, then a
    logs/ directory next to the package.
    """
    log_dir = os.getenv("LOG_DIR", None)
    if log_dir is not None:
        return log_dir

    try:
        app_logs = "/app/logs"
        if not os.path.exists(app_logs) and os.access(os.path.dirname(app_logs), os.W_OK):
            os.makedirs(app_logs, exist_ok=True)
        if os.path.exists(app_logs) and os.access(app_logs, os.W_OK):
            return app_logs
    except (OSError, PermissionError):
        pass

    # this file is in gleba/core/, so back 2 levels is the project root
    base_dir = os.path.dirname(os.path.dirname(os.path.dirname(__file__)))
    log_dir = os.path.join(base_dir, "logs")
    try:
        os.makedirs(log_dir, exist_ok=True)
    except (OSError, PermissionError):
        return None
    return log_dir


def setup_logging() -> logging.Logger:
    """
    @brief Configure and return the application logger
    @details
    Sets up logging based on LOG_OUTPUT env var:
    - 'file': Write to <LOG_DIR>/gleba.log
    - 'stdout': Write to console
    - 'both': Write to both (default)

    LOG_LEVEL selects the root level [INFO].
    """
    log_output = os.getenv("LOG_OUTPUT", "both").lower()
    log_dir = _resolve_log_dir() if log_output in ("file", "both") else None

    handlers = []

    if log_output in ("stdout", "both"):
        handlers.append(logging.StreamHandler(sys.stdout))

    if log_dir:
        try:
            handlers.append(logging.FileHandler(os.path.join(log_dir, "gleba.log")))
        except (OSError, PermissionError):
            # If file logging fails, ensure we at least have stdout
            if not any(isinstance(h, logging.StreamHandler) for h in handlers):
                handlers.append(logging.StreamHandler(sys.stdout))

    if not handlers:
        handlers.append(logging.StreamHandler(sys.stdout))

    logging.basicConfig(
        level=getattr(logging, os.getenv("LOG_LEVEL", "INFO").upper(), logging.INFO),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        handlers=handlers
    )

    return logging.getLogger("gleba")
