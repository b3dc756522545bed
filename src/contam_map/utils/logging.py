"""
Logging utilities for ContamMap.
Sets up multi-level logging to console and file.
"""

import logging
import queue
import sys
from pathlib import Path
from logging.handlers import QueueHandler, QueueListener
from typing import Optional

LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'


def setup_logging(output_dir: Optional[Path] = None, verbose: bool = False):
    """
    Setup logging to stdout (INFO, or DEBUG when verbose) and, when an output
    directory is given, to log.txt (DEBUG) in that directory.
    Records are handed to a QueueListener so request threads never block on I/O.

    :param output_dir: Directory to save log.txt, or None for console only.
    :param verbose: Lower the console level to DEBUG.
    :return: The started QueueListener; call stop() on shutdown.
    """
    formatter = logging.Formatter(LOG_FORMAT)

    handlers = []
    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(logging.DEBUG if verbose else logging.INFO)
    console_handler.setFormatter(formatter)
    handlers.append(console_handler)

    log_file = None
    if output_dir is not None:
        output_dir.mkdir(parents=True, exist_ok=True)
        log_file = output_dir / "log.txt"
        file_handler = logging.FileHandler(log_file, encoding='utf-8')
        file_handler.setLevel(logging.DEBUG)
        file_handler.setFormatter(formatter)
        handlers.append(file_handler)

    log_queue = queue.Queue(-1)
    listener = QueueListener(log_queue, *handlers, respect_handler_level=True)
    listener.start()

    root = logging.getLogger()
    root.setLevel(logging.DEBUG)
    # Remove existing handlers
    for h in root.handlers[:]:
        root.removeHandler(h)
    root.addHandler(QueueHandler(log_queue))

    if log_file is not None:
        root.info(f"Logging initialized. Log file: {log_file}")

    return listener
