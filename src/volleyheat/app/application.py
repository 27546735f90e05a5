"""
Application Bootstrap
=====================
Builds the process-wide configuration, initializes logging and creates the
Store every UI talks to.

The embedding application calls `create_store()` once at startup, after its
QApplication exists.
"""
from __future__ import annotations

from typing import Optional

from volleyheat.app.state import Store
from volleyheat.config import load_config
from volleyheat.logging_config import setup_logging_from_config


def create_store(config_path: Optional[str] = None, log_file: Optional[str] = None) -> Store:
    """
    Load the configuration (shipped defaults unless `config_path` is given),
    configure the 'volleyheat' loggers from its debug section and return a
    fresh Store bound to it.
    """
    config = load_config(config_path)
    setup_logging_from_config(config, log_file=log_file)
    return Store(config)
