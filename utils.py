# utils.py
"""
Utility functions for the simulation framework.

Logging setup and application config loading. These are used by the entry
point and the tests but belong to no specific domain like physics or
rendering.
"""
import logging
import logging.handlers
import copy
import json
import os
from typing import Dict, Any

# --- Data Contracts ---
#
# setup_logging(config: Dict[str, Any]) -> None:
#   - Inputs:
#     - config: A dictionary containing a "logging" key with "level",
#       "format", and "log_file" sub-keys (all optional).
#   - Side Effects: Configures the root Python logger with a console handler
#     and, when log_file is non-empty, a rotating file handler.
#
# load_config(path: str) -> Dict[str, Any]:
#   - Outputs: DEFAULT_CONFIG overlaid section by section with the file's
#     contents.
#   - Raises: FileNotFoundError, json.JSONDecodeError (logged first).

DEFAULT_CONFIG: Dict[str, Dict[str, Any]] = {
    'simulation_parameters': {
        'seed': None,
    },
    'run_control': {
        'max_steps': 0, # 0 runs until the window is closed
        'log_throttle_steps': 300,
        'settings_file': 'settings.json',
        'profile': False,
    },
    'visualization': {},
    'logging': {
        'level': 'INFO',
        'format': '%(asctime)s - %(levelname)s - %(message)s',
        'log_file': 'logs/simulation.log',
    },
}

def setup_logging(config: Dict[str, Any]) -> None:
    """
    Configures the logging system from a configuration dictionary.

    Sets up logging to the console and, if a log file is configured,
    to a rotating file.
    """
    log_config = config.get('logging', {})
    log_level = log_config.get('level', 'INFO').upper()
    log_format = log_config.get('format', DEFAULT_CONFIG['logging']['format'])
    log_file_path = log_config.get('log_file', DEFAULT_CONFIG['logging']['log_file'])

    logger = logging.getLogger()
    logger.setLevel(log_level)

    # Clear existing handlers to avoid duplication
    if logger.hasHandlers():
        logger.handlers.clear()

    formatter = logging.Formatter(log_format)

    console_handler = logging.StreamHandler()
    console_handler.setFormatter(formatter)
    logger.addHandler(console_handler)

    if log_file_path:
        log_dir = os.path.dirname(log_file_path)
        if log_dir:
            os.makedirs(log_dir, exist_ok=True)
        # Rotates when the log reaches 1MB, keeps 5 backup logs.
        file_handler = logging.handlers.RotatingFileHandler(
            log_file_path, maxBytes=1024*1024, backupCount=5
        )
        file_handler.setFormatter(formatter)
        logger.addHandler(file_handler)

    logging.info("Logging system initialized.")
    logging.debug(f"Log level set to {log_level}.")
    logging.debug(f"Log file path: {log_file_path or '(console only)'}")

def load_config(path: str) -> Dict[str, Any]:
    """Loads a JSON configuration file on top of DEFAULT_CONFIG."""
    logging.info(f"Loading configuration from {path}...")
    try:
        with open(path, 'r') as f:
            loaded = json.load(f)
    except FileNotFoundError:
        logging.error(f"Configuration file not found at {path}.")
        raise
    except json.JSONDecodeError:
        logging.error(f"Error decoding JSON from {path}.")
        raise

    config = copy.deepcopy(DEFAULT_CONFIG)
    for section, values in loaded.items():
        if isinstance(values, dict) and isinstance(config.get(section), dict):
            config[section].update(values)
        else:
            config[section] = values
    logging.info("Configuration loaded successfully.")
    return config
