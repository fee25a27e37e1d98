import json
import logging
import logging.handlers
import pytest
from utils import setup_logging, load_config, DEFAULT_CONFIG


def test_load_config_overlays_defaults(tmp_path):
    path = tmp_path / "config.json"
    path.write_text(json.dumps({
        'simulation_parameters': {'seed': 5, 'friction': 0.9},
        'run_control': {'max_steps': 10},
    }))

    config = load_config(str(path))

    assert config['simulation_parameters'] == {'seed': 5, 'friction': 0.9}
    assert config['run_control']['max_steps'] == 10
    assert config['run_control']['settings_file'] == 'settings.json'
    assert config['logging'] == DEFAULT_CONFIG['logging']
    # The defaults themselves are untouched.
    assert DEFAULT_CONFIG['run_control']['max_steps'] == 0


def test_load_config_missing_file(tmp_path):
    with pytest.raises(FileNotFoundError):
        load_config(str(tmp_path / "nope.json"))


def test_load_config_bad_json(tmp_path):
    path = tmp_path / "config.json"
    path.write_text("{ broken")
    with pytest.raises(json.JSONDecodeError):
        load_config(str(path))


def test_setup_logging_with_rotating_file(tmp_path, restore_root_logger):
    log_file = tmp_path / "logs" / "simulation.log"

    setup_logging({'logging': {'level': 'debug', 'log_file': str(log_file)}})
    logging.info("hello from the test")

    root = restore_root_logger
    assert root.level == logging.DEBUG
    assert any(isinstance(h, logging.handlers.RotatingFileHandler) for h in root.handlers)
    for handler in root.handlers:
        handler.flush()
    assert "hello from the test" in log_file.read_text()


def test_setup_logging_console_only(restore_root_logger):
    setup_logging({'logging': {'level': 'WARNING', 'log_file': ''}})

    root = restore_root_logger
    assert root.level == logging.WARNING
    assert len(root.handlers) == 1
    assert not any(isinstance(h, logging.FileHandler) for h in root.handlers)
