import json
import logging
import os


def _config_dir():
    base = os.path.join(os.path.expanduser('~'), '.alignertrack')
    os.makedirs(base, exist_ok=True)
    return base


def _config_path():
    return os.path.join(_config_dir(), 'alignertrack_config.json')


def default_config():
    return {
        'date_format': '%d/%m/%Y',
        'db_path': None,
        'log_level': 'INFO',
    }


def load_config():
    path = _config_path()
    cfg = default_config()
    if not os.path.exists(path):
        return cfg
    try:
        with open(path, 'r', encoding='utf-8') as f:
            stored = json.load(f)
    except (OSError, ValueError):
        return cfg
    if isinstance(stored, dict):
        # fehlende Schlüssel aus den Defaults ergänzen
        cfg.update(stored)
    return cfg


def resolve_log_level(cfg: dict) -> str:
    """Log-Level aus der Konfiguration; unbekannte Namen fallen auf INFO zurück."""
    level = str(cfg.get('log_level') or 'INFO').upper()
    if isinstance(logging.getLevelName(level), int):
        return level
    return 'INFO'


def save_config(cfg: dict):
    path = _config_path()
    with open(path, 'w', encoding='utf-8') as f:
        json.dump(cfg, f, ensure_ascii=False, indent=2)
