import yaml
from pathlib import Path

CONFIG_DIR = Path(__file__).resolve().parents[3] / "config"


def load_yaml(filename, config_dir=None):
    """Load a YAML file from the config directory (or an explicit path)."""
    file_path = Path(filename)
    if not file_path.is_absolute() and not file_path.exists():
        file_path = Path(config_dir or CONFIG_DIR) / filename
    with open(file_path, 'r', encoding='utf-8') as f:
        return yaml.safe_load(f) or {}
