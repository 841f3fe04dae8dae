import yaml
import logging
import os
from typing import Dict, Any, Optional
import pandas as pd
from datetime import datetime


def load_config(config_path: str) -> Dict[str, Any]:
    """Load YAML configuration file."""
    try:
        with open(config_path, 'r') as file:
            config = yaml.safe_load(file)
        return config or {}
    except FileNotFoundError:
        raise FileNotFoundError(f"Configuration file not found: {config_path}")
    except yaml.YAMLError as e:
        raise ValueError(f"Error parsing YAML file: {e}")


def setup_logging(config: Dict[str, Any]) -> None:
    """Set up logging configuration."""
    log_config = config.get('logging', {})
    level = getattr(logging, log_config.get('level', 'INFO'))
    format_str = log_config.get('format', '%(asctime)s - %(name)s - %(levelname)s - %(message)s')

    handlers = [logging.StreamHandler()]
    log_file = log_config.get('file')
    if log_file:
        log_dir = os.path.dirname(log_file)
        if log_dir:
            ensure_directory_exists(log_dir)
        handlers.append(logging.FileHandler(log_file))

    logging.basicConfig(
        level=level,
        format=format_str,
        handlers=handlers
    )


def get_section(config: Dict[str, Any], *keys: str, default: Optional[Any] = None) -> Any:
    """Walk nested config sections, returning default when any key is absent."""
    node = config
    for key in keys:
        if not isinstance(node, dict) or key not in node:
            return default
        node = node[key]
    return node


def ensure_directory_exists(path: str) -> None:
    """Create directory if it doesn't exist."""
    os.makedirs(path, exist_ok=True)


def save_results(data: pd.DataFrame, file_path: str, format: str = 'csv') -> None:
    """Save results to file in specified format."""
    directory = os.path.dirname(file_path)
    if directory:
        ensure_directory_exists(directory)

    if format.lower() == 'csv':
        data.to_csv(file_path, index=False)
    elif format.lower() == 'excel':
        data.to_excel(file_path, index=False)
    elif format.lower() == 'pickle':
        data.to_pickle(file_path)
    else:
        raise ValueError(f"Unsupported format: {format}")


def get_timestamp() -> str:
    """Get current timestamp as string."""
    return datetime.now().strftime("%Y%m%d_%H%M%S")
