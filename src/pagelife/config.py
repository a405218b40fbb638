"""
Configuration management for page lifecycle runs using OmegaConf.

Thresholds, date ranges and API settings live in one YAML file and are passed
explicitly to the fetch, normalization and storage steps.
"""

import os
from pathlib import Path
from typing import Optional, List, Union
import logging

import pandas as pd
from omegaconf import OmegaConf, DictConfig


# Register resolvers for common path expansions
OmegaConf.register_new_resolver("pwd", lambda: os.getcwd(), replace=True)
OmegaConf.register_new_resolver("home", lambda: str(Path.home()), replace=True)
OmegaConf.register_new_resolver("env", lambda x, default="": os.environ.get(x, default), replace=True)


DEFAULTS = {
    "analytics": {
        "base_url": "https://analyticsreporting.googleapis.com/v4",
        "view_id": None,
        "token": "${env:PAGELIFE_API_TOKEN}",
        "metric": "ga:uniquePageviews",
        "page_dimension": "ga:pagePath",
        "page_size": 10000,
        "retries": 3,
    },
    "query": {
        "start_date": None,
        "end_date": None,
        "page_filters": None,
        "segment": None,
        "category_dimension": None,
        "categories": None,
    },
    "normalization": {
        "min_first_day_count": 10,
        "max_days_live": 90,
        "min_total_count": 100,
        "strict": False,
    },
    "processing": {
        "parallel": False,
        "n_workers": 4,
        "threads_per_worker": 1,
    },
    "output": {
        "path": "./lifecycle-data",
        "charts": True,
        "top_n": 10,
    },
    "logging": {
        "verbose": False,
        "level": "INFO",
    },
}


def default_config() -> DictConfig:
    """Return a fresh configuration populated with the package defaults."""
    return OmegaConf.create(DEFAULTS)


def load_config(
    config_path: Union[str, Path],
    overrides: Optional[List[str]] = None,
    environment: Optional[str] = None
) -> DictConfig:
    """
    Load configuration from YAML file with optional overrides.

    Keys missing from the file fall back to the package defaults.

    Parameters
    ----------
    config_path : Union[str, Path]
        Path to YAML configuration file
    overrides : List[str], optional
        Command-line overrides in dot notation
        Example: ["normalization.max_days_live=30", "processing.n_workers=8"]
    environment : str, optional
        Environment name to apply (e.g., "production", "test")

    Returns
    -------
    DictConfig
        Configuration object with dot-notation access

    Examples
    --------
    >>> conf = load_config("config/pagelife.yaml", ["normalization.max_days_live=30"], "test")
    """
    config_path = Path(config_path)
    if not config_path.exists():
        raise FileNotFoundError(f"Configuration file not found: {config_path}")

    conf = OmegaConf.merge(default_config(), OmegaConf.load(config_path))

    if environment and "environments" in conf:
        if environment in conf.environments:
            logging.info(f"Applying environment: {environment}")
            conf = OmegaConf.merge(conf, conf.environments[environment])
        else:
            logging.warning(f"Environment '{environment}' not found in config")

    if overrides:
        logging.debug(f"Applying overrides: {overrides}")
        conf = OmegaConf.merge(conf, OmegaConf.from_dotlist(overrides))

    OmegaConf.resolve(conf)

    if "environments" in conf:
        del conf["environments"]

    return conf


def save_config(conf: DictConfig, output_path: Union[str, Path], add_metadata: bool = True):
    """
    Save configuration to file for reproducibility.

    The API token is blanked before writing.

    Parameters
    ----------
    conf : DictConfig
        Configuration to save
    output_path : Union[str, Path]
        Where to save the configuration
    add_metadata : bool
        Whether to add generation metadata
    """
    output_path = Path(output_path)
    output_path.parent.mkdir(parents=True, exist_ok=True)

    container = OmegaConf.to_container(conf)
    if container.get("analytics", {}).get("token"):
        container["analytics"]["token"] = None

    if add_metadata:
        from datetime import datetime
        save_conf = OmegaConf.create({
            "_metadata": {
                "generated_at": datetime.now().isoformat(),
                "working_directory": os.getcwd(),
            },
            **container
        })
    else:
        save_conf = OmegaConf.create(container)

    OmegaConf.save(save_conf, output_path)
    logging.info(f"Configuration saved to: {output_path}")


def validate_config(conf: DictConfig) -> bool:
    """
    Basic validation of required configuration fields.

    Parameters
    ----------
    conf : DictConfig
        Configuration to validate

    Returns
    -------
    bool
        True if valid, raises ValueError if not
    """
    required_fields = [
        "analytics.view_id",
        "query.start_date",
        "query.end_date",
        "normalization.min_first_day_count",
        "normalization.max_days_live",
        "normalization.min_total_count",
        "output.path",
    ]

    for field in required_fields:
        if OmegaConf.select(conf, field) is None:
            raise ValueError(f"Required configuration field missing: {field}")

    for field in ("min_first_day_count", "max_days_live", "min_total_count"):
        value = conf.normalization[field]
        if isinstance(value, bool) or not isinstance(value, int) or value < 0:
            raise ValueError(f"Invalid normalization.{field}: {value}. Must be a non-negative integer")

    try:
        start = pd.Timestamp(str(conf.query.start_date))
        end = pd.Timestamp(str(conf.query.end_date))
    except ValueError as e:
        raise ValueError(f"Invalid query date range: {e}") from e
    if start > end:
        raise ValueError(f"query.start_date {conf.query.start_date} is after query.end_date {conf.query.end_date}")

    if conf.processing.n_workers <= 0:
        raise ValueError(f"Invalid n_workers: {conf.processing.n_workers}. Must be positive")

    categories = conf.query.get("categories")
    if categories and not conf.query.get("category_dimension"):
        raise ValueError("query.categories requires query.category_dimension")

    return True
