"""
Persist normalized page lifecycles as Parquet with a JSON metadata sidecar.
"""

import json
from datetime import datetime, timezone
from pathlib import Path
from typing import Dict, Optional, Tuple, Union

import pandas as pd
from omegaconf import DictConfig, OmegaConf

from .lifecycle import NormalizationResult

HISTORY_FILE = 'lifecycle_history.parquet'
METADATA_FILE = 'metadata.json'
SCHEMA_VERSION = '1.0'


def save_lifecycle_history(lifecycles: pd.DataFrame, data_dir: Union[str, Path],
                           result: Union[NormalizationResult, Dict[str, NormalizationResult], None] = None,
                           conf: Optional[DictConfig] = None) -> Tuple[Path, dict]:
    """
    Write the combined lifecycle frame and its metadata.

    Parameters
    ----------
    lifecycles : pd.DataFrame
        Output of :func:`~pagelife.lifecycle.combine_lifecycles`.
    data_dir : str or Path
        Directory to write into; created if needed.
    result : NormalizationResult or dict, optional
        Adds launch dates and skipped pages to the metadata. A dict of category to
        NormalizationResult is recorded per category.
    conf : DictConfig, optional
        Adds the query range and normalization parameters to the metadata.

    Returns
    -------
    tuple
        Path to the Parquet file and the metadata dict that was written.
    """
    data_dir = Path(data_dir)
    data_dir.mkdir(parents=True, exist_ok=True)

    parquet_file = data_dir / HISTORY_FILE
    lifecycles.to_parquet(parquet_file, compression='snappy', index=False)

    pages = list(dict.fromkeys(lifecycles['page'])) if not lifecycles.empty else []
    metadata = {
        'last_updated': datetime.now(timezone.utc).isoformat().replace('+00:00', 'Z'),
        'schema_version': SCHEMA_VERSION,
        'parquet_file': HISTORY_FILE,
        'columns': list(lifecycles.columns),
        'record_count': len(lifecycles),
        'page_count': len(pages),
        'pages': pages,
        'file_size_bytes': parquet_file.stat().st_size,
        'stats': {
            'total_count': int(lifecycles['count'].sum()) if not lifecycles.empty else 0,
            'max_days_live_observed': int(lifecycles['days_live'].max()) if not lifecycles.empty else None,
        },
    }

    if isinstance(result, NormalizationResult):
        metadata.update(_result_metadata(result))
    elif result is not None:
        # Per-category results
        metadata['categories'] = {str(category): _result_metadata(r) for category, r in result.items()}

    if conf is not None:
        metadata['parameters'] = {
            'query': OmegaConf.to_container(conf.query, resolve=True),
            'normalization': OmegaConf.to_container(conf.normalization, resolve=True),
        }

    with open(data_dir / METADATA_FILE, 'w') as f:
        json.dump(metadata, f, indent=2)

    return parquet_file, metadata


def _result_metadata(result):
    launch_dates = {page: ts.date().isoformat() for page, ts in result.launch_dates.items()}
    metadata = {
        'launch_dates': launch_dates,
        'skipped': dict(result.skipped),
    }
    if launch_dates:
        metadata['launch_date_range'] = {
            'start': min(launch_dates.values()),
            'end': max(launch_dates.values()),
        }
    return metadata


def load_lifecycle_history(data_dir: Union[str, Path]):
    """
    Load a saved lifecycle frame and its metadata.

    Returns ``(None, None)`` if no history has been written to ``data_dir``. Metadata
    is None if only the Parquet file exists.
    """
    data_dir = Path(data_dir)
    parquet_file = data_dir / HISTORY_FILE
    metadata_file = data_dir / METADATA_FILE

    if not parquet_file.exists():
        return None, None

    df = pd.read_parquet(parquet_file)
    df['date'] = pd.to_datetime(df['date'])

    metadata = None
    if metadata_file.exists():
        with open(metadata_file, 'r') as f:
            metadata = json.load(f)

    return df, metadata
