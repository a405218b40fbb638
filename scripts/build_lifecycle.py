#!/usr/bin/env python3
"""
Fetch daily page traffic, normalize each page to days since launch, and save the result.

Primary workflow: build_lifecycle.py writes lifecycle_history.parquet and metadata.json
to output.path, then visualize_lifecycle.py can redraw charts from the saved history.
"""

import argparse
import logging
import sys
import time
import warnings
from pathlib import Path

import matplotlib
matplotlib.use("Agg")
from omegaconf import DictConfig, OmegaConf
from dask.distributed import Client, LocalCluster
from distributed.worker import logger as worker_logger

sys.path.append(str(Path(__file__).parent.parent / "src"))
from pagelife.config import load_config, save_config, validate_config
from pagelife import reporting_api
from pagelife.lifecycle import (
    build_lifecycle, build_lifecycle_by_category, combine_lifecycles,
    combine_category_lifecycles, label_by_category, summarize_lifecycles
)
from pagelife.history import save_lifecycle_history
from pagelife.plotting import plot_lifecycle_curves, plot_launch_timeline, print_statistics


def fetch_raw_traffic(conf: DictConfig):
    """Query the reporting API for daily per-page counts over the configured range."""
    api = conf.analytics
    query = conf.query

    page_filters = OmegaConf.to_container(query.page_filters) if query.get('page_filters') else None
    segment = query.get('segment')
    if isinstance(segment, DictConfig):
        segment = OmegaConf.to_container(segment)

    kwargs = dict(
        metric=api.metric,
        page_dimension=api.page_dimension,
        segment=segment,
        page_size=api.page_size,
        token=api.get('token') or None,
        base_url=api.base_url,
        retries=api.retries,
        debug=conf.logging.get('verbose', False),
    )

    if query.get('categories'):
        print(f"📡 Querying {len(query.categories)} values of {query.category_dimension}...")
        return reporting_api.get_report_by_category(
            query.category_dimension, list(query.categories), api.view_id,
            query.start_date, query.end_date, page_filters=page_filters, **kwargs
        )

    print(f"📡 Querying daily page traffic from {query.start_date} to {query.end_date}...")
    return reporting_api.get_daily_page_counts(
        api.view_id, query.start_date, query.end_date, page_filters=page_filters, **kwargs
    )


def start_cluster(conf: DictConfig):
    """Start a local Dask cluster sized from processing settings."""
    print(f"🚀 Starting local Dask cluster with {conf.processing.n_workers} workers")
    cluster = LocalCluster(
        n_workers=conf.processing.n_workers,
        threads_per_worker=conf.processing.get('threads_per_worker', 1),
        silence_logs=logging.ERROR,
        processes=True,
    )
    client = Client(cluster)
    print(f"   Dashboard: {client.dashboard_link}")
    return cluster, client


def stop_cluster(cluster, client):
    print("🔚 Shutting down Dask cluster...")
    with warnings.catch_warnings():
        warnings.simplefilter("ignore")
        original_level = worker_logger.level
        worker_logger.setLevel(logging.CRITICAL)
        try:
            client.close()
            cluster.close(timeout=2)
        finally:
            worker_logger.setLevel(original_level)


def process_lifecycle(conf: DictConfig, client=None):
    """
    Run one fetch, normalize, save and chart pass.
    """
    raw = fetch_raw_traffic(conf)
    if raw.empty:
        print("❌ No traffic returned for the configured query")
        return None

    print(f"📊 API returned {len(raw)} rows for {raw['page'].nunique()} pages")
    print(f"   Date range: {raw['date'].min().date()} to {raw['date'].max().date()}")

    if 'category' in raw.columns:
        result = build_lifecycle_by_category(raw, conf, client=client)
        lifecycles = combine_category_lifecycles(result)
        n_pages = sum(len(r.pages()) for r in result.values())
        n_skipped = sum(len(r.skipped) for r in result.values())
        per_category = [(combine_lifecycles(r), summarize_lifecycles(r)) for r in result.values()]
    else:
        result = build_lifecycle(raw, conf, client=client)
        lifecycles = combine_lifecycles(result)
        n_pages = len(result.pages())
        n_skipped = len(result.skipped)
        per_category = [(lifecycles, summarize_lifecycles(result))]

    print(f"✅ Normalized {n_pages} pages ({n_skipped} skipped)")

    output_path = Path(conf.output.path)
    parquet_file, metadata = save_lifecycle_history(lifecycles, output_path, result=result, conf=conf)
    print(f"💾 Saved {metadata['record_count']} records to {parquet_file}")
    print(f"   File size: {metadata['file_size_bytes'] / 1024:.1f} KB")

    save_config(conf, output_path / "config_used.yaml")

    for category_lifecycles, summary in per_category:
        print_statistics(category_lifecycles, summary)

    if conf.output.get('charts', True):
        labelled = label_by_category(lifecycles)
        plot_lifecycle_curves(labelled, top_n=conf.output.get('top_n', 10),
                              save_path=output_path / 'lifecycle_curves.png')
        plot_launch_timeline(summarize_lifecycles(labelled), save_path=output_path / 'launch_timeline.png')

    return parquet_file


def main():
    parser = argparse.ArgumentParser(
        description="Normalize page traffic to days since launch"
    )

    parser.add_argument("--config", "-c", required=True, help="YAML configuration file")
    parser.add_argument("--env", "-e", help="Environment (test/production)")
    parser.add_argument("--parallel", action="store_true", help="Normalize pages on a local Dask cluster")
    parser.add_argument("--n-workers", type=int, help="Number of Dask workers (overrides processing.n_workers)")
    parser.add_argument("--no-charts", action="store_true", help="Skip chart generation")
    parser.add_argument("overrides", nargs="*", help="Config overrides (e.g., normalization.max_days_live=30)")

    args = parser.parse_args()

    overrides = list(args.overrides)
    if args.parallel:
        overrides.append("processing.parallel=true")
    if args.n_workers:
        overrides.append(f"processing.n_workers={args.n_workers}")
    if args.no_charts:
        overrides.append("output.charts=false")

    try:
        conf = load_config(args.config, overrides, args.env)
        validate_config(conf)

        logging.basicConfig(level=getattr(logging, str(conf.logging.level).upper(), logging.INFO),
                            format='%(asctime)s - %(levelname)s - %(message)s')

        if conf.logging.verbose:
            print(OmegaConf.to_yaml(OmegaConf.masked_copy(conf, ['query', 'normalization', 'processing', 'output'])))

        start = time.time()
        if conf.processing.parallel:
            cluster, client = start_cluster(conf)
            try:
                process_lifecycle(conf, client=client)
            finally:
                stop_cluster(cluster, client)
        else:
            process_lifecycle(conf)
        print(f"Completed in {time.time() - start:.1f}s")

    except Exception as e:
        print(f"❌ Error building page lifecycles: {e}", file=sys.stderr)
        import traceback
        traceback.print_exc()
        sys.exit(1)


if __name__ == "__main__":
    main()
