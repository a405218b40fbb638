#!/usr/bin/env python3
"""
Visualize page lifecycles saved by build_lifecycle.py.
This script regenerates charts and the console summary from the stored history.
"""

import argparse
import sys
from pathlib import Path

import matplotlib.pyplot as plt

sys.path.append(str(Path(__file__).parent.parent / "src"))
from pagelife.history import load_lifecycle_history
from pagelife.lifecycle import label_by_category, summarize_lifecycles
from pagelife.plotting import plot_lifecycle_curves, plot_launch_timeline, print_statistics


def main():
    parser = argparse.ArgumentParser(description='Visualize saved page lifecycles')
    parser.add_argument('--data-dir', default='./lifecycle-data',
                       help='Directory containing lifecycle history (default: ./lifecycle-data)')
    parser.add_argument('--output-dir', default='.',
                       help='Directory to save charts (default: current directory)')
    parser.add_argument('--top-n', type=int, default=10,
                       help='Number of pages to draw (default: 10)')
    parser.add_argument('--no-show', action='store_true',
                       help='Do not display charts (only save)')

    args = parser.parse_args()

    df, metadata = load_lifecycle_history(args.data_dir)
    if df is None:
        print(f"❌ No lifecycle history found in {args.data_dir}")
        print("   Run build_lifecycle.py first.")
        return 1

    df = label_by_category(df)
    print(f"✅ Loaded {len(df)} rows for {df['page'].nunique()} pages")
    if metadata:
        print(f"   Last updated: {metadata['last_updated']}")
        if metadata.get('skipped'):
            print(f"   Skipped pages: {len(metadata['skipped'])}")

    summary = summarize_lifecycles(df)
    print_statistics(df, summary)

    output_dir = Path(args.output_dir)
    output_dir.mkdir(parents=True, exist_ok=True)

    plot_lifecycle_curves(df, top_n=args.top_n, save_path=output_dir / 'lifecycle_curves.png')
    plot_launch_timeline(summary, save_path=output_dir / 'launch_timeline.png')

    if not args.no_show:
        plt.show()

    print("\n✅ Visualization complete!")
    return 0


if __name__ == '__main__':
    sys.exit(main())
