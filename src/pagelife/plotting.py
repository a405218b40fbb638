"""
Charts and console summaries for normalized page lifecycles.
"""

import matplotlib.pyplot as plt
import pandas as pd
import seaborn as sns

# Set style for better looking plots
sns.set_style("whitegrid")


def top_pages(lifecycles: pd.DataFrame, top_n: int = 10) -> list:
    """Pages with the highest final cumulative count, largest first."""
    if lifecycles.empty:
        return []
    final = lifecycles.groupby('page')['cumulative_count'].max()
    return final.sort_values(ascending=False, kind='stable').head(top_n).index.tolist()


def plot_lifecycle_curves(lifecycles: pd.DataFrame, top_n: int = 10, save_path=None):
    """
    Plot daily and cumulative visits against days live, one line per page.

    Parameters
    ----------
    lifecycles : pd.DataFrame
        Combined lifecycle frame with ``page``, ``days_live``, ``count`` and
        ``cumulative_count`` columns.
    top_n : int, optional
        Only the pages with the most cumulative visits are drawn.
    save_path : str or Path, optional
        Write the figure as an image.

    Returns
    -------
    matplotlib.figure.Figure
    """
    pages = top_pages(lifecycles, top_n)
    subset = lifecycles[lifecycles['page'].isin(pages)]

    fig, axes = plt.subplots(1, 2, figsize=(16, 6))
    fig.suptitle('Page Traffic by Days Since Launch', fontsize=16, fontweight='bold')

    ax1 = axes[0]
    if not subset.empty:
        sns.lineplot(data=subset, x='days_live', y='count', hue='page', hue_order=pages,
                     ax=ax1, linewidth=1.5, legend=False)
    ax1.set_title('Daily Visits')
    ax1.set_xlabel('Days Live')
    ax1.set_ylabel('Visits')
    ax1.grid(True, alpha=0.3)

    ax2 = axes[1]
    if not subset.empty:
        sns.lineplot(data=subset, x='days_live', y='cumulative_count', hue='page', hue_order=pages,
                     ax=ax2, linewidth=2)
        ax2.legend(title='Page', fontsize='small', loc='upper left')
    ax2.set_title('Cumulative Visits')
    ax2.set_xlabel('Days Live')
    ax2.set_ylabel('Cumulative Visits')
    ax2.grid(True, alpha=0.3)

    plt.tight_layout()

    if save_path:
        plt.savefig(save_path, dpi=150, bbox_inches='tight')
        print(f"💾 Chart saved to {save_path}")

    return fig


def plot_launch_timeline(summary: pd.DataFrame, save_path=None):
    """
    Bar chart of total visits per page, pages ordered by launch date.

    Returns None when there is nothing to plot.
    """
    if summary.empty:
        print("⚠️  No normalized pages to plot")
        return None

    summary = summary.sort_values(['launch_date', 'page'])

    fig, ax = plt.subplots(figsize=(14, 6))
    x_pos = range(len(summary))
    ax.bar(x_pos, summary['total_count'], alpha=0.8)
    ax.set_title('Total Visits by Launch Date', fontsize=14, fontweight='bold')
    ax.set_xlabel('Launch Date')
    ax.set_ylabel('Visits')
    ax.set_xticks(list(x_pos))
    labels = [f"{d.strftime('%Y-%m-%d')}\n{p}" for d, p in zip(summary['launch_date'], summary['page'])]
    ax.set_xticklabels(labels, rotation=45, ha='right', fontsize='small')

    plt.tight_layout()

    if save_path:
        plt.savefig(save_path, dpi=150, bbox_inches='tight')
        print(f"💾 Launch timeline saved to {save_path}")

    return fig


def print_statistics(lifecycles: pd.DataFrame, summary: pd.DataFrame):
    """Print summary statistics."""
    print("\n" + "="*60)
    print("📊 PAGE LIFECYCLE SUMMARY")
    print("="*60)

    if summary.empty:
        print("\n   No pages were normalized")
        print("\n" + "="*60)
        return

    print(f"\n📅 Launch Dates: {summary['launch_date'].min().strftime('%Y-%m-%d')} "
          f"to {summary['launch_date'].max().strftime('%Y-%m-%d')}")
    print(f"   Pages: {len(summary)}")

    print("\n👀 VISITS:")
    print(f"   Total: {summary['total_count'].sum():,}")
    print(f"   Per Page Average: {summary['total_count'].mean():.1f}")
    best = summary.loc[summary['total_count'].idxmax()]
    print(f"   Top Page: {best['page']} ({best['total_count']:,} visits)")

    first_days = lifecycles[lifecycles['days_live'] == 0]
    print(f"   Average Launch Day: {first_days['count'].mean():.1f} visits")

    milestone_cols = [c for c in summary.columns if c.startswith('cumulative_day_')]
    if milestone_cols:
        print("\n📈 MILESTONES (median cumulative visits):")
        for col in milestone_cols:
            day = col.rsplit('_', 1)[1]
            reached = summary[col].dropna()
            if reached.empty:
                print(f"   Day {day}: no page live that long")
            else:
                print(f"   Day {day}: {reached.median():.0f} ({len(reached)} pages)")

    print("\n" + "="*60)
