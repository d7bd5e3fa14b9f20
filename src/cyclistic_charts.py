import logging
from pathlib import Path
from typing import Dict, List, Optional, Sequence

import matplotlib
matplotlib.use("Agg")
import matplotlib.pyplot as plt

import cyclistic_schema as S
from cyclistic_summaries import AggregateSummary, summaries_to_pandas

logger = logging.getLogger(__name__)

# report name -> (x column, x axis label, category order)
CHART_REPORTS = {
    "user_type_by_day_type": ("day_type", "Day Type", (S.DAY_TYPE_WEEKDAY, S.DAY_TYPE_WEEKEND)),
    "user_type_by_day_of_week": ("day_of_week", "Day of the Week", S.WEEK_ORDER),
    "user_type_by_month": ("month", "Month", S.MONTH_ORDER),
    "user_type_by_start_hour": ("start_hour", "Hour of Day", tuple(range(24))),
}

# metric -> (y axis label, title prefix)
METRICS = {
    "num_rides": ("Number of Trips", "Number of Trips"),
    "avg_ride_length": ("Average Ride Length (minutes)", "Average Ride Duration"),
}


def plot_grouped_bars(
    summaries: List[AggregateSummary],
    x: str,
    metric: str,
    path: Path,
    xlabel: str,
    order: Optional[Sequence] = None,
    hue: str = "user_type_group",
) -> Path:
    """Side-by-side bars of ``metric`` per ``x`` category, one bar per ``hue`` value."""
    if not summaries:
        raise ValueError(f"nothing to plot for {x}/{metric}")

    ylabel, title_prefix = METRICS[metric]
    frame = summaries_to_pandas(summaries)
    pivot = frame.pivot(index=x, columns=hue, values=metric)
    if order is not None:
        pivot = pivot.reindex([c for c in order if c in pivot.index])

    fig, ax = plt.subplots(figsize=(10, 6))
    pivot.plot(kind="bar", ax=ax, rot=0)
    ax.set_title(f"{title_prefix} by User Type and {xlabel}")
    ax.set_xlabel(xlabel)
    ax.set_ylabel(ylabel)
    ax.legend(title="User Type")
    fig.tight_layout()

    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    fig.savefig(path)
    plt.close(fig)
    return path


def render_standard_charts(reports: Dict[str, List[AggregateSummary]], out_dir: Path) -> List[Path]:
    written = []
    for name, (x, xlabel, order) in CHART_REPORTS.items():
        summaries = reports.get(name)
        if not summaries:
            logger.warning("No rows for report %s, skipping its charts", name)
            continue
        for metric in METRICS:
            path = Path(out_dir) / f"{name}_{metric}.png"
            written.append(plot_grouped_bars(summaries, x, metric, path, xlabel, order=order))
            logger.debug("Wrote %s", path)
    return written
