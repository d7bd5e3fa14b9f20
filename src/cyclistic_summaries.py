"""
Grouped ride statistics.

Every report is a count and a mean ride length per grouping-key
combination, ordered by the keys ascending (first key major). Reports are
handed to the chart layer as ``AggregateSummary`` values:

    AggregateSummary(keys={"user_type_group": "Casual", "day_type": "Weekend"},
                     num_rides=1234, avg_ride_length=41.7)
"""
from dataclasses import dataclass
from typing import Any, Dict, List

import pandas as pd
from pyspark.sql import DataFrame
from pyspark.sql import functions as F

STANDARD_REPORTS = {
    "user_type": ("user_type_group",),
    "user_type_by_day_type": ("user_type_group", "day_type"),
    "user_type_by_day_of_week": ("user_type_group", "day_of_week"),
    "user_type_by_month": ("user_type_group", "month"),
    "user_type_by_start_hour": ("user_type_group", "start_hour"),
    # breakdowns on the raw 2019/2020 labels
    "member_casual": ("member_casual",),
    "member_casual_by_day_type": ("member_casual", "day_type"),
    "member_casual_by_day_of_week": ("member_casual", "day_of_week"),
    "member_casual_by_month": ("member_casual", "month"),
}


@dataclass
class AggregateSummary:
    keys: Dict[str, Any]
    num_rides: int
    avg_ride_length: float


def summarize(df: DataFrame, *keys: str) -> DataFrame:
    if not keys:
        raise ValueError("summarize() needs at least one grouping column")

    return (df.groupBy(*keys)
              .agg(
                  F.count("*").alias("num_rides"),
                  F.avg("ride_length").alias("avg_ride_length")
              )
              .orderBy(*keys))


def collect_summaries(df: DataFrame, *keys: str) -> List[AggregateSummary]:
    rows = summarize(df, *keys).collect()
    return [
        AggregateSummary(
            keys={k: row[k] for k in keys},
            num_rides=row["num_rides"],
            avg_ride_length=row["avg_ride_length"],
        )
        for row in rows
    ]


def build_reports(df: DataFrame, reports: Dict[str, tuple] = None) -> Dict[str, List[AggregateSummary]]:
    reports = STANDARD_REPORTS if reports is None else reports
    return {name: collect_summaries(df, *keys) for name, keys in reports.items()}


def summaries_to_pandas(summaries: List[AggregateSummary]) -> pd.DataFrame:
    records = [
        {**s.keys, "num_rides": s.num_rides, "avg_ride_length": s.avg_ride_length}
        for s in summaries
    ]
    return pd.DataFrame(records)
