#!/usr/bin/env python3
"""
Cyclistic Q1 2019 + Q1 2020 cleaning job.

Reads both Divvy trip exports, harmonizes the two schemas, derives
ride_length / calendar / user-type columns, drops invalid rides, writes
one cleaned CSV and the grouped summaries (plus their bar charts) used to
compare annual members with casual riders.

Schema differences:
- 2019: trip_id, start_time, end_time, usertype (Subscriber / Customer),
  from_station_*, to_station_*
- 2020: ride_id, started_at, ended_at, member_casual (member / casual),
  start_station_*, end_station_*

Usage:
    python src/cyclistic_pipeline.py --data-dir data --output-dir out
"""

import argparse
import csv
import logging
import sys
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Sequence

from pyspark.sql import DataFrame, SparkSession
from pyspark.sql import functions as F
from pyspark.sql.types import StructType

import cyclistic_schema as S
import cyclistic_transformations as T
from cyclistic_charts import render_standard_charts
from cyclistic_summaries import build_reports, summaries_to_pandas

logger = logging.getLogger(__name__)

UNKNOWN_LABEL_POLICIES = {
    "annual": S.USER_TYPE_ANNUAL,
    "unknown": S.USER_TYPE_UNKNOWN,
}


class IngestionError(Exception):
    """A source file is missing or does not carry the expected header."""


@dataclass
class PipelineConfig:
    data_dir: Path = Path(".")
    legacy_file: str = "Divvy_Trips_2019_Q1.csv"
    modern_file: str = "Divvy_Trips_2020_Q1.csv"
    output_dir: Path = Path(".")
    period: str = "Q1_2019_2020"
    charts_dir: Optional[Path] = Path("charts")
    unknown_as: str = S.USER_TYPE_ANNUAL
    master: str = "local[*]"

    @property
    def legacy_path(self) -> Path:
        return self.data_dir / self.legacy_file

    @property
    def modern_path(self) -> Path:
        return self.data_dir / self.modern_file

    @property
    def output_path(self) -> Path:
        return self.output_dir / f"cyclistic_cleaned_{self.period}.csv"

    @classmethod
    def from_args(cls, args: argparse.Namespace) -> "PipelineConfig":
        return cls(
            data_dir=Path(args.data_dir),
            legacy_file=args.legacy_file,
            modern_file=args.modern_file,
            output_dir=Path(args.output_dir),
            period=args.period,
            charts_dir=None if args.no_charts else Path(args.charts_dir),
            unknown_as=UNKNOWN_LABEL_POLICIES[args.unknown_labels],
            master=args.master,
        )


def build_spark(master: str = "local[*]") -> SparkSession:
    return (
        SparkSession.builder
        .appName("cyclistic-cleaning")
        .master(master)
        .config("spark.sql.session.timeZone", "UTC")
        .config("spark.ui.enabled", "false")
        .getOrCreate()
    )


def read_header(csv_path: Path) -> list:
    with open(csv_path, "r", newline="") as f:
        return next(csv.reader(f), [])


def read_trips(
    spark: SparkSession,
    csv_path: Path,
    schema: StructType,
    required: Sequence[str],
) -> DataFrame:
    """Read one quarterly export; any malformed row fails the job when the data is read."""
    csv_path = Path(csv_path)
    if not csv_path.exists():
        raise IngestionError(f"{csv_path} not found")

    header = read_header(csv_path)
    missing = [c for c in required if c not in header]
    if missing:
        raise IngestionError(f"{csv_path.name} is missing columns: {', '.join(missing)}")

    return (spark.read
            .option("header", "true")
            .option("mode", "FAILFAST")
            .option("enforceSchema", "false")
            .option("timestampFormat", "yyyy-MM-dd HH:mm:ss")
            .schema(schema)
            .csv(str(csv_path)))


def clean_trips(
    legacy_df: DataFrame,
    modern_df: DataFrame,
    unknown_as: str = S.USER_TYPE_ANNUAL,
) -> DataFrame:
    """
    union -> harmonize -> derive -> filter

    The returned frame is cached; callers unpersist it when done.
    """
    trips = T.union_sources(legacy_df, modern_df)
    trips = T.harmonize_schema(trips)
    trips = T.derive_features(trips, unknown_as=unknown_as).cache()

    rows_in = trips.count()
    logger.info("Combined %d rides from both quarters", rows_in)

    unrecognized = T.unrecognized_label_counts(trips)
    if unrecognized:
        logger.warning(
            "%d rides carry unrecognized membership labels %s; grouped as %s",
            sum(unrecognized.values()), sorted(unrecognized, key=str), unknown_as
        )

    flags = {
        row["_ride_length_flag"]: row["count"]
        for row in T.flag_ride_length(trips).groupBy("_ride_length_flag").count().collect()
    }
    cleaned = T.filter_valid_rides(trips).cache()
    rows_out = cleaned.count()
    trips.unpersist()
    logger.info(
        "Dropped %d rides (non_positive=%d, over_24h=%d, missing=%d), kept %d",
        rows_in - rows_out,
        flags.get("non_positive", 0),
        flags.get("over_24h", 0),
        flags.get("missing", 0),
        rows_out,
    )
    return cleaned


def write_cleaned_csv(df: DataFrame, path: Path) -> Path:
    """Write the cleaned rides as one flat CSV, replacing any existing file."""
    out = df.select(*S.OUTPUT_COLUMNS)
    # render timestamps/dates in Spark so the session time zone applies
    out = (out.withColumn("started_at", F.date_format("started_at", "yyyy-MM-dd HH:mm:ss"))
              .withColumn("ended_at", F.date_format("ended_at", "yyyy-MM-dd HH:mm:ss"))
              .withColumn("start_date", F.col("start_date").cast("string"))
              .withColumn("end_date", F.col("end_date").cast("string")))
    # nullable ints would come back from toPandas as float64 (326 -> 326.0)
    for c in ("start_station_id", "end_station_id"):
        out = out.withColumn(c, F.col(c).cast("string"))

    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    out.toPandas().to_csv(path, index=False)
    logger.info("Wrote %s", path)
    return path


def run(config: PipelineConfig, spark: Optional[SparkSession] = None) -> int:
    """Run the whole job; returns the number of rides kept."""
    owns_session = spark is None
    if owns_session:
        spark = build_spark(config.master)

    cleaned = None
    try:
        logger.info("Step 1/4: reading %s and %s", config.legacy_path, config.modern_path)
        legacy = read_trips(spark, config.legacy_path, S.LEGACY_TRIP_SCHEMA, S.REQUIRED_LEGACY_COLUMNS)
        modern = read_trips(spark, config.modern_path, S.MODERN_TRIP_SCHEMA, S.REQUIRED_MODERN_COLUMNS)

        logger.info("Step 2/4: cleaning")
        cleaned = clean_trips(legacy, modern, unknown_as=config.unknown_as)

        logger.info("Step 3/4: writing cleaned rides")
        write_cleaned_csv(cleaned, config.output_path)

        logger.info("Step 4/4: summaries")
        reports = build_reports(cleaned)
        for name, summaries in reports.items():
            logger.info("%s:\n%s", name, summaries_to_pandas(summaries).to_string(index=False))

        if config.charts_dir is not None:
            charts = render_standard_charts(reports, config.charts_dir)
            logger.info("Wrote %d charts to %s", len(charts), config.charts_dir)

        return cleaned.count()
    finally:
        if cleaned is not None:
            cleaned.unpersist()
        if owns_session:
            spark.stop()


def parse_args(argv=None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Clean and summarize Cyclistic Q1 trip data")
    parser.add_argument("--data-dir", default=".", help="Folder holding both source CSVs")
    parser.add_argument("--legacy-file", default=PipelineConfig.legacy_file,
                        help="2019-layout export (trip_id, start_time, ...)")
    parser.add_argument("--modern-file", default=PipelineConfig.modern_file,
                        help="2020-layout export (ride_id, started_at, ...)")
    parser.add_argument("--output-dir", default=".", help="Where the cleaned CSV is written")
    parser.add_argument("--period", default=PipelineConfig.period,
                        help="Suffix of cyclistic_cleaned_<period>.csv")
    parser.add_argument("--charts-dir", default="charts", help="Where chart PNGs are written")
    parser.add_argument("--no-charts", action="store_true", help="Skip chart rendering")
    parser.add_argument("--unknown-labels", choices=sorted(UNKNOWN_LABEL_POLICIES), default="annual",
                        help="Bucket for membership labels outside member/Subscriber/casual/Customer")
    parser.add_argument("--master", default="local[*]", help="Spark master URL")
    parser.add_argument("-v", "--verbose", action="store_true", help="Verbose logging")
    return parser.parse_args(argv)


def main(argv=None) -> int:
    args = parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    try:
        kept = run(PipelineConfig.from_args(args))
    except IngestionError as e:
        logger.error("Ingestion failed: %s", e)
        return 1

    logger.info("Done: %d rides kept", kept)
    return 0


if __name__ == "__main__":
    sys.exit(main())
