from typing import Dict, Optional

from pyspark.sql import Column, DataFrame
import pyspark.sql.functions as F

import cyclistic_schema as S


def _name_lookup(number: Column, names: Dict[int, str]) -> Column:
    # CASE WHEN number = 1 THEN ... ; anything unmapped (incl. null) stays null
    expr = None
    for key, name in names.items():
        if expr is None:
            expr = F.when(number == key, F.lit(name))
        else:
            expr = expr.when(number == key, F.lit(name))
    return expr


def _with_fallback_columns(df: DataFrame) -> DataFrame:
    for fb in S.COLUMN_FALLBACKS:
        for name in (fb.primary, fb.fallback):
            if name not in df.columns:
                df = df.withColumn(name, F.lit(None).cast(fb.dtype))
    return df


def union_sources(legacy_df: DataFrame, modern_df: DataFrame) -> DataFrame:
    """Stack both quarters by column name; columns one side lacks come through as nulls."""
    unioned = legacy_df.unionByName(modern_df, allowMissingColumns=True)
    return _with_fallback_columns(unioned)


def harmonize_schema(df: DataFrame) -> DataFrame:
    """
    Resolve every canonical column from its modern name, falling back to the
    legacy name, then drop the legacy columns.
    """
    for fb in S.COLUMN_FALLBACKS:
        df = df.withColumn(
            fb.canonical,
            F.coalesce(
                F.col(fb.primary).cast(fb.dtype),
                F.col(fb.fallback).cast(fb.dtype)
            )
        )
    return df.drop(*S.LEGACY_ONLY_COLUMNS)


def calculate_ride_length(df: DataFrame) -> DataFrame:
    df = df.withColumn(
        "ride_length",
        (F.unix_timestamp("ended_at") - F.unix_timestamp("started_at")) / 60
    )
    return df


def add_calendar_fields(df: DataFrame) -> DataFrame:
    df = (df.withColumn("day_of_week", _name_lookup(F.dayofweek("started_at"), S.DAY_NAMES))
            .withColumn("month", _name_lookup(F.month("started_at"), S.MONTH_NAMES))
            .withColumn("start_hour", F.hour("started_at")))
    return df


def classify_day_type(df: DataFrame) -> DataFrame:
    df = df.withColumn(
        "day_type",
        F.when(
            F.col("day_of_week").isin(list(S.WEEKEND_DAYS)),
            F.lit(S.DAY_TYPE_WEEKEND)
        ).otherwise(F.lit(S.DAY_TYPE_WEEKDAY))
    )
    return df


def classify_user_type(df: DataFrame, unknown_as: str = S.USER_TYPE_ANNUAL) -> DataFrame:
    """
    Map the raw membership label onto Casual / Annual.

    Labels outside both vocabularies (null included) land in ``unknown_as``.
    The default keeps the historical behaviour of counting them as Annual;
    pass ``S.USER_TYPE_UNKNOWN`` to keep them apart.
    """
    label = F.col("member_casual")
    df = df.withColumn(
        "user_type_group",
        F.when(label.isin(list(S.CASUAL_LABELS)), F.lit(S.USER_TYPE_CASUAL))
        .when(label.isin(list(S.ANNUAL_LABELS)), F.lit(S.USER_TYPE_ANNUAL))
        .otherwise(F.lit(unknown_as))
    )
    return df


def split_date_time(df: DataFrame) -> DataFrame:
    df = (df.withColumn("start_date", F.to_date("started_at"))
            .withColumn("start_time_only", F.date_format("started_at", "HH:mm:ss"))
            .withColumn("end_date", F.to_date("ended_at"))
            .withColumn("end_time_only", F.date_format("ended_at", "HH:mm:ss")))
    return df


def derive_features(df: DataFrame, unknown_as: str = S.USER_TYPE_ANNUAL) -> DataFrame:
    # started_at must already be harmonized
    df = calculate_ride_length(df)
    df = add_calendar_fields(df)
    df = classify_day_type(df)
    df = classify_user_type(df, unknown_as=unknown_as)
    df = split_date_time(df)
    return df


def flag_ride_length(df: DataFrame) -> DataFrame:
    df = df.withColumn("_ride_length_flag",
        F.when(F.col("ride_length").isNull(), F.lit("missing"))
        .when(F.col("ride_length") <= 0, F.lit("non_positive"))
        .when(F.col("ride_length") > S.MAX_RIDE_LENGTH_MINUTES, F.lit("over_24h"))
        .otherwise(F.lit("valid"))
    )
    return df


def filter_valid_rides(df: DataFrame) -> DataFrame:
    """Keep rides longer than 0 minutes and no longer than 24 hours."""
    return df.filter(
        (F.col("ride_length") > 0) &
        (F.col("ride_length") <= S.MAX_RIDE_LENGTH_MINUTES)
    )


def unrecognized_label_counts(df: DataFrame) -> Dict[Optional[str], int]:
    """Count rows per membership label that is in neither vocabulary."""
    label = F.col("member_casual")
    known = list(S.CASUAL_LABELS + S.ANNUAL_LABELS)
    rows = (df.filter(label.isNull() | ~label.isin(known))
              .groupBy("member_casual")
              .count()
              .collect())
    return {row["member_casual"]: row["count"] for row in rows}
