from typing import NamedTuple

from pyspark.sql.types import (
    StructType, StructField, StringType, TimestampType, IntegerType, DoubleType
)

# Divvy Q1 2019 export
LEGACY_TRIP_SCHEMA = StructType([
    StructField("trip_id",           IntegerType(),   True),
    StructField("start_time",        TimestampType(), True),
    StructField("end_time",          TimestampType(), True),
    StructField("bikeid",            IntegerType(),   True),
    # written with thousands separators ("1,783.0"), so kept as text
    StructField("tripduration",      StringType(),    True),
    StructField("from_station_id",   IntegerType(),   True),
    StructField("from_station_name", StringType(),    True),
    StructField("to_station_id",     IntegerType(),   True),
    StructField("to_station_name",   StringType(),    True),
    StructField("usertype",          StringType(),    True),
    StructField("gender",            StringType(),    True),
    StructField("birthyear",         IntegerType(),   True),
])

# Divvy Q1 2020 export
MODERN_TRIP_SCHEMA = StructType([
    StructField("ride_id",            StringType(),    True),
    StructField("rideable_type",      StringType(),    True),
    StructField("started_at",         TimestampType(), True),
    StructField("ended_at",           TimestampType(), True),
    StructField("start_station_name", StringType(),    True),
    StructField("start_station_id",   IntegerType(),   True),
    StructField("end_station_name",   StringType(),    True),
    StructField("end_station_id",     IntegerType(),   True),
    StructField("start_lat",          DoubleType(),    True),
    StructField("start_lng",          DoubleType(),    True),
    StructField("end_lat",            DoubleType(),    True),
    StructField("end_lng",            DoubleType(),    True),
    StructField("member_casual",      StringType(),    True),
])


class ColumnFallback(NamedTuple):
    """A canonical column resolved as coalesce(primary, fallback)."""
    canonical: str
    primary: str
    fallback: str
    dtype: str


# The modern (2020) name is preferred, the legacy (2019) name fills the gaps
COLUMN_FALLBACKS = (
    ColumnFallback("ride_id",            "ride_id",            "trip_id",           "string"),
    ColumnFallback("started_at",         "started_at",         "start_time",        "timestamp"),
    ColumnFallback("ended_at",           "ended_at",           "end_time",          "timestamp"),
    ColumnFallback("member_casual",      "member_casual",      "usertype",          "string"),
    ColumnFallback("start_station_id",   "start_station_id",   "from_station_id",   "integer"),
    ColumnFallback("start_station_name", "start_station_name", "from_station_name", "string"),
    ColumnFallback("end_station_id",     "end_station_id",     "to_station_id",     "integer"),
    ColumnFallback("end_station_name",   "end_station_name",   "to_station_name",   "string"),
)

LEGACY_ONLY_COLUMNS = tuple(fb.fallback for fb in COLUMN_FALLBACKS)

# Columns each source must carry in its header row
REQUIRED_LEGACY_COLUMNS = ("trip_id", "start_time", "end_time", "usertype")
REQUIRED_MODERN_COLUMNS = ("ride_id", "started_at", "ended_at", "member_casual")

CASUAL_LABELS = ("casual", "Customer")
ANNUAL_LABELS = ("member", "Subscriber")

USER_TYPE_ANNUAL = "Annual"
USER_TYPE_CASUAL = "Casual"
USER_TYPE_UNKNOWN = "Unknown"

DAY_TYPE_WEEKDAY = "Weekday"
DAY_TYPE_WEEKEND = "Weekend"

# keyed by Spark's dayofweek(): 1 = Sunday ... 7 = Saturday
DAY_NAMES = {
    1: "Sunday",
    2: "Monday",
    3: "Tuesday",
    4: "Wednesday",
    5: "Thursday",
    6: "Friday",
    7: "Saturday",
}
WEEKEND_DAYS = ("Saturday", "Sunday")

MONTH_NAMES = {
    1: "January",
    2: "February",
    3: "March",
    4: "April",
    5: "May",
    6: "June",
    7: "July",
    8: "August",
    9: "September",
    10: "October",
    11: "November",
    12: "December",
}

# Calendar order, used for charts
WEEK_ORDER = ("Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday", "Sunday")
MONTH_ORDER = tuple(MONTH_NAMES[m] for m in range(1, 13))

MAX_RIDE_LENGTH_MINUTES = 1440

OUTPUT_COLUMNS = (
    "ride_id",
    "started_at",
    "ended_at",
    "member_casual",
    "start_station_id",
    "start_station_name",
    "end_station_id",
    "end_station_name",
    "ride_length",
    "day_of_week",
    "month",
    "start_hour",
    "day_type",
    "user_type_group",
    "start_date",
    "start_time_only",
    "end_date",
    "end_time_only",
)
