"""This file configures pytest."""
import sys
from pathlib import Path
import pytest
from pyspark.sql import SparkSession
from pyspark.sql import functions as F

# Add src/ to Python path so tests can import from it
project_root = Path(__file__).parent.parent
src_path = project_root / "src"
sys.path.insert(0, str(src_path))

TIMESTAMP_COLUMNS = ("start_time", "end_time", "started_at", "ended_at")

LEGACY_DDL = "trip_id int, start_time string, end_time string, usertype string"
MODERN_DDL = "ride_id string, started_at string, ended_at string, member_casual string"


@pytest.fixture(scope="session")
def spark() -> SparkSession:
    """Provide a SparkSession fixture for tests."""
    return (
        SparkSession.builder
        .appName("test")
        .master("local[*]")
        .config("spark.sql.shuffle.partitions", "1")
        .config("spark.sql.session.timeZone", "UTC")
        .config("spark.ui.enabled", "false")
        .getOrCreate()
    )


@pytest.fixture(scope="session", autouse=True)
def cleanup_spark(spark):
    """Cleanup Spark session after all tests."""
    yield
    spark.stop()


@pytest.fixture
def make_trips(spark):
    """Build a DataFrame from rows whose timestamps are given as 'yyyy-MM-dd HH:mm:ss' strings."""
    def _make(rows, ddl):
        df = spark.createDataFrame(rows, ddl)
        for c in TIMESTAMP_COLUMNS:
            if c in df.columns:
                df = df.withColumn(c, F.to_timestamp(c))
        return df
    return _make


@pytest.fixture
def legacy_trips(make_trips):
    """Q1 2019 rows: (trip_id, start_time, end_time, usertype)."""
    return lambda rows: make_trips(rows, LEGACY_DDL)


@pytest.fixture
def modern_trips(make_trips):
    """Q1 2020 rows: (ride_id, started_at, ended_at, member_casual)."""
    return lambda rows: make_trips(rows, MODERN_DDL)
