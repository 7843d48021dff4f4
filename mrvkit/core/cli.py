"""
mrvkit CLI entrypoint: satellite analysis, sensor aggregation, anomaly
detection and readiness assessment. Results are printed as JSON.
"""

import sys
import json
from pathlib import Path

import click  # type: ignore
import pandas as pd
from click import echo

from mrvkit.analytics.anomaly import DETECTORS, ZSCORE_THRESHOLDS, detect_anomalies
from mrvkit.analytics.satellite import DATA_TYPES, analyze_satellite
from mrvkit.analytics.sensors import PLAUSIBLE_RANGES, aggregate_sensor
from mrvkit.core.config import ConfigManager, load_mapping
from mrvkit.core.errors import MrvError
from mrvkit.core.logger import Logger
from mrvkit.core.utils import to_jsonable, to_utc
from mrvkit.ingestion import create_provider
from mrvkit.schemas.monitoring import (
    AnomalyDetectionModel,
    DateRange,
    Location,
    ProjectMetadata,
    SensorDevice,
    SensorReading,
    TimeSeriesPoint,
)
from mrvkit.services.monitoring import run_monitoring_pipeline

logger = Logger.get_logger(__name__)

CLI_ERRORS = (MrvError, ValueError, KeyError, OSError)


def _read_table(path: str) -> pd.DataFrame:
    """Return a DataFrame loaded from CSV or Parquet at *path*."""

    return (
        pd.read_parquet(path)
        if Path(path).suffix.lower() == ".parquet"
        else pd.read_csv(path)
    )


def _emit(result, output: str | None) -> None:
    text = json.dumps(to_jsonable(result), indent=2, ensure_ascii=False)
    if output:
        Path(output).write_text(text + "\n", encoding="utf-8")
        echo(f"✅  Results written to `{output}`")
    else:
        echo(text)


def _fail(err: Exception) -> None:
    echo(f"❌  {err}", err=True)
    sys.exit(1)


def load_readings(path: str, sensor_id: str) -> list[SensorReading]:
    """Read sensor readings from a table with at least ``timestamp`` and ``value``.

    Optional columns: ``sensor_id`` (rows for other sensors are skipped),
    ``unit``, ``quality`` (default ``valid``) and ``confidence`` (default 100).
    """
    df = _read_table(path)
    missing = {"timestamp", "value"} - set(df.columns)
    if missing:
        raise ValueError(f"{path} is missing columns: {sorted(missing)}")
    if "sensor_id" in df.columns:
        df = df[df["sensor_id"].astype(str) == sensor_id]
    readings = []
    for row in df.to_dict(orient="records"):
        readings.append(
            SensorReading(
                sensor_id=sensor_id,
                timestamp=to_utc(str(row["timestamp"])),
                value=float(row["value"]),
                unit=str(row.get("unit", "")),
                quality=row.get("quality", "valid"),
                confidence=float(row.get("confidence", 100.0)),
            )
        )
    return readings


def load_project(path: str):
    """Load project metadata and its sensor batches from a YAML/TOML/JSON file.

    Sensor ``readings`` paths are resolved relative to the project file.
    """
    data = load_mapping(path)
    base = Path(path).resolve().parent
    location = Location(float(data["latitude"]), float(data["longitude"]))
    project = ProjectMetadata(
        project_id=str(data["project_id"]),
        location=location,
        area_ha=float(data["area_ha"]),
        monitoring_start=to_utc(data["monitoring_start"]),
        monitoring_end=to_utc(data["monitoring_end"]),
        ecosystem=data.get("ecosystem", ConfigManager.DEFAULT_ECOSYSTEM),
        name=data.get("name"),
    )
    batches = []
    for entry in data.get("sensors") or []:
        device = SensorDevice(
            id=str(entry["id"]),
            type=str(entry["type"]),
            location=Location(
                float(entry.get("latitude", location.latitude)),
                float(entry.get("longitude", location.longitude)),
            ),
        )
        readings_path = base / entry["readings"]
        batches.append((device, load_readings(str(readings_path), device.id)))
    return project, batches


@click.group()
@click.option(
    "--config",
    "config_path",
    type=click.Path(exists=True),
    default=None,
    help="Settings file (YAML, TOML or JSON)",
)
@click.pass_context
def cli(ctx, config_path):
    """mrvkit: monitoring validation and verification readiness."""
    Logger.setup()
    ctx.obj = ConfigManager(config_path)


@cli.group()
def satellite():
    """Satellite index analysis."""


@satellite.command(name="analyze")
@click.option("--lat", type=float, required=True, help="Latitude (WGS84)")
@click.option("--lon", type=float, required=True, help="Longitude (WGS84)")
@click.option("--start", "-s", required=True, help="Start date (YYYY-MM-DD)")
@click.option("--end", "-e", required=True, help="End date (YYYY-MM-DD)")
@click.option(
    "--data-type",
    "-d",
    type=click.Choice(list(DATA_TYPES)),
    default=None,
    help="Observation type (defaults to the configured data_type)",
)
@click.option(
    "--ecosystem",
    type=click.Choice(list(ConfigManager.SUPPORTED_ECOSYSTEMS)),
    default=None,
    help="Ecosystem baseline for synthetic observations",
)
@click.option("--seed", type=int, default=0, help="Seed for synthetic observations")
@click.option("--project-id", default="unknown", help="Project identifier")
@click.option("--output", "-o", type=click.Path(), default=None, help="JSON output")
@click.pass_obj
def satellite_analyze(
    settings, lat, lon, start, end, data_type, ecosystem, seed, project_id, output
):
    """Analyze vegetation index and radar samples for a location."""
    try:
        provider = create_provider(
            "seasonal",
            ecosystem=ecosystem or settings.get("ecosystem"),
            seed=seed,
            logger=logger,
        )
        result = analyze_satellite(
            Location(lat, lon),
            DateRange.from_values(start, end),
            data_type or settings.get("data_type"),
            provider=provider,
            project_id=project_id,
        )
    except CLI_ERRORS as e:
        _fail(e)
        return
    _emit(result, output)


@cli.group()
def sensor():
    """Sensor stream commands."""


@sensor.command(name="aggregate")
@click.argument("readings_csv", type=click.Path(exists=True))
@click.option("--sensor-id", required=True, help="Sensor identifier")
@click.option(
    "--type",
    "sensor_type",
    type=click.Choice(sorted(PLAUSIBLE_RANGES) + ["ph"]),
    required=True,
    help="Sensor type",
)
@click.option("--lat", type=float, default=0.0, help="Sensor latitude")
@click.option("--lon", type=float, default=0.0, help="Sensor longitude")
@click.option("--output", "-o", type=click.Path(), default=None, help="JSON output")
def sensor_aggregate(readings_csv, sensor_id, sensor_type, lat, lon, output):
    """Aggregate the readings in READINGS_CSV for one sensor."""
    try:
        readings = load_readings(readings_csv, sensor_id)
        result = aggregate_sensor(sensor_id, readings, Location(lat, lon), sensor_type)
    except CLI_ERRORS as e:
        _fail(e)
        return
    _emit(result, output)


@cli.group()
def anomaly():
    """Anomaly detection commands."""


@anomaly.command(name="detect")
@click.argument("series_csv", type=click.Path(exists=True))
@click.option(
    "--model",
    "-m",
    type=click.Choice(list(DETECTORS)),
    default=None,
    help="Detector (defaults to the configured anomaly_model)",
)
@click.option(
    "--sensitivity",
    type=click.Choice(list(ZSCORE_THRESHOLDS)),
    default=None,
    help="Detector sensitivity",
)
@click.option("--window", type=int, default=None, help="Trend window size")
@click.option("--value-col", default="value", help="Column holding the values")
@click.option("--output", "-o", type=click.Path(), default=None, help="JSON output")
@click.pass_obj
def anomaly_detect(settings, series_csv, model, sensitivity, window, value_col, output):
    """Detect anomalies in the time series stored in SERIES_CSV."""
    try:
        df = _read_table(series_csv)
        sources = df["source"] if "source" in df.columns else ["sensor"] * len(df)
        series = [
            TimeSeriesPoint(to_utc(str(ts)), float(value), source=str(source))
            for ts, value, source in zip(df["timestamp"], df[value_col], sources)
        ]
        detector_model = AnomalyDetectionModel(
            type=model or settings.get("anomaly_model"),
            sensitivity=sensitivity or settings.get("anomaly_sensitivity"),
            window_size=window or int(settings.get("anomaly_window")),
        )
        result = detect_anomalies(series, detector_model)
    except CLI_ERRORS as e:
        _fail(e)
        return
    _emit(result, output)


@cli.group()
def readiness():
    """Verification readiness commands."""


@readiness.command(name="assess")
@click.argument("project_yaml", type=click.Path(exists=True))
@click.option("--seed", type=int, default=0, help="Seed for synthetic observations")
@click.option(
    "--as-of", default=None, help="Reference time for data age (ISO 8601)"
)
@click.option("--output", "-o", type=click.Path(), default=None, help="JSON output")
@click.pass_obj
def readiness_assess(settings, project_yaml, seed, as_of, output):
    """Run the full pipeline for the project described in PROJECT_YAML."""
    try:
        project, batches = load_project(project_yaml)
        provider = create_provider(
            "seasonal", ecosystem=project.ecosystem, seed=seed, logger=logger
        )
        result = run_monitoring_pipeline(
            project,
            batches,
            provider=provider,
            settings=settings,
            as_of=to_utc(as_of) if as_of else None,
            logger=logger,
        )
    except CLI_ERRORS as e:
        _fail(e)
        return
    _emit(result.report, output)


if __name__ == "__main__":
    cli()
