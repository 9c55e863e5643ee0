from __future__ import annotations

from pathlib import Path
from typing import Any, Mapping

from pydantic import ValidationError
from pydantic_settings import BaseSettings

from sqldiag.exceptions import ConfigurationError
from sqldiag.models.run import Credential, RunConfig

BASE_DIR = Path(__file__).resolve().parent


class Settings(BaseSettings):
    # --- app ---
    app_name: str = "SQL Server Diagnostic Collector"
    log_level: str = "INFO"
    hostname: str | None = None  # overrides socket.gethostname() in artifact names

    # --- database ---
    odbc_driver: str = "ODBC Driver 18 for SQL Server"
    login_timeout: int = 15  # seconds
    trust_server_certificate: bool = True

    # --- usage recommendation ---
    recommended_duration_minutes: int = 10080  # 7 days
    recommended_interval_seconds: int = 60

    model_config = {"env_file": ".env", "env_prefix": "SQLDIAG_"}


settings = Settings()


# (dest, flag, help) for every required run parameter, in CLI order
RUN_PARAMETERS: tuple[tuple[str, str, str], ...] = (
    ("server", "--server", "SQL Server address: host, host\\INSTANCE or host,port"),
    ("database", "--database", "database to connect to"),
    ("query_timeout", "--query-timeout", "query timeout in seconds"),
    ("username", "--username", "SQL login name"),
    ("password", "--password", "SQL login password"),
    ("perf_log", "--perf-log", "performance CSV output path"),
    ("output_log", "--output-log", "inventory report output path"),
    ("duration", "--duration", "total run duration in minutes"),
    ("interval", "--interval", "sample interval in seconds"),
)


def usage_text(prog: str = "sqldiag", cfg: Settings | None = None) -> str:
    cfg = cfg or settings
    flags = " ".join(f"{flag} <{dest}>" for dest, flag, _ in RUN_PARAMETERS)
    width = max(len(flag) for _, flag, _ in RUN_PARAMETERS)
    details = "\n".join(f"  {flag:<{width}}  {help_}" for _, flag, help_ in RUN_PARAMETERS)
    days = cfg.recommended_duration_minutes / (24 * 60)
    return (
        f"Usage: {prog} {flags}\n"
        f"\n"
        f"All parameters are required:\n"
        f"{details}\n"
        f"\n"
        f"Example:\n"
        f"  {prog} --server DBHOST01\\PROD --database master --query-timeout 30 "
        f"--username diag --password 'S3cret!' --perf-log C:\\Temp\\perf.csv "
        f"--output-log C:\\Temp\\inventory.txt "
        f"--duration {cfg.recommended_duration_minutes} "
        f"--interval {cfg.recommended_interval_seconds}\n"
        f"\n"
        f"Recommendation: run for {days:g} days "
        f"(--duration {cfg.recommended_duration_minutes}) sampling every "
        f"{cfg.recommended_interval_seconds} seconds "
        f"(--interval {cfg.recommended_interval_seconds}).\n"
    )


def _is_missing(value: Any) -> bool:
    if value is None:
        return True
    if isinstance(value, str):
        return value.strip() == ""
    if isinstance(value, (int, float)):
        return value == 0
    return False


def validate_run_params(params: Mapping[str, Any]) -> RunConfig:
    """Build a RunConfig from named parameters or raise ConfigurationError.

    Every parameter in ``RUN_PARAMETERS`` must be present, non-empty and
    non-zero.
    """
    missing = [flag for dest, flag, _ in RUN_PARAMETERS if _is_missing(params.get(dest))]
    if missing:
        raise ConfigurationError(
            "missing required parameter(s): " + ", ".join(missing), missing=missing
        )
    try:
        return RunConfig(
            server=params["server"],
            database=params["database"],
            query_timeout=params["query_timeout"],
            credential=Credential(username=params["username"], password=params["password"]),
            perf_log=Path(params["perf_log"]),
            output_log=Path(params["output_log"]),
            duration_minutes=params["duration"],
            interval_seconds=params["interval"],
        )
    except ValidationError as exc:
        raise ConfigurationError(f"invalid run parameters: {exc}") from exc
