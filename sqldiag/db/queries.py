"""Scalar SQL used by the inventory collector and engine counter source."""

from __future__ import annotations

EDITION = "SELECT CAST(SERVERPROPERTY('Edition') AS nvarchar(128))"

PRODUCT_VERSION = "SELECT CAST(SERVERPROPERTY('ProductVersion') AS nvarchar(128))"

# database_id 1-4 are master, tempdb, model and msdb
USER_DATABASE_COUNT = "SELECT COUNT(*) FROM sys.databases WHERE database_id > 4"

SSIS_INSTALLED = (
    "SELECT CASE WHEN EXISTS "
    "(SELECT 1 FROM sys.databases WHERE name = 'SSISDB') "
    "THEN 1 ELSE 0 END"
)

SSRS_INSTALLED = (
    "SELECT CASE WHEN EXISTS "
    "(SELECT 1 FROM sys.databases "
    "WHERE name LIKE 'ReportServer%' AND name NOT LIKE 'ReportServer%TempDB') "
    "THEN 1 ELSE 0 END"
)

# total size of all data and log files, in 8 KB pages
TOTAL_DATABASE_SIZE_PAGES = "SELECT SUM(CAST(size AS bigint)) FROM sys.master_files"

PERFORMANCE_COUNTER = (
    "SELECT cntr_value FROM sys.dm_os_performance_counters "
    "WHERE RTRIM(object_name) = ? AND RTRIM(counter_name) = ?"
)
