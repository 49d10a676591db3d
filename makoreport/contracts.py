"""Stable constants for summary artifacts, node status, and store layout."""

TOTALS_KEY = "totals"
TOMBSTONE_ACCOUNT = "tombstone"
TOMBSTONE_PREFIX = "tombstone_"

SUMMARY_HEADER = ("account", "bytes", "objects", "average size kb", "kilobytes")

UNKNOWN_DATACENTER = "Unknown"
DATACENTER_HEADER = "m-datacenter"

DEFAULT_BASE_PATH = "/poseidon/stor/mako"
SUMMARY_SUBDIR = "summary"
DEFAULT_REGION_NAME = "region"

SOURCE_PREBUILT = "prebuilt"
SOURCE_DERIVED = "derived"

NODE_STATUS_PENDING = "pending"
NODE_STATUS_SUMMARY_FETCHED = "summary_fetched"
NODE_STATUS_TOTALS_EXTRACTED = "totals_extracted"
NODE_STATUS_APPENDED = "appended"
NODE_STATUS_FAILED = "failed"

FAILURE_REASON_SUMMARY = "summary_unavailable"
FAILURE_REASON_TOTALS = "totals_missing"
FAILURE_REASON_RECORD = "record_error"

# 34 significant digits, the precision of an IEEE 754 quad.
DECIMAL_PRECISION = 34
