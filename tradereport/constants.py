"""
tradereport.constants — Single source of truth for report defaults.

Every module that needs these values MUST import from here.
Runtime overrides go through tradereport.config, never by editing
these tables.
"""

from __future__ import annotations

# ---------------------------------------------------------------------------
# Filter defaults
# ---------------------------------------------------------------------------

YEAR_PREFIX: str = "2024"
"""Periods are YYYYMM text; a row belongs to the year when its period
starts with this prefix. No numeric parsing of the period."""

CATEGORY: str = "goods"
"""Compared against the trimmed, case-folded product_type column."""

CODE_LENGTH: int = 4
"""HS4: classification codes are exactly this many ASCII digits."""

# ---------------------------------------------------------------------------
# Accounts
# ---------------------------------------------------------------------------

ACCOUNT_IMPORTS: str = "imports"
ACCOUNT_EXPORTS: str = "exports"

# ---------------------------------------------------------------------------
# Focus country and bloc
# ---------------------------------------------------------------------------

FOCUS_CODE: str = "NO"
FOCUS_NAME: str = "Norway"

# Display names for non-member focus countries. Codes outside this table
# are labelled with the code itself unless a name is configured.
FOCUS_NAMES: dict[str, str] = {
    "NO": "Norway", "IS": "Iceland", "LI": "Liechtenstein",
    "CH": "Switzerland", "GB": "United Kingdom",
}

BLOC_CODE: str = "EU"
"""Reserved bucket key for the bloc-wide aggregate."""

BLOC_NAME: str = "European Union"

# EU-27 member countries (2024), ISO-2 as used by Stats NZ (GR, not EL).
EU27_CODES: frozenset[str] = frozenset([
    "AT", "BE", "BG", "CY", "CZ", "DE", "DK", "EE", "ES", "FI",
    "FR", "GR", "HR", "HU", "IE", "IT", "LT", "LU", "LV", "MT",
    "NL", "PL", "PT", "RO", "SE", "SI", "SK",
])

EU27_NAMES: dict[str, str] = {
    "AT": "Austria", "BE": "Belgium", "BG": "Bulgaria",
    "CY": "Cyprus", "CZ": "Czechia", "DE": "Germany",
    "DK": "Denmark", "EE": "Estonia", "ES": "Spain",
    "FI": "Finland", "FR": "France", "GR": "Greece",
    "HR": "Croatia", "HU": "Hungary", "IE": "Ireland",
    "IT": "Italy", "LT": "Lithuania", "LU": "Luxembourg",
    "LV": "Latvia", "MT": "Malta", "NL": "Netherlands",
    "PL": "Poland", "PT": "Portugal", "RO": "Romania",
    "SE": "Sweden", "SI": "Slovenia", "SK": "Slovakia",
}

# ---------------------------------------------------------------------------
# File locations (relative to the working directory)
# ---------------------------------------------------------------------------

DEFAULT_DATA_PATH: str = "output_csv_full.csv"
DEFAULT_CLASSIFICATION_PATH: str = "goods_classification.csv"
DEFAULT_RESULTS_PATH: str = "trade_report_2024.csv"

ENV_DATA_PATH: str = "TRADE_DATA_PATH"
ENV_CLASSIFICATION_PATH: str = "GOODS_CLASS_PATH"
ENV_RESULTS_PATH: str = "TRADE_RESULTS_PATH"
ENV_YEAR_PREFIX: str = "TRADE_YEAR_PREFIX"
ENV_CATEGORY: str = "TRADE_CATEGORY"
ENV_FOCUS_CODE: str = "TRADE_FOCUS_COUNTRY"
ENV_FOCUS_NAME: str = "TRADE_FOCUS_NAME"

# ---------------------------------------------------------------------------
# Input schema
# ---------------------------------------------------------------------------

COL_PERIOD: str = "time_ref"
COL_ACCOUNT: str = "account"
COL_CODE: str = "code"
COL_COUNTRY: str = "country_code"
COL_CATEGORY: str = "product_type"
COL_VALUE: str = "value"
COL_STATUS: str = "status"

MANDATORY_COLUMNS: tuple[str, ...] = (
    COL_PERIOD,
    COL_ACCOUNT,
    COL_CODE,
    COL_COUNTRY,
    COL_CATEGORY,
    COL_VALUE,
)

LOOKUP_CODE_COLUMN: str = "NZHSC_Level_2_Code_HS4"
LOOKUP_DESCRIPTION_COLUMN: str = "NZHSC_Level_2"

# ---------------------------------------------------------------------------
# Output schema
# ---------------------------------------------------------------------------

RESULT_FIELDNAMES: tuple[str, ...] = (
    "Country",
    "Trade_Balance_NZD",
    "Top_Import_Description",
    "Top_Import_Code",
    "Top_Import_Value_NZD",
    "Top_Export_Description",
    "Top_Export_Code",
    "Top_Export_Value_NZD",
)

UNKNOWN_DESCRIPTION: str = "(unknown)"
NOT_APPLICABLE: str = "n/a"
CURRENCY: str = "NZD"
