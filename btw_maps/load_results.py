"""
load_results.py - Read the raw Bundeswahlleiter results file

The results file opens with a block of title/header rows, followed by one row
per constituency, state aggregate and federal aggregate. Columns carry no
usable header, so the frame is returned with 1-indexed integer column labels
and every cell as a string; naming and typing happen in tidy_results.py.
"""

from pathlib import Path
from typing import Union

import pandas as pd
from loguru import logger

from .errors import LoadError
from .tidy_results import SpreadsheetLayout

# Legacy .xls needs xlrd, which is not a dependency; such files are read as CSV
EXCEL_SUFFIXES = {".xlsx"}


def load_raw_results(path: Union[str, Path], layout: SpreadsheetLayout) -> pd.DataFrame:
    """Load the results spreadsheet, skipping the header region.

    Args:
        path: Path to a semicolon-separated CSV or an Excel workbook (.xlsx)
        layout: Spreadsheet layout (header rows, minimum width, CSV dialect)

    Returns:
        DataFrame of strings with columns labelled 1..n

    Raises:
        LoadError: if the file is missing, cannot be parsed, or is narrower
            than layout.min_columns
    """
    path = Path(path)
    logger.info(f"📄 Loading election results: {path}")

    if not path.exists():
        raise LoadError(f"Results file not found: {path}")

    try:
        if path.suffix.lower() in EXCEL_SUFFIXES:
            df = pd.read_excel(
                path,
                skiprows=layout.header_rows,
                header=None,
                dtype=str,
                keep_default_na=False,
            )
        else:
            df = pd.read_csv(
                path,
                sep=layout.separator,
                skiprows=layout.header_rows,
                header=None,
                dtype=str,
                keep_default_na=False,
                encoding=layout.encoding,
            )
    except (ImportError, OSError, ValueError, pd.errors.ParserError) as e:
        raise LoadError(f"Could not read results file {path}: {e}") from e

    if df.shape[1] < layout.min_columns:
        raise LoadError(
            f"Results file {path} has {df.shape[1]} columns, expected at least {layout.min_columns}"
        )

    df.columns = range(1, df.shape[1] + 1)
    logger.success(f"  ✅ Loaded {len(df)} rows x {df.shape[1]} columns")
    return df
