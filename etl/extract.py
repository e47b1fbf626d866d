"""
Source Data Extraction

Reads raw student and enrollment rows from CSV/JSON files or a Google Sheet.
Every source yields plain row dictionaries; the adapters turn them into raw
records.
"""

import json
import logging
import os
from typing import Any, Dict, List, Optional

import gspread
import pandas as pd
from google.oauth2.service_account import Credentials

logger = logging.getLogger(__name__)


def _clean_frame(df: pd.DataFrame) -> pd.DataFrame:
    """Normalize headers, trim cells, and drop fully empty rows."""
    df.columns = df.columns.str.strip().str.lower().str.replace(" ", "_")
    df = df.fillna("").astype(str)
    df = df.apply(lambda column: column.str.strip())
    return df[~(df == "").all(axis=1)]


def frame_to_rows(df: pd.DataFrame) -> List[Dict[str, Any]]:
    if df.empty:
        return []
    return _clean_frame(df).to_dict(orient="records")


class GoogleSheetsExtractor:
    """
    Extracts data from Google Sheets.

    Authenticates with a service account.
    """

    SCOPES = [
        "https://www.googleapis.com/auth/spreadsheets.readonly",
        "https://www.googleapis.com/auth/drive.readonly",
    ]

    def __init__(self, credentials_path: str):
        """
        Initialize Google Sheets extractor.

        Args:
            credentials_path: Path to service account JSON file

        Raises:
            FileNotFoundError: If credentials file not found
        """
        self.credentials_path = credentials_path
        self.client: Optional[gspread.Client] = None
        self._authenticate()

    def _authenticate(self) -> None:
        try:
            credentials = Credentials.from_service_account_file(
                self.credentials_path, scopes=self.SCOPES
            )
            self.client = gspread.authorize(credentials)
            logger.info("Successfully authenticated with Google Sheets API")
        except FileNotFoundError:
            logger.error(f"Credentials file not found: {self.credentials_path}")
            raise
        except Exception as e:
            logger.error(f"Google Sheets authentication failed: {e}")
            raise

    def extract(self, sheet_id: str, sheet_name: str = "Sheet1") -> pd.DataFrame:
        """
        Extract a worksheet into a DataFrame; the first row is the header.

        Args:
            sheet_id: Google Sheet ID
            sheet_name: Name of the sheet tab

        Returns:
            pandas DataFrame with extracted data
        """
        try:
            logger.info(f"Extracting data from sheet: {sheet_name}")

            spreadsheet = self.client.open_by_key(sheet_id)
            worksheet = spreadsheet.worksheet(sheet_name)
            data = worksheet.get_all_values()

            if not data:
                logger.warning(f"No data found in sheet {sheet_name}")
                return pd.DataFrame()

            df = pd.DataFrame(data[1:], columns=data[0])

            logger.info(f"Successfully extracted {len(df)} rows from {sheet_name}")
            logger.debug(f"Columns: {list(df.columns)}")

            return df

        except gspread.exceptions.SpreadsheetNotFound:
            logger.error(f"Spreadsheet not found: {sheet_id}")
            raise
        except gspread.exceptions.WorksheetNotFound:
            logger.error(f"Worksheet '{sheet_name}' not found in spreadsheet")
            raise


def extract_from_csv(path: str) -> List[Dict[str, Any]]:
    """
    Read a CSV file with every cell as a string.

    Raises:
        FileNotFoundError: If the file does not exist
    """
    logger.info(f"Extracting data from CSV: {path}")
    df = pd.read_csv(path, dtype=str, keep_default_na=False, skip_blank_lines=True)
    rows = frame_to_rows(df)
    logger.info(f"Extracted {len(rows)} rows from {os.path.basename(path)}")
    return rows


def extract_from_json(path: str) -> List[Dict[str, Any]]:
    """
    Read a JSON file holding an array of rows, or an object wrapping one
    under ``data``, ``records`` or ``students``.
    """
    logger.info(f"Extracting data from JSON: {path}")
    with open(path, encoding="utf-8") as handle:
        data = json.load(handle)

    if isinstance(data, list):
        rows = data
    elif isinstance(data, dict):
        rows = data.get("data") or data.get("records") or data.get("students") or [data]
    else:
        raise ValueError(f"Unsupported JSON layout in {path}")

    logger.info(f"Extracted {len(rows)} rows from {os.path.basename(path)}")
    return rows


def extract_from_file(path: str) -> List[Dict[str, Any]]:
    """Dispatch on the file extension."""
    ext = os.path.splitext(path)[1].lower()
    if ext == ".csv":
        return extract_from_csv(path)
    if ext == ".json":
        return extract_from_json(path)
    raise ValueError(f"Unsupported file type: {ext or path}")


def fetch_google_sheet(settings) -> List[Dict[str, Any]]:
    """
    Extract student rows from the configured Google Sheet.

    Args:
        settings: Settings object with GOOGLE_CREDENTIALS_PATH, GOOGLE_SHEET_ID and SHEET_NAME
    """
    extractor = GoogleSheetsExtractor(settings.GOOGLE_CREDENTIALS_PATH)
    df = extractor.extract(sheet_id=settings.GOOGLE_SHEET_ID, sheet_name=settings.SHEET_NAME)
    return frame_to_rows(df)


def extract_pending_registrations(path: str) -> List[Dict[str, Any]]:
    """
    Read the Apps Script export of pending registrations.

    Expected layout: ``{"exportedAt": "...", "students": [...]}``.

    Raises:
        FileNotFoundError: If the export has not been saved yet
        ValueError: If the ``students`` array is missing
    """
    if not os.path.exists(path):
        logger.error(
            f"Pending registrations file not found: {path}. "
            f"Export pending rows as JSON from the sheet and save them there."
        )
        raise FileNotFoundError(path)

    with open(path, encoding="utf-8") as handle:
        data = json.load(handle)

    students = data.get("students") if isinstance(data, dict) else None
    if not isinstance(students, list):
        raise ValueError('Invalid JSON format: "students" array not found')

    logger.info(f"Found {len(students)} pending registrations (exported at {data.get('exportedAt')})")
    return students
