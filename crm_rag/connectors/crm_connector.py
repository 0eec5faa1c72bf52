"""
CRM Data Connector
==================

Loads raw CRM records from JSON files, CSV files, directories and REST
endpoints. Records are returned as camelCase dictionaries; typing happens in
the normalizer.
"""

import csv
import json
import logging
from pathlib import Path
from typing import Any, Dict, List, Optional

import requests

from ..errors import DataSourceError
from .models import DataSource, DataSourceType

logger = logging.getLogger(__name__)


class CRMConnector:
    """Reads CRM exports and CRM APIs."""

    SUPPORTED_EXTENSIONS = (".json", ".csv")

    def __init__(self, request_timeout: float = 30.0, session: Optional[requests.Session] = None):
        self.request_timeout = request_timeout
        self.session = session or requests.Session()

    def read_json(self, file_path: str) -> List[Dict[str, Any]]:
        """Read a JSON file; a single object is wrapped in a list."""
        path = Path(file_path).resolve()
        try:
            with open(path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            logger.error(f"Failed to read JSON file {path}: {e}")
            raise DataSourceError(f"Failed to read JSON file: {file_path}") from e

        return data if isinstance(data, list) else [data]

    def read_csv(self, file_path: str) -> List[Dict[str, Any]]:
        """Read a CSV file with a header row. Values stay strings."""
        path = Path(file_path).resolve()
        try:
            with open(path, "r", encoding="utf-8-sig", newline="") as f:
                reader = csv.DictReader(f)
                return [
                    {key.strip(): (value.strip() if isinstance(value, str) else value)
                     for key, value in row.items() if key}
                    for row in reader
                ]
        except (OSError, csv.Error) as e:
            logger.error(f"Failed to read CSV file {path}: {e}")
            raise DataSourceError(f"Failed to read CSV file: {file_path}") from e

    def fetch_from_api(self, api_endpoint: str, headers: Optional[Dict[str, str]] = None) -> List[Dict[str, Any]]:
        """GET a JSON payload from a CRM API."""
        request_headers = {"Content-Type": "application/json"}
        request_headers.update(headers or {})

        try:
            response = self.session.get(api_endpoint, headers=request_headers, timeout=self.request_timeout)
            response.raise_for_status()
            data = response.json()
        except (requests.RequestException, ValueError) as e:
            logger.error(f"Failed to fetch from API {api_endpoint}: {e}")
            raise DataSourceError(f"Failed to fetch data from API: {api_endpoint}") from e

        return data if isinstance(data, list) else [data]

    def load_data(self, source: DataSource) -> List[Dict[str, Any]]:
        """Load records from a data source."""
        if source.type in (DataSourceType.JSON, DataSourceType.CSV, DataSourceType.EXCEL) and not source.path:
            raise DataSourceError(f"{source.type.value} source requires a path")

        if source.type == DataSourceType.JSON:
            return self.read_json(source.path)

        if source.type == DataSourceType.CSV:
            return self.read_csv(source.path)

        if source.type == DataSourceType.EXCEL:
            raise DataSourceError("Excel sources are not supported yet")

        if source.type == DataSourceType.API:
            if not source.api_endpoint:
                raise DataSourceError("api source requires an apiEndpoint")
            return self.fetch_from_api(source.api_endpoint, source.headers)

        raise DataSourceError(f"Unsupported data source type: {source.type}")

    def load_directory(self, directory_path: str) -> List[Dict[str, Any]]:
        """
        Load every JSON and CSV file in a directory (non-recursive).

        Unreadable files are skipped with a warning.
        """
        directory = Path(directory_path).resolve()
        if not directory.is_dir():
            raise DataSourceError(f"Not a directory: {directory_path}")

        all_data: List[Dict[str, Any]] = []
        for file_path in sorted(directory.iterdir()):
            ext = file_path.suffix.lower()
            if ext not in self.SUPPORTED_EXTENSIONS:
                continue
            try:
                if ext == ".json":
                    all_data.extend(self.read_json(str(file_path)))
                else:
                    all_data.extend(self.read_csv(str(file_path)))
            except DataSourceError as e:
                logger.warning(f"Skipping unreadable file {file_path.name}: {e}")

        logger.info(f"Loaded {len(all_data)} records from {directory}")
        return all_data
