"""
File and text readers producing raw records.
"""

from .csv_reader import CSVReader
from .file_reader import FileReader, detect_format
from .json_reader import JSONLReader, JSONReader
from .parquet_reader import ParquetReader

__all__ = [
    "CSVReader",
    "FileReader",
    "detect_format",
    "JSONLReader",
    "JSONReader",
    "ParquetReader",
]
