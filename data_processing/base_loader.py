from abc import ABC, abstractmethod
from pathlib import Path
from typing import Dict, Any, Optional, List
import pandas as pd
import logging

from utils.data.validation import require_columns, validate_file_exists

logger = logging.getLogger(__name__)

EXCEL_SUFFIXES = {'.xlsx', '.xlsm', '.xls'}


class BaseDataLoader(ABC):
    """Abstract base class for all data loaders."""

    def __init__(self, config: Dict[str, Any]):
        self.config = config
        self.data: Optional[pd.DataFrame] = None

    @abstractmethod
    def load_data(self, file_path: str, **kwargs) -> pd.DataFrame:
        """Load data from file and return standardized DataFrame."""
        pass

    @abstractmethod
    def get_required_columns(self) -> List[str]:
        """Return list of required columns for this data type."""
        pass

    def validate_data(self, data: pd.DataFrame) -> bool:
        """Validate loaded data structure; missing columns are fatal."""
        require_columns(data, self.get_required_columns(), name=self.__class__.__name__)
        return True

    def preprocess_data(self, data: pd.DataFrame) -> pd.DataFrame:
        """Apply common preprocessing steps."""
        data = data.copy()
        data.columns = [str(col).strip() for col in data.columns]
        return data

    def read_table(self, file_path: str, sheet_name: Optional[str] = None,
                   delimiter: str = ',', **read_kwargs) -> pd.DataFrame:
        """Read a workbook sheet or a delimited text file depending on the suffix."""
        path = Path(file_path)
        if not validate_file_exists(path, f"{self.__class__.__name__} input"):
            raise FileNotFoundError(f"Data file not found: {file_path}")

        if path.suffix.lower() in EXCEL_SUFFIXES:
            logger.info(f"Reading sheet '{sheet_name}' from workbook: {file_path}")
            return pd.read_excel(path, sheet_name=sheet_name if sheet_name is not None else 0,
                                 **read_kwargs)

        logger.info(f"Reading delimited file: {file_path}")
        return pd.read_csv(path, sep=delimiter, **read_kwargs)

    def get_data(self) -> Optional[pd.DataFrame]:
        """Return loaded and processed data."""
        return self.data

    def has_data(self) -> bool:
        """Check if data has been loaded."""
        return self.data is not None and not self.data.empty
