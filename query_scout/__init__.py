"""Query Scout - natural language to SQL with tool-guided exploration."""

__version__ = "0.1.0"

from query_scout.config import Config
from query_scout.service import QueryService

__all__ = ["Config", "QueryService", "__version__"]
