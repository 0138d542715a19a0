from abc import ABC, abstractmethod
from typing import Any, Dict, List, Mapping, Optional

from dbgateway.common.cancellation import CancellationToken
from .models import DatabaseConfig, Table, TableMetadata


class DatabaseConnector(ABC):
    """Canonical interface every backend connector must implement.

    A connector is shared by all concurrent requests of one server and
    observes that server's cancellation token.
    """

    def __init__(self, config: DatabaseConfig, cancellation: Optional[CancellationToken] = None):
        self.config = config
        self.cancellation = cancellation or CancellationToken()

    @property
    def backend(self) -> str:
        return self.config.type

    def __str__(self):
        return f"{type(self).__name__}({self.backend})"

    @abstractmethod
    def connect(self) -> None:
        """Establish the pooled connection. Call once per lifecycle start."""
        pass

    @abstractmethod
    def disconnect(self) -> None:
        """Release pooled resources. No-op when never connected."""
        pass

    def wait_idle(self, timeout: Optional[float] = None) -> bool:
        """Block until no database operation is in flight.

        Returns False when `timeout` elapsed first.
        """
        return True

    @abstractmethod
    def list_tables(self) -> List[Table]:
        """Return base tables ordered by name."""
        pass

    @abstractmethod
    def get_table_metadata(self, table_name: str) -> TableMetadata:
        """Return columns, row count, sample rows and comment for a table."""
        pass

    @abstractmethod
    def execute_query(self, query: str, params: Optional[Mapping[str, Any]] = None) -> List[Dict[str, Any]]:
        """Execute a `:name`-parameterized query and return rows as mappings."""
        pass

    @abstractmethod
    def enhance_metadata_with_llm(self, metadata: TableMetadata) -> None:
        """Set `metadata.verbose_description` in place. Never raises."""
        pass
