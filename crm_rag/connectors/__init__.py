from .crm_connector import CRMConnector
from .models import DataSource, DataSourceType

__all__ = ["CRMConnector", "DataSource", "DataSourceType"]
