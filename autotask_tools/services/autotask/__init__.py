from autotask_tools.services.autotask.client import APIError, AutotaskAPIClient, EntityAPI
from autotask_tools.services.autotask.data_source import AutotaskDataSource, DataSource

__all__ = [
    "APIError",
    "AutotaskAPIClient",
    "AutotaskDataSource",
    "DataSource",
    "EntityAPI",
]
