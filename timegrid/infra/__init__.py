"""Infrastructure layer - Local cache, offline store, remote API and connectivity"""

from .db import DatabaseEngine, get_engine, init_db
from .offline_store import OfflineStore
from .api_client import ApiClient, RemoteStore, RemoteStoreError
from .connectivity import ConnectivityMonitor, HttpConnectivityMonitor

__all__ = [
    "DatabaseEngine", "get_engine", "init_db", "OfflineStore", "ApiClient", "RemoteStore",
    "RemoteStoreError", "ConnectivityMonitor", "HttpConnectivityMonitor",
]
