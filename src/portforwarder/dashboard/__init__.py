"""Web dashboard for listing and controlling tunnels."""

from .app import create_app
from .datasource import generate_datasource
from .server import DashboardServer

__all__ = ["create_app", "generate_datasource", "DashboardServer"]
