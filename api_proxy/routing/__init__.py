from .route_table import ROUTE_MAPPING, RouteEntry, RouteTable

__all__ = ["ROUTE_MAPPING", "RouteEntry", "RouteTable"]
