"""Route registry and schema helpers consumed by `service_center.openapi`."""

__all__ = [
    "constants",
    "helpers",
]
