"""Helper functions for the OpenAPI builder."""
import re
from typing import Any, Dict, List


def schema_minimal(required: List[str]) -> Dict[str, Any]:
    return {"type": "object", "properties": {k: {} for k in required}, "required": list(required)}


def caching_headers() -> Dict[str, Any]:
    return {
        "ETag": {"schema": {"type": "string"}},
        "Last-Modified": {"schema": {"type": "string"}},
        "X-Last-Modified-ISO": {"schema": {"type": "string"}},
    }


def path_params(path: str) -> List[Dict[str, Any]]:
    params = []
    for name in re.findall(r"{(\w+)}", path):
        kind = "string" if name in ("token", "field") else "integer"
        params.append({"name": name, "in": "path", "required": True, "schema": {"type": kind}})
    return params


def operation_id(method: str, path: str) -> str:
    rid = path.strip("/").replace("/", "_").replace("{", "").replace("}", "").replace("-", "_")
    return f"{method}_{rid}"


__all__ = ["schema_minimal", "caching_headers", "path_params", "operation_id"]
