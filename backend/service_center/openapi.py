"""Deterministic OpenAPI document built from `openapi_parts.constants.ROUTES`.

Status and down-payment state machines are exported as `x-transitions` so
clients can render the allowed next steps without hard-coding them.
"""
from typing import Any, Dict
from .constants.statuses import ALL_STATUSES, build_transition_graph
from .openapi_parts.constants import SCHEMAS, ROUTES, SORT_DETAILS
from .openapi_parts.helpers import schema_minimal, caching_headers, path_params, operation_id

__all__ = ["build_openapi_spec"]


def _list_op(route: Dict[str, Any]) -> Dict[str, Any]:
    params = [
        {"$ref": "#/components/parameters/LimitParam"},
        {"$ref": "#/components/parameters/OffsetParam"},
    ]
    if route.get("sort"):
        params.append({"$ref": f"#/components/parameters/{route['sort']}"})
    return {
        "parameters": params,
        "responses": {
            "200": {
                "description": "OK",
                "headers": caching_headers(),
                "content": {"application/json": {"schema": {
                    "type": "object",
                    "properties": {
                        "data": {"type": "array", "items": {"$ref": f"#/components/schemas/{route['schema']}"}},
                        "pagination": {"$ref": "#/components/schemas/Pagination"},
                    },
                }}},
            },
            "304": {"description": "Not Modified"},
            "400": {"$ref": "#/components/responses/BadRequest"},
        },
    }


def _record_op(route: Dict[str, Any]) -> Dict[str, Any]:
    ok: Dict[str, Any] = {"description": "OK", "headers": caching_headers()}
    if route.get("schema"):
        ok["content"] = {"application/json": {"schema": {"$ref": f"#/components/schemas/{route['schema']}"}}}
    return {"responses": {"200": ok, "304": {"description": "Not Modified"}, "404": {"$ref": "#/components/responses/NotFound"}}}


def _write_op(route: Dict[str, Any]) -> Dict[str, Any]:
    return {
        "parameters": [{"$ref": "#/components/parameters/IfMatchHeader"}],
        "responses": {
            "200": {"description": "OK", "headers": {"ETag": {"schema": {"type": "string"}}}},
            "400": {"$ref": "#/components/responses/BadRequest"},
            "409": {"$ref": "#/components/responses/Conflict"},
            "412": {"$ref": "#/components/responses/PreconditionFailed"},
        },
    }


def _plain_op(route: Dict[str, Any]) -> Dict[str, Any]:
    content_type = "text/html" if route.get("html") else "application/json"
    return {"responses": {"200": {"description": "OK", "content": {content_type: {}}},
                          "400": {"$ref": "#/components/responses/BadRequest"}}}


_BUILDERS = {"list": _list_op, "record": _record_op, "write": _write_op, "plain": _plain_op}


def build_openapi_spec() -> Dict[str, Any]:
    from .services.dp_payments import DP_FSM

    schemas: Dict[str, Any] = {name: schema_minimal(req) for name, req in SCHEMAS}
    graph = build_transition_graph()
    schemas["ServiceRequest"]["x-transitions"] = {s: sorted(graph.get(s, ())) for s in ALL_STATUSES}
    schemas["DpPayment"]["x-transitions"] = {s: sorted(n) for s, n in sorted(DP_FSM.graph.items())}
    schemas["Pagination"] = {
        "type": "object",
        "properties": {
            "total": {"type": "integer"},
            "limit": {"type": "integer"},
            "offset": {"type": "integer"},
            "returned": {"type": "integer"},
        },
        "required": ["total", "limit", "offset", "returned"],
    }
    schemas["Error"] = {
        "type": "object",
        "properties": {"error": {"type": "object", "properties": {
            "status": {"type": "integer"}, "title": {"type": "string"}, "detail": {"type": "string"},
            "errors": {"type": "array", "items": {"type": "string"}},
        }}},
        "required": ["error"],
    }

    parameters: Dict[str, Any] = {
        "LimitParam": {"name": "limit", "in": "query", "schema": {"type": "integer", "default": 50}},
        "OffsetParam": {"name": "offset", "in": "query", "schema": {"type": "integer", "default": 0}},
        "IfMatchHeader": {"name": "If-Match", "in": "header", "required": False, "schema": {"type": "string"}},
        "IdempotencyKeyHeader": {"name": "Idempotency-Key", "in": "header", "required": False, "schema": {"type": "string"}},
    }
    for pname, desc in SORT_DETAILS.items():
        parameters[pname] = {"name": "sort", "in": "query", "schema": {"type": "string"}, "description": desc}

    error_ref = {"application/json": {"schema": {"$ref": "#/components/schemas/Error"}}}
    components: Dict[str, Any] = {
        "schemas": schemas,
        "responses": {
            "NotFound": {"description": "Not Found", "content": error_ref},
            "BadRequest": {"description": "Bad Request", "content": error_ref},
            "Conflict": {"description": "Conflict", "content": error_ref},
            "PreconditionFailed": {"description": "Precondition Failed", "content": error_ref},
        },
        "securitySchemes": {"BearerAuth": {"type": "http", "scheme": "bearer", "bearerFormat": "JWT"}},
        "parameters": parameters,
    }

    paths: Dict[str, Any] = {}
    tags = set()
    for route in ROUTES:
        path, method = route["path"], route["method"]
        op = _BUILDERS[route["kind"]](route)
        op["summary"] = route["summary"]
        op["operationId"] = operation_id(method, path)
        tag = path.split("/")[1].replace("-", " ").title()
        op["tags"] = [tag]
        tags.add(tag)
        op["parameters"] = path_params(path) + op.get("parameters", [])
        if route.get("idempotent"):
            op["parameters"].append({"$ref": "#/components/parameters/IdempotencyKeyHeader"})
        if route["perm"] is None:
            op["security"] = []
        elif route["perm"]:
            op["x-required-permissions"] = [route["perm"]]
        paths.setdefault(path, {})[method] = op
        if route["kind"] in ("list", "record") and method == "get":
            head = {
                "summary": f"{route['summary']} (validators only)",
                "operationId": operation_id("head", path),
                "tags": [tag],
                "parameters": list(op["parameters"]),
                "responses": {"200": {"description": "Headers only", "headers": caching_headers()},
                              "304": {"description": "Not Modified"}},
            }
            for key in ("security", "x-required-permissions"):
                if key in op:
                    head[key] = op[key]
            paths[path]["head"] = head

    return {
        "openapi": "3.0.3",
        "info": {"title": "Service Center API", "version": "0.1.0"},
        "paths": paths,
        "components": components,
        "security": [{"BearerAuth": []}],
        "tags": [{"name": n, "description": f"{n} endpoints"} for n in sorted(tags)],
    }
