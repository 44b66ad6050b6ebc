"""Declarative registry of documented endpoints.

Order here is the order paths appear in the generated document.
"""
from typing import Dict, List, Tuple

# Component schemas: (name, required properties)
SCHEMAS: List[Tuple[str, List[str]]] = [
    ("ServiceRequest", ["id", "track_number", "status"]),
    ("StatusLogEntry", ["status", "updated_by", "updated_at"]),
    ("EstimateItem", ["item", "harga", "qty", "total"]),
    ("DpPayment", ["id", "amount", "status"]),
    ("WorkLogEntry", ["id", "description", "author_email"]),
    ("CustomerLogEntry", ["id", "author"]),
    ("MediaAsset", ["id", "field", "url", "public_id"]),
    ("Branch", ["id", "name"]),
    ("User", ["id", "email", "role", "approved"]),
    ("AuditLog", ["id", "action"]),
]

# Each entry: path, method, summary, required permission (None = anonymous), kind
#   kind: "list" (paginated + cached), "record" (ETag guarded), "write" (If-Match aware), "plain"
ROUTES: List[Dict[str, object]] = [
    {"path": "/iam/auth/login", "method": "post", "summary": "Login", "perm": None, "kind": "plain"},
    {"path": "/iam/auth/register", "method": "post", "summary": "Self registration (pending approval)", "perm": None, "kind": "plain"},
    {"path": "/iam/auth/me", "method": "get", "summary": "Current user", "perm": "", "kind": "plain"},
    {"path": "/iam/users", "method": "get", "summary": "List users", "perm": "ADMIN.USER.MANAGE", "kind": "list", "schema": "User", "sort": "SortUsersParam"},
    {"path": "/iam/users/{user_id}/approve", "method": "post", "summary": "Approve account", "perm": "ADMIN.USER.MANAGE", "kind": "plain"},
    {"path": "/iam/users/{user_id}/role", "method": "put", "summary": "Set role", "perm": "ADMIN.USER.MANAGE", "kind": "plain"},
    {"path": "/iam/users/{user_id}/branch", "method": "put", "summary": "Bind branch", "perm": "ADMIN.USER.MANAGE", "kind": "plain"},
    {"path": "/service-requests", "method": "post", "summary": "Internal intake", "perm": "SR.CREATE", "kind": "plain"},
    {"path": "/service-requests", "method": "get", "summary": "List service requests", "perm": "SR.READ", "kind": "list", "schema": "ServiceRequest", "sort": "SortServiceRequestsParam"},
    {"path": "/service-requests/{request_id}", "method": "get", "summary": "Service request detail", "perm": "SR.READ", "kind": "record", "schema": "ServiceRequest"},
    {"path": "/service-requests/{request_id}", "method": "patch", "summary": "Edit customer/device fields", "perm": "SR.UPDATE", "kind": "write"},
    {"path": "/service-requests/{request_id}", "method": "delete", "summary": "Delete service request", "perm": "SR.DELETE", "kind": "write"},
    {"path": "/service-requests/{request_id}/status", "method": "post", "summary": "Update status (appends log entry)", "perm": "SR.STATUS", "kind": "write"},
    {"path": "/service-requests/{request_id}/status-log", "method": "get", "summary": "Status history", "perm": "SR.READ", "kind": "plain"},
    {"path": "/service-requests/{request_id}/estimate", "method": "put", "summary": "Replace estimate", "perm": "SR.ESTIMATE", "kind": "write"},
    {"path": "/service-requests/{request_id}/technicians", "method": "put", "summary": "Assign technicians", "perm": "SR.ASSIGN", "kind": "write"},
    {"path": "/service-requests/{request_id}/technicians/candidates", "method": "get", "summary": "Assignable technicians", "perm": "SR.ASSIGN", "kind": "plain"},
    {"path": "/service-requests/{request_id}/work-log", "method": "get", "summary": "Work log", "perm": "SR.READ", "kind": "plain"},
    {"path": "/service-requests/{request_id}/work-log", "method": "post", "summary": "Add work log entry", "perm": "SR.WORKLOG", "kind": "write"},
    {"path": "/service-requests/{request_id}/work-log/{entry_id}", "method": "delete", "summary": "Remove work log entry", "perm": "SR.WORKLOG", "kind": "write"},
    {"path": "/service-requests/{request_id}/customer-log", "method": "get", "summary": "Customer log", "perm": "SR.READ", "kind": "plain"},
    {"path": "/service-requests/{request_id}/customer-log", "method": "post", "summary": "Add customer log entry", "perm": "SR.UPDATE", "kind": "plain"},
    {"path": "/service-requests/{request_id}/media/{field}", "method": "post", "summary": "Upload request media", "perm": "SR.MEDIA", "kind": "write"},
    {"path": "/service-requests/{request_id}/media/{asset_id}", "method": "delete", "summary": "Remove request media", "perm": "SR.MEDIA", "kind": "write"},
    {"path": "/service-requests/{request_id}/public-view", "method": "post", "summary": "Rotate public link", "perm": "SR.UPDATE", "kind": "write"},
    {"path": "/service-requests/{request_id}/dp-payments", "method": "get", "summary": "List down payments", "perm": "DP.READ", "kind": "plain"},
    {"path": "/service-requests/{request_id}/dp-payments", "method": "post", "summary": "Submit down payment claim", "perm": "DP.SUBMIT", "kind": "write", "idempotent": True},
    {"path": "/service-requests/{request_id}/dp-payments/{payment_id}/approve", "method": "post", "summary": "Approve claim", "perm": "DP.APPROVE", "kind": "write"},
    {"path": "/service-requests/{request_id}/dp-payments/{payment_id}/reject", "method": "post", "summary": "Reject claim", "perm": "DP.APPROVE", "kind": "write"},
    {"path": "/service-requests/{request_id}/dp-payments/{payment_id}", "method": "delete", "summary": "Delete claim", "perm": "DP.DELETE", "kind": "write"},
    {"path": "/public/intake", "method": "post", "summary": "Customer intake", "perm": None, "kind": "plain"},
    {"path": "/public/lookup", "method": "get", "summary": "Find public link by track number or phone", "perm": None, "kind": "plain"},
    {"path": "/public/{token}", "method": "get", "summary": "Public request view", "perm": None, "kind": "record"},
    {"path": "/public/{token}/dp-payments", "method": "post", "summary": "Customer down payment claim", "perm": None, "kind": "plain", "idempotent": True},
    {"path": "/public/{token}/customer-log", "method": "get", "summary": "Customer log", "perm": None, "kind": "plain"},
    {"path": "/public/{token}/customer-log", "method": "post", "summary": "Customer comment", "perm": None, "kind": "plain"},
    {"path": "/media/upload", "method": "post", "summary": "Upload file to media host", "perm": "SR.MEDIA", "kind": "plain"},
    {"path": "/media/delete", "method": "post", "summary": "Delete file from media host", "perm": "SR.MEDIA", "kind": "plain"},
    {"path": "/receipts/{request_id}", "method": "get", "summary": "Printable receipt (HTML)", "perm": "SR.READ", "kind": "plain", "html": True},
    {"path": "/branches", "method": "get", "summary": "List branches", "perm": "BRANCH.READ", "kind": "plain"},
    {"path": "/branches", "method": "post", "summary": "Create branch", "perm": "BRANCH.MANAGE", "kind": "plain"},
    {"path": "/branches/{branch_id}/manager", "method": "put", "summary": "Set branch manager", "perm": "BRANCH.MANAGE", "kind": "plain"},
    {"path": "/branches/{branch_id}", "method": "delete", "summary": "Delete branch", "perm": "BRANCH.MANAGE", "kind": "plain"},
    {"path": "/settings/security", "method": "get", "summary": "Security settings", "perm": None, "kind": "plain"},
    {"path": "/settings/security", "method": "put", "summary": "Update security settings", "perm": "ADMIN.SETTINGS.MANAGE", "kind": "plain"},
    {"path": "/admin/logs", "method": "get", "summary": "Audit trail", "perm": "ADMIN.LOGS.READ", "kind": "list", "schema": "AuditLog"},
    {"path": "/reports/summary", "method": "get", "summary": "Status and money summary", "perm": "RPT.READ", "kind": "record"},
]

SORT_DETAILS = {
    "SortServiceRequestsParam": "Multi-field sort (created_at,updated_at,track_number,nama,status,total_biaya,id). Prefix - for desc",
    "SortUsersParam": "Multi-field sort (id,name,email,role). Prefix - for desc",
}

__all__ = [
    "SCHEMAS",
    "ROUTES",
    "SORT_DETAILS",
]
