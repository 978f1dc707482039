"""Versioned restore constants.

The canonical table order, the bucket allow-list, and the declared
foreign-key map travel together under ``RESTORE_ORDER_VERSION``.  Adding a
live table or bucket means extending these lists and bumping the version;
restore logic never references individual table names.

``DEFAULT_TABLE_ORDER`` is a topological order of ``DEFAULT_FOREIGN_KEYS``:
organization/permission tables, then profile/role/security tables, the
document/folder graph, financial and cost-center entities, calendar,
communication and meeting entities, tasks, and finally insurance,
notification, integration-token, schedule, and audit tables.
"""

RESTORE_ORDER_VERSION = "3"

DEFAULT_TABLE_ORDER: tuple[str, ...] = (
    # Organizations and permissions
    "organizations",
    "organization_permissions",
    # Profiles, roles, security
    "profiles",
    "user_roles",
    "security_settings",
    "letterhead_settings",
    "user_public_keys",
    # Document / folder graph
    "document_folders",
    "documents",
    "document_shares",
    "document_signatures",
    "document_tags",
    "document_tag_assignments",
    "document_templates",
    "document_activity",
    "folder_shares",
    # Financial and cost-center entities
    "contacts",
    "contracts",
    "cost_centers",
    "carrier_rates",
    "declarations",
    "creditor_invoices",
    "creditor_invoice_approvals",
    "budget_plans",
    "budget_forecasts",
    "budget_alerts",
    # Calendar, communication, meetings
    "calendar_events",
    "calendar_event_participants",
    "communication_threads",
    "thread_participants",
    "communication_messages",
    "communication_documents",
    "meeting_protocols",
    "scheduled_meetings",
    "meeting_participants",
    "meeting_recordings",
    "meeting_chat_messages",
    # Tasks
    "tasks",
    "task_participants",
    # Insurance, notifications, integrations, schedules, audit
    "social_insurance_records",
    "notifications",
    "notification_preferences",
    "bexio_tokens",
    "backup_schedules",
    "audit_logs",
    "opex_expenses",
    "opex_receipts",
)

DEFAULT_BUCKETS: tuple[str, ...] = (
    "documents",
    "receipts",
    "creditor-invoices",
    "signatures",
    "avatars",
    "meeting-recordings",
)

# child table -> tables it references (self references omitted)
DEFAULT_FOREIGN_KEYS: dict[str, frozenset[str]] = {
    "organizations": frozenset(),
    "organization_permissions": frozenset({"organizations"}),
    "profiles": frozenset({"organizations"}),
    "user_roles": frozenset({"profiles"}),
    "security_settings": frozenset({"profiles"}),
    "letterhead_settings": frozenset({"organizations"}),
    "user_public_keys": frozenset({"profiles"}),
    "document_folders": frozenset({"organizations", "profiles"}),
    "documents": frozenset({"organizations", "profiles", "document_folders"}),
    "document_shares": frozenset({"documents", "profiles"}),
    "document_signatures": frozenset({"documents", "profiles"}),
    "document_tags": frozenset({"organizations"}),
    "document_tag_assignments": frozenset({"documents", "document_tags"}),
    "document_templates": frozenset({"organizations", "profiles"}),
    "document_activity": frozenset({"documents", "profiles"}),
    "folder_shares": frozenset({"document_folders", "profiles"}),
    "contacts": frozenset({"organizations"}),
    "contracts": frozenset({"contacts", "documents"}),
    "cost_centers": frozenset({"organizations"}),
    "carrier_rates": frozenset({"organizations"}),
    "declarations": frozenset({"profiles", "documents"}),
    "creditor_invoices": frozenset({"contacts", "cost_centers", "documents"}),
    "creditor_invoice_approvals": frozenset({"creditor_invoices", "profiles"}),
    "budget_plans": frozenset({"cost_centers"}),
    "budget_forecasts": frozenset({"budget_plans"}),
    "budget_alerts": frozenset({"budget_plans"}),
    "calendar_events": frozenset({"profiles"}),
    "calendar_event_participants": frozenset({"calendar_events", "profiles"}),
    "communication_threads": frozenset({"organizations", "profiles"}),
    "thread_participants": frozenset({"communication_threads", "profiles"}),
    "communication_messages": frozenset({"communication_threads", "profiles"}),
    "communication_documents": frozenset({"communication_messages", "documents"}),
    "meeting_protocols": frozenset({"documents", "profiles"}),
    "scheduled_meetings": frozenset({"profiles", "meeting_protocols"}),
    "meeting_participants": frozenset({"scheduled_meetings", "profiles"}),
    "meeting_recordings": frozenset({"scheduled_meetings"}),
    "meeting_chat_messages": frozenset({"scheduled_meetings", "profiles"}),
    "tasks": frozenset({"profiles", "documents"}),
    "task_participants": frozenset({"tasks", "profiles"}),
    "social_insurance_records": frozenset({"profiles"}),
    "notifications": frozenset({"profiles"}),
    "notification_preferences": frozenset({"profiles"}),
    "bexio_tokens": frozenset({"profiles"}),
    "backup_schedules": frozenset({"profiles"}),
    "audit_logs": frozenset({"profiles"}),
    "opex_expenses": frozenset({"cost_centers", "profiles"}),
    "opex_receipts": frozenset({"opex_expenses"}),
}

DEFAULT_CONTENT_TYPE = "application/octet-stream"

CONTENT_TYPES: dict[str, str] = {
    "pdf": "application/pdf",
    "png": "image/png",
    "jpg": "image/jpeg",
    "jpeg": "image/jpeg",
    "gif": "image/gif",
    "webp": "image/webp",
    "doc": "application/msword",
    "docx": "application/vnd.openxmlformats-officedocument.wordprocessingml.document",
    "xls": "application/vnd.ms-excel",
    "xlsx": "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
    "csv": "text/csv",
    "txt": "text/plain",
    "json": "application/json",
    "mp4": "video/mp4",
    "webm": "video/webm",
    "mp3": "audio/mpeg",
}
