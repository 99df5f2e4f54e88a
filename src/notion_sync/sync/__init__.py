"""Notion -> Postgres sync layer.

Modules:
- type_mapping: property kind -> column type, identifier sanitizing, table naming
- schema: SchemaReconciler creates or additively alters the target table
- extract: decode a page's properties into column values
- content: ContentFlattener renders the page body, degrading to empty content
- writer: UpsertWriter does an idempotent full-row upsert keyed by notion_page_id
- orchestrator: one bounded batch per invocation over cursor/watermark state
- worker: SyncWorker invocation contract used by the API and the scripts
"""
