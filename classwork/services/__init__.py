"""
Classwork Services
==================

Synchronization, aggregation and export services.

Services:
- answer_cache: Local answer cache (durable key/value store)
- remote_writer: Debounced merge-writes of answers
- gatherer: Draft/submission tree from the local cache
- documents: Submission document model and document stores
- teacher_view: Teacher aggregation view and live dashboard
- print_export: Print-ready HTML
- definitions: Assignment definition loading and fetch
- legacy: Legacy submission endpoint client and archive
- submitter: One-shot final submission
"""

# Services are imported directly when needed to avoid circular imports
# Example: from classwork.services.gatherer import DraftGatherer

__all__ = [
    'answer_cache',
    'remote_writer',
    'gatherer',
    'documents',
    'teacher_view',
    'print_export',
    'definitions',
    'legacy',
    'submitter',
]
