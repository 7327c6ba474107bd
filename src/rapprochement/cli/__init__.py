"""
Command Line Interface Package

Unified CLI for the reconciliation engine.

Command Structure:
- rapprochement: Main entry point with utility commands (version, config)
- rapprochement reconcile: Import, run, review and statistics for a tenant
"""
