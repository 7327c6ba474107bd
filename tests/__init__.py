"""
Test Suite for Rapprochement

Test Structure:
- fixtures/: Synthetic transactions, invoices and export files
- unit/: Unit tests mirroring src/ package structure
- integration/: Configuration, CLI and full reconciliation cycle tests

Test Data:
All suppliers, amounts and ids are synthetic.
"""
