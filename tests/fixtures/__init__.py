"""
Test Fixtures and Utilities

Shared builders for synthetic transactions, invoices and bank/invoice
export files. All test data is synthetic.
"""
