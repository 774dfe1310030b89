"""
Core modules for Academic Workflow.

This package contains provider pricing, usage and budget tracking,
the failover router, and the error taxonomy shared by every component.
"""
