"""
Sales app for the retail back-office.

Completed sales are the source documents that returns are raised against.
"""
