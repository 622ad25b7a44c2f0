# ==== BUSINESS LOGIC PACKAGE ==== #

"""
Business logic package for domain rules and policies.

This package contains the order status enumerations, the order state machine,
the error taxonomy and the combo pricing policy consumed by the order
services and background jobs.
"""
