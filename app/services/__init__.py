# ==== SERVICES PACKAGE ==== #

"""
Services package for order lifecycle and budget settlement logic.

This package contains pricing and cutoff evaluation, budget and ledger
primitives, interactive order management and freezing, and the services
behind the daily settlement, order generation and subscription renewal jobs.
"""
