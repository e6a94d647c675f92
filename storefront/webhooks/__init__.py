"""Stripe webhook intake.

Each delivery is signature-verified, de-duplicated and applied to the store:
a completed checkout session decrements stock and records one order.
"""
