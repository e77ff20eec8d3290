"""Dealroom: negotiation and payment-release backend for brand/influencer deals."""

__version__ = "0.1.0"
