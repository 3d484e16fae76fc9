"""
BidBase - South African government tender ingestion.

Fetches OCDS releases from the national eTenders feed, derives province,
industry and lifecycle status, and reconciles everything into a clean,
deduplicated tender store.
"""

__version__ = "0.1.0"
__app_name__ = "bidbase"
