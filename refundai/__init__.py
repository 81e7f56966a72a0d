"""REFUND.AI refund request service.

Turns complaint/order details, optionally auto-filled from an OCR'd
receipt, into a ready-to-send refund request email generated by a
hosted LLM, with local fallbacks when remote services are unavailable.
"""

__version__ = "1.0.0"
