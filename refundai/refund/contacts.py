"""Support contacts offered alongside a generated email.

Addresses are guessed from the company domain; phone numbers come from
fixed per-country tables.
"""

from dataclasses import dataclass, field

from .models import PremiumContact

_MAILBOXES = ("support", "help", "refunds", "contact", "customerservice")

_PHONES: dict[str, list[str]] = {
    "US": ["+1 800 123 4567", "+1 415 555 0101"],
    "CA": ["+1 800 123 4567", "+1 415 555 0101"],
    "FR": ["+33 1 23 45 67 89", "+33 9 70 00 00 00"],
    "GB": ["+44 20 1234 5678"],
    "DE": ["+49 30 123456"],
    "ES": ["+34 91 123 45 67"],
    "IT": ["+39 02 1234 5678"],
}
_DEFAULT_PHONES = ["+1 800 000 0000"]

_PREMIUM_MASKS: dict[str, list[str]] = {
    "FR": ["+33 •• •• •• •• 89", "+33 •• •• •• •• 12"],
    "US": ["+1 ••• ••• ••01", "+1 ••• ••• ••22"],
    "CA": ["+1 ••• ••• ••01", "+1 ••• ••• ••22"],
}
_DEFAULT_PREMIUM_MASKS = ["+44 •• •• •• •• 78"]


@dataclass
class EmailContacts:
    """Best guess support address, alternatives and contact forms."""

    best_email: str
    ranked: list[str]
    forms: list[str]
    links: list[str] = field(default_factory=list)


def email_fallbacks(domain: str) -> EmailContacts:
    """Guess support contacts for a company domain.

    Args:
        domain: Normalized company domain, e.g. ``amazon.com``.

    Returns:
        ``support@`` as the best address, the other common mailboxes
        ranked after it, and the usual contact page URL.
    """
    d = domain.lower()
    addresses = [f"{box}@{d}" for box in _MAILBOXES]
    return EmailContacts(
        best_email=addresses[0],
        ranked=addresses[1:],
        forms=[f"https://www.{d}/contact"],
    )


def phones_for_country(country: str) -> list[str]:
    """Support phone numbers for a country code."""
    return list(_PHONES.get(country.upper(), _DEFAULT_PHONES))


def premium_masks(country: str) -> list[PremiumContact]:
    """Masked premium contacts for a country code."""
    masks = _PREMIUM_MASKS.get(country.upper(), _DEFAULT_PREMIUM_MASKS)
    return [PremiumContact(phone_masked=mask) for mask in masks]
