"""Normalization helpers for job, company and contact data."""

import re
import logging
from typing import Optional
from urllib.parse import urlparse
import phonenumbers

logger = logging.getLogger(__name__)


class NormalizationService:
    """Normalize and standardize incoming records."""

    @staticmethod
    def normalize_domain(domain: Optional[str]) -> Optional[str]:
        """
        Normalize a company domain.
        - Strip scheme, path, port and leading "www."
        - Lowercase
        """
        if not domain:
            return None

        value = domain.strip().lower()
        if not value:
            return None

        if "://" not in value:
            value = f"//{value}"
        try:
            host = urlparse(value).hostname or ""
        except ValueError:
            return None

        if host.startswith("www."):
            host = host[4:]

        return host.rstrip(".") or None

    @staticmethod
    def normalize_email(email: Optional[str]) -> Optional[str]:
        """Lowercase and strip an email address."""
        if not email:
            return None
        email = email.strip().lower()
        return email or None

    @staticmethod
    def normalize_person_name(name: Optional[str]) -> str:
        """Dedup form of a person's name: collapsed whitespace, lowercase."""
        if not name:
            return ""
        return " ".join(name.split()).lower()

    @staticmethod
    def normalize_phone(phone: Optional[str], default_region: str = "US") -> Optional[str]:
        """
        Normalize phone number to E.164 format.
        Returns the original value if parsing fails.
        """
        if not phone:
            return None

        try:
            cleaned = re.sub(r'[\s\-\(\)\.]', '', phone)
            parsed = phonenumbers.parse(cleaned, default_region)

            if phonenumbers.is_valid_number(parsed):
                return phonenumbers.format_number(
                    parsed,
                    phonenumbers.PhoneNumberFormat.E164
                )
        except phonenumbers.NumberParseException:
            logger.debug(f"Failed to parse phone number: {phone}")

        return phone

    @staticmethod
    def normalize_url(url: Optional[str]) -> Optional[str]:
        """Add https:// if missing and drop trailing slashes."""
        if not url:
            return None

        url = url.strip()
        if not url:
            return None

        if not url.startswith(('http://', 'https://')):
            url = f"https://{url}"

        return url.rstrip('/')


# Singleton instance
normalization_service = NormalizationService()
