"""Input validation for SubScout."""

import re
from typing import Optional, Tuple

from .errors import ErrorCodes, ErrorResponse, ValidationError


class DomainValidator:
    """Validate domain names."""

    # Dot-separated labels followed by an alphabetic TLD
    DOMAIN_PATTERN = re.compile(r'^(?!-)(?:[a-z0-9-]{1,63}\.)+[a-z]{2,63}$')

    SCHEME_PATTERN = re.compile(r'^https?://', re.IGNORECASE)

    MAX_LENGTH = 253

    @classmethod
    def clean(cls, domain: str) -> str:
        """Strip scheme, path, query, fragment and port; lowercase."""
        domain = (domain or "").strip()
        domain = cls.SCHEME_PATTERN.sub("", domain)

        domain = re.split(r'[/?#]', domain, maxsplit=1)[0]

        # Remove port
        domain = domain.split(':')[0]

        return domain.strip().lower()

    @classmethod
    def validate(cls, domain: str) -> Tuple[bool, Optional[ErrorResponse]]:
        """
        Validate an already cleaned domain name.

        Args:
            domain: Domain name to validate

        Returns:
            Tuple of (is_valid, error_response)
        """
        if not domain:
            return False, ErrorCodes.VALID_EMPTY_INPUT

        if len(domain) > cls.MAX_LENGTH:
            return False, ErrorCodes.VALID_DOMAIN_TOO_LONG

        if not re.match(r'^[a-z0-9.-]+$', domain):
            return False, ErrorCodes.with_details(
                ErrorCodes.VALID_INVALID_CHARACTERS,
                f"Domain '{domain}' contains invalid characters"
            )

        if '..' in domain:
            return False, ErrorCodes.with_details(
                ErrorCodes.VALID_INVALID_DOMAIN,
                "Domain cannot contain consecutive dots"
            )

        if domain.startswith('.') or domain.endswith('.'):
            return False, ErrorCodes.with_details(
                ErrorCodes.VALID_INVALID_DOMAIN,
                "Domain cannot start or end with a dot"
            )

        for label in domain.split('.'):
            if label.startswith('-') or label.endswith('-'):
                return False, ErrorCodes.with_details(
                    ErrorCodes.VALID_INVALID_DOMAIN,
                    f"Label '{label}' cannot start or end with hyphen"
                )

        if not cls.DOMAIN_PATTERN.match(domain):
            return False, ErrorCodes.with_details(
                ErrorCodes.VALID_INVALID_DOMAIN,
                f"'{domain}' is not a domain name with an alphabetic TLD"
            )

        return True, None


def validate_domain(raw: str) -> str:
    """
    Normalize and validate user input into a domain name.

    Raises:
        ValidationError: If the input is not a well-formed domain
    """
    domain = DomainValidator.clean(raw)
    is_valid, error = DomainValidator.validate(domain)
    if not is_valid:
        raise ValidationError(error)
    return domain

