"""Resolver panel validation.

The panel is configuration, so every entry is checked before use: only
public IP literals are accepted. Hostnames are refused outright because
resolving them would itself need a trusted resolver.
"""

from __future__ import annotations

import ipaddress
import logging
from collections.abc import Iterable
from dataclasses import dataclass

from ..core.config import CoreSettings
from ..core.exceptions import ConfigException, ValidationException

logger = logging.getLogger(__name__)


def validate_resolver_address(address: str) -> str:
    """Return the canonical form of a public resolver address.

    Raises:
        ValidationException: For hostnames and any non-public range.
    """
    try:
        ip = ipaddress.ip_address(address.strip())
    except (ValueError, AttributeError) as e:
        raise ValidationException("Resolver must be an IP address literal", field="resolver", value=address) from e

    if ip.is_loopback:
        reason = "loopback"
    elif ip.is_private:
        reason = "private"
    elif ip.is_link_local:
        reason = "link-local"
    elif ip.is_multicast:
        reason = "multicast"
    elif ip.is_reserved:
        reason = "reserved"
    elif ip.is_unspecified:
        reason = "unspecified"
    else:
        return str(ip)

    raise ValidationException(f"Resolver address is {reason}", field="resolver", value=address)


@dataclass(frozen=True)
class ResolverPanel:
    """A validated set of independent public resolvers and its quorum."""

    addresses: tuple[str, ...]
    quorum: int

    @property
    def size(self) -> int:
        return len(self.addresses)

    @classmethod
    def build(
        cls,
        addresses: Iterable[str],
        min_size: int = 4,
        quorum: int | None = None,
    ) -> ResolverPanel:
        """Validate addresses and derive the quorum.

        ``quorum`` defaults to a strict majority and may be raised, never
        lowered to half or below.
        """
        validated: list[str] = []
        for address in addresses:
            canonical = validate_resolver_address(address)
            if canonical in validated:
                raise ConfigException(f"Duplicate resolver {canonical}", {"resolver": canonical})
            validated.append(canonical)

        if len(validated) < min_size:
            raise ConfigException(
                f"Resolver panel needs at least {min_size} resolvers, got {len(validated)}",
                {"resolvers": validated},
            )

        majority = len(validated) // 2 + 1
        if quorum is None:
            quorum = majority
        elif quorum < majority or quorum > len(validated):
            raise ConfigException(
                f"Quorum {quorum} must be between {majority} and {len(validated)}",
                {"quorum": quorum, "panel_size": len(validated)},
            )

        logger.debug(f"Resolver panel {validated} with quorum {quorum}")
        return cls(addresses=tuple(validated), quorum=quorum)

    @classmethod
    def from_settings(cls, settings: CoreSettings) -> ResolverPanel:
        return cls.build(settings.dns_resolvers, settings.dns_min_resolvers, settings.dns_quorum)
