"""
IP Block List Service

Store-backed list of IP addresses and CIDR ranges that are redirected
without any tracking. The parsed list is cached with a TTL; changes made
through this service invalidate the cache immediately.
"""

import ipaddress
import logging
from datetime import datetime, timezone
from typing import List, Optional, Sequence, Union

from sqlalchemy import delete, select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.cache import TTLCache
from app.core.exceptions import DatabaseError, InvalidIPAddressError
from app.core.validators import parse_ip_or_network
from app.db.models import BlockedIP

logger = logging.getLogger(__name__)

BLOCKLIST_CACHE_KEY = "blocked_networks"

Network = Union[ipaddress.IPv4Network, ipaddress.IPv6Network]


class IPBlocklistService:
    """
    Service for checking and managing blocked IPs.

    Args:
        session: Async database session
        cache: Shared TTL cache owned by the application
    """

    def __init__(self, session: AsyncSession, cache: TTLCache):
        self.session = session
        self.cache = cache

    async def _load_networks(self) -> tuple:
        result = await self.session.execute(select(BlockedIP.ip_address))
        networks: List[Network] = []
        for value in result.scalars().all():
            try:
                networks.append(parse_ip_or_network(value))
            except InvalidIPAddressError:
                logger.warning(f"Ignoring malformed block list entry: {value!r}")
        return tuple(networks)

    async def get_blocked_networks(self) -> Sequence[Network]:
        return await self.cache.get_or_load(BLOCKLIST_CACHE_KEY, self._load_networks)

    async def is_blocked(self, ip_address: str) -> bool:
        """
        Check whether an address falls within any blocked address or range.

        Unparseable addresses (e.g. 'unknown') are never blocked. If the
        block list cannot be loaded the address is treated as not blocked.
        """
        try:
            address = ipaddress.ip_address(ip_address)
        except ValueError:
            return False

        try:
            networks = await self.get_blocked_networks()
        except (SQLAlchemyError, OSError) as e:
            logger.error(f"Failed to load IP block list: {e}", exc_info=True)
            return False

        return any(address.version == net.version and address in net for net in networks)

    async def block_ip(self, ip_or_range: str, reason: Optional[str] = None) -> BlockedIP:
        """
        Add an address or CIDR range to the block list (idempotent).

        Raises:
            InvalidIPAddressError: If the value is not an address or range
            DatabaseError: If the entry cannot be saved
        """
        network = parse_ip_or_network(ip_or_range)
        # Single addresses are stored bare, ranges in CIDR notation
        value = str(network.network_address) if network.num_addresses == 1 else str(network)

        existing = await self.session.execute(
            select(BlockedIP).where(BlockedIP.ip_address == value)
        )
        entry = existing.scalar_one_or_none()
        if entry:
            entry.reason = reason or entry.reason
        else:
            entry = BlockedIP(ip_address=value, reason=reason, blocked_at=datetime.now(timezone.utc))
            self.session.add(entry)

        try:
            await self.session.commit()
        except IntegrityError as e:
            await self.session.rollback()
            raise DatabaseError(f"Failed to block {value}", original_error=e)

        await self.session.refresh(entry)
        self.cache.invalidate(BLOCKLIST_CACHE_KEY)
        logger.info(f"Blocked IP entry {value} ({reason or 'no reason given'})")
        return entry

    async def unblock_ip(self, ip_or_range: str) -> bool:
        """
        Remove an entry from the block list.

        Returns:
            True if an entry was removed, False if none matched
        """
        network = parse_ip_or_network(ip_or_range)
        value = str(network.network_address) if network.num_addresses == 1 else str(network)

        result = await self.session.execute(
            delete(BlockedIP).where(BlockedIP.ip_address == value)
        )
        await self.session.commit()
        self.cache.invalidate(BLOCKLIST_CACHE_KEY)
        return result.rowcount > 0
