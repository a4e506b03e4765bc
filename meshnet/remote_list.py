"""A local cache of the addresses a remote host can be reached at.

It holds lighthouse query replies, host update notifications and locally
learned addresses, and produces a deduplicated, sorted list from them.
"""

from __future__ import annotations

import ipaddress
import threading
from dataclasses import dataclass, field
from typing import Callable, Dict, Iterable, Iterator, List, Optional, Sequence, Tuple, Union

IPAddress = Union[ipaddress.IPv4Address, ipaddress.IPv6Address]
IPNetwork = Union[ipaddress.IPv4Network, ipaddress.IPv6Network]
VpnIpLike = Union[int, str, ipaddress.IPv4Address]

# Most addresses kept per owner in a reported list.
MAX_REMOTES = 10

_PRIVATE_BLOCKS = (
    ipaddress.ip_network("10.0.0.0/8"),
    ipaddress.ip_network("172.16.0.0/12"),
    ipaddress.ip_network("192.168.0.0/16"),
)


@dataclass(frozen=True)
class Addr:
    """An underlay udp address: an ip and a port."""

    ip: IPAddress
    port: int

    def __post_init__(self) -> None:
        if not isinstance(self.ip, (ipaddress.IPv4Address, ipaddress.IPv6Address)):
            object.__setattr__(self, "ip", ipaddress.ip_address(self.ip))

    def __str__(self) -> str:
        if self.ip.version == 6:
            return f"[{self.ip}]:{self.port}"
        return f"{self.ip}:{self.port}"


@dataclass
class Cache:
    """Human friendly view of what one owner told us; may hold duplicates and blocked addresses."""

    learned: List[Addr] = field(default_factory=list)
    reported: List[Addr] = field(default_factory=list)
    relay: List[ipaddress.IPv4Address] = field(default_factory=list)


@dataclass
class _FamilyCache:
    learned: Optional[Addr] = None
    reported: List[Addr] = field(default_factory=list)


@dataclass
class _OwnerCache:
    v4: Optional[_FamilyCache] = None
    v6: Optional[_FamilyCache] = None
    relay: Optional[List[ipaddress.IPv4Address]] = None


CheckFunc = Callable[[ipaddress.IPv4Address, Addr], bool]


def _vpn_ip(value: VpnIpLike) -> ipaddress.IPv4Address:
    if isinstance(value, ipaddress.IPv4Address):
        return value
    return ipaddress.IPv4Address(value)


def _as_v4(ip: IPAddress) -> Optional[ipaddress.IPv4Address]:
    """Return the ipv4 form of ``ip``, including v4-mapped ipv6, or None."""
    if isinstance(ip, ipaddress.IPv4Address):
        return ip
    return ip.ipv4_mapped


def is_preferred(ip: IPAddress, preferred_ranges: Iterable[IPNetwork]) -> bool:
    """True when ``ip`` is inside any of the preferred ranges."""
    v4 = _as_v4(ip)
    for network in preferred_ranges:
        candidate = v4 if network.version == 4 else ip
        if candidate is not None and candidate.version == network.version and candidate in network:
            return True
    return False


def is_private_ip(ip: IPAddress) -> bool:
    """True when ``ip`` is in an rfc 1918 private ipv4 range."""
    v4 = _as_v4(ip)
    return v4 is not None and any(v4 in block for block in _PRIVATE_BLOCKS)


class RemoteList:
    """Thread-safe set of known remote addresses for one host."""

    def __init__(self) -> None:
        self._lock = threading.RLock()
        self._addrs: List[Addr] = []
        self._relays: List[ipaddress.IPv4Address] = []
        self._cache: Dict[ipaddress.IPv4Address, _OwnerCache] = {}
        self._bad_remotes: List[Addr] = []
        self._should_rebuild = False

    @property
    def relays(self) -> List[ipaddress.IPv4Address]:
        """Relay vpn ips gathered by the last rebuild."""
        with self._lock:
            return list(self._relays)

    def length(self, preferred_ranges: Sequence[IPNetwork]) -> int:
        """Size of the deduplicated address list."""
        with self._lock:
            self.rebuild(preferred_ranges)
            return len(self._addrs)

    def iter_addrs(self, preferred_ranges: Sequence[IPNetwork]) -> Iterator[Tuple[Addr, bool]]:
        """Yield each deduplicated address with whether it is preferred."""
        with self._lock:
            self.rebuild(preferred_ranges)
            snapshot = list(self._addrs)
        for addr in snapshot:
            yield addr, is_preferred(addr.ip, preferred_ranges)

    def copy_addrs(self, preferred_ranges: Sequence[IPNetwork]) -> List[Addr]:
        """A copy of the deduplicated, sorted address list."""
        with self._lock:
            self.rebuild(preferred_ranges)
            return list(self._addrs)

    def learn_remote(self, owner: VpnIpLike, addr: Addr) -> None:
        """Set the learned address for ``owner``."""
        owner_ip = _vpn_ip(owner)
        with self._lock:
            v4 = _as_v4(addr.ip)
            self._should_rebuild = True
            if v4 is not None:
                self._family(owner_ip, 4).learned = Addr(v4, addr.port)
            else:
                self._family(owner_ip, 6).learned = addr

    def copy_cache(self) -> Dict[str, Cache]:
        """The cache keyed by owner vpn ip string."""
        with self._lock:
            result: Dict[str, Cache] = {}
            for owner, entry in self._cache.items():
                view = result.setdefault(str(owner), Cache())
                for family in (entry.v4, entry.v6):
                    if family is None:
                        continue
                    if family.learned is not None:
                        view.learned.append(family.learned)
                    view.reported.extend(family.reported)
                if entry.relay is not None:
                    view.relay.extend(entry.relay)
            return result

    def block_remote(self, bad: Optional[Addr]) -> None:
        """Exclude ``bad`` from the deduplicated address list."""
        if bad is None:
            # relays can have no udp address
            return
        with self._lock:
            if bad in self._bad_remotes:
                return
            self._bad_remotes.append(bad)
            self._should_rebuild = True

    def copy_blocked_remotes(self) -> List[Addr]:
        """A copy of the blocked addresses."""
        with self._lock:
            return list(self._bad_remotes)

    def reset_blocked_remotes(self) -> None:
        """Forget all blocked addresses."""
        with self._lock:
            self._bad_remotes = []

    def rebuild(self, preferred_ranges: Sequence[IPNetwork]) -> None:
        """Recollect the address list if the cache changed, then re-sort it."""
        with self._lock:
            if self._should_rebuild:
                self._collect()
                self._should_rebuild = False
            # Always re-sort, the preferred ranges may have changed.
            self._sort(preferred_ranges)

    def set_v4(self, owner: VpnIpLike, vpn_ip: VpnIpLike, to: Sequence[Addr], check: CheckFunc) -> None:
        """Replace the reported ipv4 list for ``owner`` with the entries of ``to`` that pass ``check``."""
        self._set_reported(owner, vpn_ip, to, check, 4)

    def set_v6(self, owner: VpnIpLike, vpn_ip: VpnIpLike, to: Sequence[Addr], check: CheckFunc) -> None:
        """Replace the reported ipv6 list for ``owner`` with the entries of ``to`` that pass ``check``."""
        self._set_reported(owner, vpn_ip, to, check, 6)

    def set_relay(self, owner: VpnIpLike, vpn_ip: VpnIpLike, to: Sequence[VpnIpLike]) -> None:
        """Replace the relay list for ``owner``."""
        owner_ip = _vpn_ip(owner)
        with self._lock:
            self._should_rebuild = True
            entry = self._cache.setdefault(owner_ip, _OwnerCache())
            entry.relay = [_vpn_ip(v) for v in list(to)[:MAX_REMOTES]]

    def prepend_v4(self, owner: VpnIpLike, to: Addr) -> None:
        """Put ``to`` at the front of the reported ipv4 list for ``owner``."""
        self._prepend(owner, to, 4)

    def prepend_v6(self, owner: VpnIpLike, to: Addr) -> None:
        """Put ``to`` at the front of the reported ipv6 list for ``owner``."""
        self._prepend(owner, to, 6)

    def _set_reported(
        self, owner: VpnIpLike, vpn_ip: VpnIpLike, to: Sequence[Addr], check: CheckFunc, version: int
    ) -> None:
        owner_ip = _vpn_ip(owner)
        target = _vpn_ip(vpn_ip)
        with self._lock:
            self._should_rebuild = True
            family = self._family(owner_ip, version)
            family.reported = [a for a in list(to)[:MAX_REMOTES] if check(target, a)]

    def _prepend(self, owner: VpnIpLike, to: Addr, version: int) -> None:
        owner_ip = _vpn_ip(owner)
        with self._lock:
            self._should_rebuild = True
            family = self._family(owner_ip, version)
            family.reported = [to, *family.reported][:MAX_REMOTES]

    def _family(self, owner: ipaddress.IPv4Address, version: int) -> _FamilyCache:
        entry = self._cache.setdefault(owner, _OwnerCache())
        if version == 4:
            if entry.v4 is None:
                entry.v4 = _FamilyCache()
            return entry.v4
        if entry.v6 is None:
            entry.v6 = _FamilyCache()
        return entry.v6

    def _collect(self) -> None:
        addrs: List[Addr] = []
        relays: List[ipaddress.IPv4Address] = []
        for entry in self._cache.values():
            for family in (entry.v4, entry.v6):
                if family is None:
                    continue
                candidates = ([family.learned] if family.learned is not None else []) + family.reported
                addrs.extend(a for a in candidates if a not in self._bad_remotes)
            if entry.relay is not None:
                relays.extend(entry.relay)
        self._addrs = addrs
        self._relays = relays

    def _sort(self, preferred_ranges: Sequence[IPNetwork]) -> None:
        if len(self._addrs) < 2:
            return

        def key(addr: Addr) -> tuple:
            v4 = _as_v4(addr.ip)
            return (
                not is_preferred(addr.ip, preferred_ranges),
                v4 is not None,
                v4 is not None and is_private_ip(v4),
                (v4 or addr.ip).packed,
                addr.port,
            )

        ordered = sorted(self._addrs, key=key)
        deduped: List[Addr] = [ordered[0]]
        for addr in ordered[1:]:
            if addr != deduped[-1]:
                deduped.append(addr)
        self._addrs = deduped