"""Tunnel routes read from configuration, and lookup of the most specific one."""

from __future__ import annotations

import ipaddress
import logging
import re
import sys
from dataclasses import dataclass
from typing import Any, Dict, List, Mapping, Optional, Sequence, Union

from ..punchy import _lookup

logger = logging.getLogger(__name__)

IPAddress = Union[ipaddress.IPv4Address, ipaddress.IPv6Address]
IPNetwork = Union[ipaddress.IPv4Network, ipaddress.IPv6Network]

MIN_MTU = 500
_MAX_INT32 = 2**31 - 1
_MIN_INT32 = -(2**31)
_INTEGER = re.compile(r"[+-]?[0-9]+")


class RouteError(ValueError):
    """A route entry in the configuration is missing or malformed."""


@dataclass
class Route:
    """One route installed on the tunnel device."""

    mtu: int = 0
    metric: int = 0
    cidr: Optional[IPNetwork] = None
    via: Optional[IPAddress] = None


def _to_address(ip: Union[int, str, IPAddress]) -> IPAddress:
    if isinstance(ip, (ipaddress.IPv4Address, ipaddress.IPv6Address)):
        return ip
    if isinstance(ip, int):
        return ipaddress.IPv4Address(ip)
    return ipaddress.ip_address(ip)


class RouteTree:
    """Maps networks to values and finds the value of the longest matching prefix."""

    def __init__(self) -> None:
        self._entries: Dict[IPNetwork, Any] = {}

    def add(self, network: Union[str, IPNetwork], value: Any) -> None:
        """Associate ``value`` with ``network``, replacing any earlier value for it."""
        if isinstance(network, str):
            network = ipaddress.ip_network(network, strict=False)
        self._entries[network] = value

    def most_specific_contains(self, ip: Union[int, str, IPAddress]) -> Any:
        """Value of the narrowest network holding ``ip``, or None when none does."""
        addr = _to_address(ip)
        best: Any = None
        best_len = -1
        for network, value in self._entries.items():
            if network.version == addr.version and addr in network and network.prefixlen > best_len:
                best, best_len = value, network.prefixlen
        return best


def _atoi(value: Any) -> int:
    if isinstance(value, int) and not isinstance(value, bool):
        return value
    if isinstance(value, str) and _INTEGER.fullmatch(value):
        return int(value)
    raise ValueError(f"invalid syntax: {value!r}")


def _parse_int32(value: Any) -> int:
    number = _atoi(value)
    if isinstance(value, str) and not _MIN_INT32 <= number <= _MAX_INT32:
        raise ValueError(f"value out of range: {value!r}")
    return number


def _parse_cidr(text: str) -> IPNetwork:
    address, sep, prefix = text.partition("/")
    if not sep or not prefix.isascii() or not prefix.isdigit():
        raise ValueError(f"invalid CIDR address: {text}")
    try:
        return ipaddress.ip_network(f"{address}/{int(prefix)}", strict=False)
    except ValueError:
        raise ValueError(f"invalid CIDR address: {text}") from None


def _route_entries(settings: Mapping[str, Any], key: str) -> Sequence[Any]:
    raw = _lookup(settings, key)
    if raw is None:
        return []
    if not isinstance(raw, (list, tuple)):
        raise RouteError(f"{key} is not an array")
    return raw


def ip_within(outer: IPNetwork, inner: IPNetwork) -> bool:
    """True when every address of the ipv4 network ``inner`` lies inside ``outer``."""
    if inner.version != 4 or outer.version != 4:
        return False
    return inner.network_address in outer and inner.broadcast_address in outer


def parse_routes(settings: Mapping[str, Any], network: IPNetwork) -> List[Route]:
    """Read ``tun.routes``; each must carry an mtu and lie within ``network``."""
    key = "tun.routes"
    routes: List[Route] = []
    for i, entry in enumerate(_route_entries(settings, key), 1):
        if not isinstance(entry, Mapping):
            raise RouteError(f"entry {i} in {key} is invalid")

        if "mtu" not in entry:
            raise RouteError(f"entry {i}.mtu in {key} is not present")
        try:
            mtu = _atoi(entry["mtu"])
        except ValueError as err:
            raise RouteError(f"entry {i}.mtu in {key} is not an integer: {err}") from None
        if mtu < MIN_MTU:
            raise RouteError(f"entry {i}.mtu in {key} is below {MIN_MTU}: {mtu}")

        if "route" not in entry:
            raise RouteError(f"entry {i}.route in {key} is not present")
        try:
            cidr = _parse_cidr(str(entry["route"]))
        except ValueError as err:
            raise RouteError(f"entry {i}.route in {key} failed to parse: {err}") from None

        if not ip_within(network, cidr):
            raise RouteError(
                f"entry {i}.route in {key} is not contained within the network attached to "
                f"the certificate; route: {cidr}, network: {network}"
            )
        routes.append(Route(mtu=mtu, cidr=cidr))
    return routes


def parse_unsafe_routes(settings: Mapping[str, Any], network: IPNetwork) -> List[Route]:
    """Read ``tun.unsafe_routes``; each needs a via and must lie outside ``network``."""
    key = "tun.unsafe_routes"
    routes: List[Route] = []
    for i, entry in enumerate(_route_entries(settings, key), 1):
        if not isinstance(entry, Mapping):
            raise RouteError(f"entry {i} in {key} is invalid")

        mtu = 0
        if "mtu" in entry:
            try:
                mtu = _atoi(entry["mtu"])
            except ValueError as err:
                raise RouteError(f"entry {i}.mtu in {key} is not an integer: {err}") from None
            if mtu != 0 and mtu < MIN_MTU:
                raise RouteError(f"entry {i}.mtu in {key} is below {MIN_MTU}: {mtu}")

        try:
            metric = _parse_int32(entry.get("metric", 0))
        except ValueError as err:
            raise RouteError(f"entry {i}.metric in {key} is not an integer: {err}") from None
        if metric < 0 or metric > _MAX_INT32:
            raise RouteError(
                f"entry {i}.metric in {key} is not in range (0-{_MAX_INT32}) : {metric}"
            )

        if "via" not in entry:
            raise RouteError(f"entry {i}.via in {key} is not present")
        raw_via = entry["via"]
        if not isinstance(raw_via, str):
            raise RouteError(
                f"entry {i}.via in {key} is not a string: found {type(raw_via).__name__}"
            )
        try:
            via: IPAddress = ipaddress.ip_address(raw_via)
        except ValueError:
            raise RouteError(f"entry {i}.via in {key} failed to parse address: {raw_via}") from None
        if isinstance(via, ipaddress.IPv6Address) and via.ipv4_mapped is not None:
            via = via.ipv4_mapped

        if "route" not in entry:
            raise RouteError(f"entry {i}.route in {key} is not present")
        try:
            cidr = _parse_cidr(str(entry["route"]))
        except ValueError as err:
            raise RouteError(f"entry {i}.route in {key} failed to parse: {err}") from None

        if ip_within(network, cidr):
            raise RouteError(
                f"entry {i}.route in {key} is contained within the network attached to "
                f"the certificate; route: {cidr}, network: {network}"
            )
        routes.append(Route(mtu=mtu, metric=metric, cidr=cidr, via=via))
    return routes


def make_route_tree(routes: Sequence[Route], allow_mtu: bool) -> RouteTree:
    """Build a lookup of the routes that go via another host."""
    tree = RouteTree()
    for route in routes:
        if not allow_mtu and route.mtu > 0:
            logger.warning("route MTU is not supported in %s: %s", sys.platform, route)
        if route.via is not None and route.cidr is not None:
            tree.add(route.cidr, route.via)
    return tree


def adv_mss(route: Route, default_mtu: int, max_mtu: int) -> int:
    """Advertised MSS for a route, or 0 when its MTU matches the device MTU."""
    mtu = route.mtu or default_mtu
    if mtu != max_mtu:
        return mtu - 40
    return 0