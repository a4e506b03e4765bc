"""A tunnel device that carries no traffic but answers ICMP echo requests itself."""

from __future__ import annotations

import ipaddress
import logging
import struct
import threading
from collections import deque
from typing import Deque, Optional

logger = logging.getLogger(__name__)


def ip_checksum(data: bytes) -> int:
    """Internet checksum of ``data``: the ones' complement of its 16-bit word sum."""
    data = bytes(data)
    if len(data) % 2:
        data += b"\x00"
    total = sum(struct.unpack(f"!{len(data) // 2}H", data))
    while total >> 16:
        total = (total & 0xFFFF) + (total >> 16)
    return ~total & 0xFFFF


def pretty_packet(data: bytes) -> str:
    """Hex dump of ``data`` with an extra space between groups of eight bytes."""
    return "".join(
        (" " if i and i % 8 == 0 else "") + f"{byte:02x} " for i, byte in enumerate(data)
    )


class DisabledTun:
    """Stands in for a tunnel device when the tunnel is disabled."""

    name = "disabled"

    def __init__(self, cidr, queue_len: int, metrics_enabled: bool) -> None:
        self.cidr = cidr
        self._capacity = queue_len
        self._queue: Deque[bytes] = deque()
        self._cond = threading.Condition()
        self._closed = False
        self._metrics_enabled = metrics_enabled
        self.active = False
        self.tx = 0
        self.rx = 0

    def __enter__(self) -> "DisabledTun":
        return self

    def __exit__(self, *exc) -> None:
        self.close()

    def activate(self) -> None:
        """Mark the device as up; there is nothing else to configure."""
        self.active = True

    def route_for(self, ip) -> Optional[object]:
        """Validate ``ip`` and report that no route exists for it."""
        ipaddress.ip_address(ip)
        return None

    def read(self, size: int) -> bytes:
        """Block for the next queued reply; b"" once closed and drained.

        Raises ValueError when the reply is larger than ``size``.
        """
        with self._cond:
            while not self._queue and not self._closed:
                self._cond.wait()
            if not self._queue:
                return b""
            packet = self._queue.popleft()

        if len(packet) > size:
            raise ValueError(f"packet larger than mtu: {len(packet)} > {size} bytes")

        if self._metrics_enabled:
            self.tx += 1
        if logger.isEnabledFor(logging.DEBUG):
            logger.debug("Write payload raw=%s", pretty_packet(packet))
        return packet

    def _offer(self, packet: bytes) -> bool:
        with self._cond:
            if self._closed or len(self._queue) >= self._capacity:
                return False
            self._queue.append(packet)
            self._cond.notify()
            return True

    def handle_icmp_echo_request(self, packet: bytes) -> bool:
        """Queue an echo reply if ``packet`` is a simple ICMP echo request."""
        b = bytes(packet)
        if not (28 <= len(b) <= 9001 and b[0] == 0x45 and b[9] == 0x01 and b[20] == 0x08):
            return False
        # Fragmented packets are not supported
        if b[7] != 0 or b[6] & 0x2F:
            return False

        reply = bytearray(b)
        # Swap source and destination, then recompute the header checksum
        reply[12:16] = b[16:20]
        reply[16:20] = b[12:16]
        reply[10:12] = b"\x00\x00"
        reply[10:12] = ip_checksum(reply[:20]).to_bytes(2, "big")

        # Turn it into an echo reply and recompute the icmp checksum
        reply[20] = 0
        reply[22:24] = b"\x00\x00"
        reply[22:24] = ip_checksum(reply[20:]).to_bytes(2, "big")

        if not self._offer(bytes(reply)):
            logger.debug("tun_disabled: dropped ICMP Echo Reply response")
        return True

    def write(self, packet: bytes) -> int:
        """Accept a packet, answering it when it is an echo request."""
        if self._metrics_enabled:
            self.rx += 1

        if self.handle_icmp_echo_request(packet):
            if logger.isEnabledFor(logging.DEBUG):
                logger.debug(
                    "Disabled tun responded to ICMP Echo Request raw=%s", pretty_packet(packet)
                )
        elif logger.isEnabledFor(logging.DEBUG):
            logger.debug("Disabled tun received unexpected payload raw=%s", pretty_packet(packet))
        return len(packet)

    def new_multi_queue_reader(self) -> "DisabledTun":
        """The device itself serves as every queue."""
        return self

    def close(self) -> None:
        """Stop accepting replies and wake any blocked reader."""
        with self._cond:
            self._closed = True
            self._cond.notify_all()