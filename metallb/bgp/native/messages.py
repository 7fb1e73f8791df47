"""Encoding and decoding of BGP wire messages (RFC 4271)."""

from __future__ import annotations

import ipaddress
import struct
from dataclasses import dataclass
from datetime import timedelta
from typing import Any, BinaryIO, Iterable, Optional, Union

from metallb.bgp.advertisement import Advertisement

IPAddress = Union[ipaddress.IPv4Address, ipaddress.IPv6Address]

MARKER = b"\xff" * 16
HEADER_LEN = 19
MIN_OPEN_LEN = 37

MSG_OPEN = 1
MSG_UPDATE = 2
MSG_NOTIFICATION = 3
MSG_KEEPALIVE = 4

AS_TRANS = 23456

NOTIFICATION_CODES = {
    0x0100: "Message header error (unspecific)",
    0x0101: "Connection not synchronized",
    0x0102: "Bad message length",
    0x0103: "Bad message type",
    0x0200: "OPEN message error (unspecific)",
    0x0201: "Unsupported version number",
    0x0202: "Bad peer AS",
    0x0203: "Bad BGP identifier",
    0x0204: "Unsupported optional parameter",
    0x0206: "Unacceptable hold time",
    0x0207: "Unsupported capability",
    0x0300: "UPDATE message error (unspecific)",
    0x0301: "Malformed Attribute List",
    0x0302: "Unrecognized Well-known Attribute",
    0x0303: "Missing Well-known Attribute",
    0x0304: "Attribute Flags Error",
    0x0305: "Attribute Length Error",
    0x0306: "Invalid ORIGIN Attribute",
    0x0308: "Invalid NEXT_HOP Attribute",
    0x0309: "Optional Attribute Error",
    0x030A: "Invalid Network Field",
    0x030B: "Malformed AS_PATH",
    0x0400: "Hold Timer Expired (unspecific)",
    0x0500: "BGP FSM state error (unspecific)",
    0x0501: "Receive Unexpected Message in OpenSent State",
    0x0502: "Receive Unexpected Message in OpenConfirm State",
    0x0503: "Receive Unexpected Message in Established State",
    0x0601: "Maximum Number of Prefixes Reached",
    0x0602: "Administrative Shutdown",
    0x0603: "Peer De-configured",
    0x0604: "Administrative Reset",
    0x0605: "Connection Rejected",
    0x0606: "Other Configuration Change",
    0x0607: "Connection Collision Resolution",
    0x0608: "Out of Resources",
}


class BGPError(Exception):
    """Raised when a BGP message is malformed or unacceptable."""


class BGPNotification(BGPError):
    """Raised when the peer sent a NOTIFICATION message."""

    def __init__(self, code: int) -> None:
        self.code = code
        self.description = NOTIFICATION_CODES.get(code, "unknown code")
        super().__init__(f"got BGP notification code 0x{code:04x} ({self.description})")


@dataclass
class OpenResult:
    """What the peer announced in its OPEN message."""

    asn: int
    hold_time: timedelta
    mp4: bool = False
    mp6: bool = False
    fbasn: bool = False


def _seconds(value: Union[timedelta, float, int]) -> float:
    if isinstance(value, timedelta):
        return value.total_seconds()
    return float(value)


def _v4_bytes(ip: Any, what: str) -> bytes:
    if isinstance(ip, (str, bytes)):
        ip = ipaddress.ip_address(ip)
    if isinstance(ip, ipaddress.IPv4Address):
        return ip.packed
    if isinstance(ip, ipaddress.IPv6Address) and ip.ipv4_mapped is not None:
        return ip.ipv4_mapped.packed
    raise ValueError(f"non-ipv4 address used as {what}: {ip}")


def _write(w: BinaryIO, data: bytes) -> None:
    w.write(data)
    flush = getattr(w, "flush", None)
    if flush is not None:
        flush()


def _read_exact(r: BinaryIO, n: int) -> bytes:
    """Read up to n bytes, stopping early only at end of stream."""
    chunks = []
    remaining = n
    while remaining > 0:
        chunk = r.read(remaining)
        if not chunk:
            break
        chunks.append(chunk)
        remaining -= len(chunk)
    return b"".join(chunks)


def _read_full(r: BinaryIO, n: int) -> bytes:
    data = _read_exact(r, n)
    if not data:
        raise BGPError("unexpected end of stream")
    if len(data) < n:
        raise BGPError("unexpected end of stream: short read")
    return data


def send_open(w: BinaryIO, asn: int, router_id: Any, hold_time: Union[timedelta, float]) -> None:
    """Write an OPEN advertising IPv4/IPv6 unicast and 4-byte ASN support."""
    rid = _v4_bytes(router_id, "RouterID")
    asn16 = AS_TRANS if asn > 0xFFFF else asn
    hold = int(_seconds(hold_time)) & 0xFFFF
    body = struct.pack(
        "!BHH4sBBB" "BBHH" "BBHH" "BBI",
        4, asn16, hold, rid,
        20, 2, 18,
        1, 4, 1, 1,
        1, 4, 2, 1,
        65, 4, asn & 0xFFFFFFFF,
    )
    length = HEADER_LEN + len(body)
    _write(w, MARKER + struct.pack("!HB", length, MSG_OPEN) + body)


def read_notification(r: BinaryIO) -> None:
    """Read a NOTIFICATION body (header already consumed) and raise BGPNotification."""
    (code,) = struct.unpack("!H", _read_full(r, 2))
    raise BGPNotification(code)


def _read_header(r: BinaryIO) -> tuple[int, int]:
    hdr = _read_full(r, HEADER_LEN)
    if hdr[:16] != MARKER:
        raise BGPError("synchronization error, incorrect header marker")
    length, msg_type = struct.unpack("!HB", hdr[16:])
    return length, msg_type


def read_open(r: BinaryIO) -> OpenResult:
    """Read the peer's OPEN message and return its parameters."""
    length, msg_type = _read_header(r)
    if msg_type == MSG_NOTIFICATION:
        read_notification(r)
    if msg_type != MSG_OPEN:
        raise BGPError(f"message type is not OPEN, got {msg_type}, want 1")
    if length < MIN_OPEN_LEN:
        raise BGPError(f"message length {length} too small to be OPEN")

    body = _read_exact(r, length - HEADER_LEN)
    if len(body) < 10:
        raise BGPError("unexpected end of stream while reading OPEN")
    version, asn16, hold, _router_id, _opts_len = struct.unpack("!BHHIB", body[:10])
    if version != 4:
        raise BGPError("wrong BGP version")
    if hold != 0 and hold < 3:
        raise BGPError(f"invalid hold time {hold}, must be 0 or >=3s")

    result = OpenResult(asn=asn16, hold_time=timedelta(seconds=hold))
    _read_options(body[10:], result)
    return result


def _read_options(data: bytes, result: OpenResult) -> None:
    pos = 0
    while pos < len(data):
        if len(data) - pos < 2:
            raise BGPError("unexpected end of stream in option header")
        opt_type, opt_len = data[pos], data[pos + 1]
        pos += 2
        if opt_type != 2:
            raise BGPError(f"unknown BGP option type {opt_type}")
        chunk = data[pos:pos + opt_len]
        pos += len(chunk)
        _read_capabilities(chunk, result)
        missing = opt_len - len(chunk)
        if missing:
            raise BGPError(f"{missing} trailing garbage bytes after capability option")


def _read_capabilities(data: bytes, result: OpenResult) -> None:
    pos = 0
    while pos < len(data):
        if len(data) - pos < 2:
            raise BGPError("unexpected end of stream in capability header")
        code, cap_len = data[pos], data[pos + 1]
        pos += 2
        chunk = data[pos:pos + cap_len]
        pos += len(chunk)
        if code == 65:
            if len(chunk) < 4:
                raise BGPError("unexpected end of stream in 4-byte ASN capability")
            (result.asn,) = struct.unpack("!I", chunk[:4])
            result.fbasn = True
            consumed = 4
        elif code == 1:
            if len(chunk) < 4:
                raise BGPError("unexpected end of stream in multiprotocol capability")
            afi, safi = struct.unpack("!HH", chunk[:4])
            if afi == 1 and safi == 1:
                result.mp4 = True
            elif afi == 2 and safi == 1:
                result.mp6 = True
            consumed = 4
        else:
            consumed = len(chunk)
        leftover = cap_len - consumed
        if leftover:
            raise BGPError(f"{leftover} leftover bytes after decoding capability {code}")


def bytes_for_bits(n: int) -> int:
    """Return the minimum number of whole bytes needed to hold n bits."""
    return (n + 7) // 8


def encode_prefixes(prefixes: Iterable[Any]) -> bytes:
    """Encode IPv4 prefixes as (length, significant address bytes) pairs."""
    out = bytearray()
    for prefix in prefixes:
        if prefix.version != 4:
            raise ValueError(f"cannot encode non-v4 prefix {prefix}")
        length = prefix.prefixlen
        out.append(length)
        out += prefix.network_address.packed[:bytes_for_bits(length)]
    return bytes(out)


def _encode_path_attrs(
    asn: int,
    ibgp: bool,
    fbasn: bool,
    default_next_hop: Optional[Any],
    adv: Advertisement,
) -> bytes:
    out = bytearray(b"\x40\x01\x01\x02")  # ORIGIN: incomplete
    out += b"\x40\x02"  # AS_PATH
    if ibgp:
        out.append(0)
    elif fbasn:
        out += b"\x06\x02\x01" + struct.pack("!I", asn & 0xFFFFFFFF)
    else:
        out += b"\x04\x02\x01" + struct.pack("!H", asn & 0xFFFF)
    out += b"\x40\x03\x04"  # NEXT_HOP
    next_hop = adv.next_hop if adv.next_hop is not None else default_next_hop
    if next_hop is None:
        raise ValueError("no next-hop available for advertisement")
    out += _v4_bytes(next_hop, "next-hop")
    if ibgp:
        out += b"\x40\x05\x04" + struct.pack("!I", adv.local_pref & 0xFFFFFFFF)
    if adv.communities:
        out += b"\xc0\x08" + struct.pack("!B", (len(adv.communities) * 4) & 0xFF)
        for c in adv.communities:
            out += struct.pack("!I", c & 0xFFFFFFFF)
    return bytes(out)


def send_update(
    w: BinaryIO,
    asn: int,
    ibgp: bool,
    fbasn: bool,
    default_next_hop: Optional[Any],
    adv: Advertisement,
) -> None:
    """Write an UPDATE announcing adv.prefix with its path attributes."""
    attrs = _encode_path_attrs(asn, ibgp, fbasn, default_next_hop, adv)
    nlri = encode_prefixes([adv.prefix])
    length = 23 + len(attrs) + len(nlri)
    msg = MARKER + struct.pack("!HBHH", length, MSG_UPDATE, 0, len(attrs)) + attrs + nlri
    _write(w, msg)


def send_withdraw(w: BinaryIO, prefixes: Iterable[Any]) -> None:
    """Write an UPDATE withdrawing the given prefixes."""
    withdrawn = encode_prefixes(prefixes)
    length = 21 + len(withdrawn) + 2
    msg = (
        MARKER
        + struct.pack("!HBH", length, MSG_UPDATE, len(withdrawn))
        + withdrawn
        + struct.pack("!H", 0)
    )
    _write(w, msg)


def send_keepalive(w: BinaryIO) -> None:
    """Write a KEEPALIVE message."""
    _write(w, MARKER + struct.pack("!HB", HEADER_LEN, MSG_KEEPALIVE))