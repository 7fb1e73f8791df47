"""BGP sessions spoken directly over TCP, with optional TCP MD5 signatures."""

from __future__ import annotations

import ipaddress
import logging
import socket
import struct
import threading
import time
import zlib
from datetime import timedelta
from typing import Any, BinaryIO, Mapping, Optional, Union

import psutil

from metallb.bgp.advertisement import Advertisement, Session, SessionManager
from metallb.bgp.native.backoff import Backoff
from metallb.bgp.native.messages import (
    HEADER_LEN,
    MARKER,
    MSG_NOTIFICATION,
    BGPError,
    read_notification,
    read_open,
    send_keepalive,
    send_open,
    send_update,
    send_withdraw,
)
from metallb.bgp.native.stats import stats
from metallb.ipfamily import Family, for_address

IPAddress = Union[ipaddress.IPv4Address, ipaddress.IPv6Address]

TCP_MD5SIG = 14
TCP_MD5SIG_STRUCT = struct.Struct("=H126sHHI80s")
CONNECT_TIMEOUT = 10.0

_log = logging.getLogger(__name__)


class SessionClosed(Exception):
    """Raised when an operation runs on a session that has been closed."""

    def __init__(self) -> None:
        super().__init__("session closed")


def _seconds(value: Union[timedelta, float, int]) -> float:
    if isinstance(value, timedelta):
        return value.total_seconds()
    return float(value)


def _normalize(ip: IPAddress) -> IPAddress:
    if isinstance(ip, ipaddress.IPv6Address) and ip.ipv4_mapped is not None:
        return ip.ipv4_mapped
    return ip


def _parse_ip(text: str) -> Optional[IPAddress]:
    try:
        return _normalize(ipaddress.ip_address(text.split("%", 1)[0]))
    except ValueError:
        return None


def _interface_addresses() -> dict[str, list[IPAddress]]:
    result: dict[str, list[IPAddress]] = {}
    for name, addrs in psutil.net_if_addrs().items():
        ips = []
        for a in addrs:
            if a.family not in (socket.AF_INET, socket.AF_INET6):
                continue
            ip = _parse_ip(a.address)
            if ip is not None:
                ips.append(ip)
        result[name] = ips
    return result


def validate(adv: Advertisement) -> None:
    """Raise ValueError if adv cannot be announced over a native session."""
    if getattr(adv.prefix, "version", None) != 4:
        raise ValueError(f'cannot advertise non-v4 prefix "{adv.prefix}"')
    if adv.next_hop is not None and for_address(adv.next_hop) != Family.IPV4:
        raise ValueError(f'next-hop must be IPv4, got "{adv.next_hop}"')
    if len(adv.communities) > 63:
        raise ValueError(f"max supported communities is 63, got {len(adv.communities)}")


def hash_router_id(hostname: str) -> ipaddress.IPv4Address:
    """Derive a router ID from the CRC32 of a host name."""
    checksum = zlib.crc32(hostname.encode())
    return ipaddress.IPv4Address(struct.pack("<I", checksum))


def get_router_id(addr: IPAddress, my_node: str) -> ipaddress.IPv4Address:
    """Use an IPv4 address as is; for IPv6, pick an IPv4 address on the same interface."""
    addr = _normalize(addr)
    if isinstance(addr, ipaddress.IPv4Address):
        return addr
    try:
        interfaces = _interface_addresses()
    except (OSError, psutil.Error):
        return hash_router_id(my_node)
    for ips in interfaces.values():
        if addr in ips:
            for ip in ips:
                if isinstance(ip, ipaddress.IPv4Address):
                    return ip
            return hash_router_id(my_node)
    return hash_router_id(my_node)


def build_tcp_md5_sig(addr: IPAddress, key: str) -> bytes:
    """Build the kernel's tcp_md5sig structure for a peer address and key."""
    ss = bytearray(126)
    addr = _normalize(addr)
    if isinstance(addr, ipaddress.IPv4Address):
        family = socket.AF_INET
        ss[2:6] = addr.packed
    else:
        family = socket.AF_INET6
        ss[6:22] = addr.packed
    key_bytes = key.encode()
    return TCP_MD5SIG_STRUCT.pack(
        family, bytes(ss), 0, len(key_bytes) & 0xFFFF, 0, key_bytes[:80]
    )


def local_address_exists(addr: IPAddress) -> bool:
    """Return True if addr is configured on any local network interface."""
    target = _normalize(addr)
    return any(target in ips for ips in _interface_addresses().values())


def _split_host_port(hostport: str) -> tuple[str, int]:
    if hostport.startswith("["):
        end = hostport.find("]")
        if end < 0 or not hostport[end + 1:].startswith(":"):
            raise ValueError(f"invalid remote address: {hostport}")
        host, port = hostport[1:end], hostport[end + 2:]
    else:
        host, sep, port = hostport.rpartition(":")
        if not sep or ":" in host:
            raise ValueError(f"invalid remote address: {hostport}")
    if not port.isdigit() or int(port) > 0xFFFF:
        raise ValueError(f"invalid remote address: {hostport}")
    return host, int(port)


def _resolve(host: str, port: int) -> IPAddress:
    ip = _parse_ip(host)
    if ip is not None:
        return ip
    try:
        infos = socket.getaddrinfo(host, port, type=socket.SOCK_STREAM)
    except socket.gaierror as e:
        raise ValueError(f"invalid remote address: {e}") from e
    return _normalize(ipaddress.ip_address(infos[0][4][0].split("%", 1)[0]))


def dial_md5(
    addr: str,
    src_addr: Optional[IPAddress],
    password: str,
    timeout: float = CONNECT_TIMEOUT,
) -> socket.socket:
    """Connect to host:port, binding to src_addr and signing with TCP MD5 if a password is set."""
    if src_addr is not None and not local_address_exists(src_addr):
        raise OSError(f'Address "{src_addr}" doesn\'t exist on this host')
    host, port = _split_host_port(addr)
    remote = _resolve(host, port)
    local = _normalize(src_addr) if src_addr is not None else None

    if isinstance(remote, ipaddress.IPv4Address):
        family = socket.AF_INET
        bind_host = str(local) if isinstance(local, ipaddress.IPv4Address) else "0.0.0.0"
        remote_addr: tuple = (str(remote), port)
        local_addr: tuple = (bind_host, 0)
    else:
        family = socket.AF_INET6
        bind_host = str(local) if isinstance(local, ipaddress.IPv6Address) else "::"
        remote_addr = (str(remote), port, 0, 0)
        local_addr = (bind_host, 0, 0, 0)

    sock = socket.socket(family, socket.SOCK_STREAM)
    try:
        if password:
            sock.setsockopt(socket.IPPROTO_TCP, TCP_MD5SIG, build_tcp_md5_sig(remote, password))
        sock.bind(local_addr)
        sock.settimeout(timeout)
        try:
            sock.connect(remote_addr)
        except socket.timeout:
            raise TimeoutError("timeout") from None
    except BaseException:
        sock.close()
        raise
    return sock


class _SocketWriter:
    def __init__(self, sock: socket.socket) -> None:
        self._sock = sock

    def write(self, data: bytes) -> int:
        self._sock.sendall(data)
        return len(data)


def _shutdown(sock: socket.socket) -> None:
    try:
        sock.shutdown(socket.SHUT_RDWR)
    except OSError:
        pass
    sock.close()


class NativeSession(Session):
    """A BGP session to one router that keeps reconnecting until closed."""

    def __init__(
        self,
        logger: Any,
        addr: str,
        src_addr: Optional[IPAddress],
        my_asn: int,
        router_id: Optional[IPAddress],
        asn: int,
        hold_time: Union[timedelta, float],
        keepalive_time: Union[timedelta, float],
        password: str,
        my_node: str,
    ) -> None:
        self.logger = logger
        self.addr = addr
        self.src_addr = src_addr
        self.my_asn = my_asn
        self.router_id = router_id
        self.asn = asn
        self.hold_time = _seconds(hold_time)
        self.keepalive_time = _seconds(keepalive_time)
        self.password = password
        self.my_node = my_node

        self._backoff = Backoff()
        self._new_hold_time = threading.Event()
        self._cond = threading.Condition()
        self._closed = False
        self._conn: Optional[socket.socket] = None
        self._writer: Optional[_SocketWriter] = None
        self._peer_fbasn = False
        self._actual_hold_time = 0.0
        self._default_next_hop: Optional[IPAddress] = None
        self._advertised: dict[str, Advertisement] = {}
        self._new: Optional[dict[str, Advertisement]] = None

    def _start(self) -> None:
        threading.Thread(target=self._send_keepalives, daemon=True).start()
        threading.Thread(target=self._run, daemon=True).start()

    @property
    def closed(self) -> bool:
        return self._closed

    def _run(self) -> None:
        try:
            while True:
                try:
                    self._connect()
                except SessionClosed:
                    return
                except Exception as e:
                    self.logger.error("op=connect error=%s msg=failed to connect to peer", e)
                    delay = self._backoff.duration()
                    with self._cond:
                        if self._closed:
                            return
                        if delay:
                            self._cond.wait(delay)
                    continue
                stats.session_up(self.addr)
                self._backoff.reset()
                self.logger.info("event=sessionUp msg=BGP session established")
                if not self._send_updates():
                    return
                stats.session_down(self.addr)
                self.logger.warning("event=sessionDown msg=BGP session down")
        finally:
            stats.delete_session(self.addr)

    def _send_updates(self) -> bool:
        with self._cond:
            if self._closed:
                return False
            if self._conn is None or self._writer is None:
                return True
            writer = self._writer
            ibgp = self.my_asn == self.asn
            fbasn = self._peer_fbasn

            if self._new is not None:
                self._advertised, self._new = self._new, None

            for key, adv in self._advertised.items():
                try:
                    send_update(writer, self.my_asn, ibgp, fbasn, self._default_next_hop, adv)
                except (OSError, ValueError) as e:
                    self._abort()
                    self.logger.error(
                        "op=sendUpdate ip=%s error=%s msg=failed to send BGP update", key, e
                    )
                    return True
                stats.update_sent(self.addr)
            stats.advertised_prefixes(self.addr, len(self._advertised))

            while True:
                while self._new is None and self._conn is not None:
                    self._cond.wait()
                if self._closed:
                    return False
                if self._conn is None:
                    return True
                new = self._new
                if new is None:
                    continue

                for key, adv in new.items():
                    old = self._advertised.get(key)
                    if old is not None and adv.equal(old):
                        continue
                    try:
                        send_update(
                            writer, self.my_asn, ibgp, fbasn, self._default_next_hop, adv
                        )
                    except (OSError, ValueError) as e:
                        self._abort()
                        self.logger.error(
                            "op=sendUpdate prefix=%s error=%s msg=failed to send BGP update",
                            key, e,
                        )
                        return True
                    stats.update_sent(self.addr)

                withdrawn = [adv.prefix for key, adv in self._advertised.items() if key not in new]
                if withdrawn:
                    try:
                        send_withdraw(writer, withdrawn)
                    except (OSError, ValueError) as e:
                        self._abort()
                        for prefix in withdrawn:
                            self.logger.error(
                                "op=sendWithdraw prefix=%s error=%s "
                                "msg=failed to send BGP withdraw",
                                prefix, e,
                            )
                        return True
                    stats.update_sent(self.addr)
                self._advertised, self._new = new, None
                stats.advertised_prefixes(self.addr, len(self._advertised))

    def _connect(self) -> None:
        with self._cond:
            if self._closed:
                raise SessionClosed()

        deadline = time.monotonic() + CONNECT_TIMEOUT
        try:
            sock = dial_md5(self.addr, self.src_addr, self.password, CONNECT_TIMEOUT)
        except (OSError, ValueError) as e:
            raise OSError(f'dial "{self.addr}": {e}') from e

        try:
            sock.settimeout(max(deadline - time.monotonic(), 0.001))
            local_ip = _parse_ip(sock.getsockname()[0])
            if local_ip is None:
                raise OSError(f'getting local addr for default nexthop to "{self.addr}"')
            router_id = self.router_id or get_router_id(local_ip, self.my_node)

            writer = _SocketWriter(sock)
            try:
                send_open(writer, self.my_asn, router_id, self.hold_time)
            except OSError as e:
                raise OSError(f'send OPEN to "{self.addr}": {e}') from e
            reader = sock.makefile("rb")
            try:
                op = read_open(reader)
            except (OSError, BGPError) as e:
                raise BGPError(f'read OPEN from "{self.addr}": {e}') from e
            if op.asn != self.asn:
                raise BGPError(f"unexpected peer ASN {op.asn}, want {self.asn}")
            if self.my_asn > 65536 and not op.fbasn:
                raise BGPError("peer does not support 4-byte ASNs")

            sock.settimeout(None)
            try:
                send_keepalive(writer)
            except OSError as e:
                raise OSError(f'accepting peer OPEN from "{self.addr}": {e}') from e
        except BaseException:
            _shutdown(sock)
            raise

        with self._cond:
            if self._closed:
                _shutdown(sock)
                raise SessionClosed()
            self._peer_fbasn = op.fbasn
            self._default_next_hop = local_ip
            self._actual_hold_time = min(self.hold_time, op.hold_time.total_seconds())
            self._conn = sock
            self._writer = writer
        self._new_hold_time.set()
        threading.Thread(target=self._consume_bgp, args=(sock, reader), daemon=True).start()

    def _send_keepalives(self) -> None:
        interval: Optional[float] = None
        while True:
            if self._new_hold_time.wait(interval):
                self._new_hold_time.clear()
                with self._cond:
                    if self._closed:
                        return
                    hold = self._actual_hold_time
                interval = hold / 3 if hold else None
                continue
            try:
                self._send_keepalive()
            except SessionClosed:
                return
            except OSError:
                continue

    def _send_keepalive(self) -> None:
        with self._cond:
            if self._closed:
                raise SessionClosed()
            if self._writer is None:
                return
            try:
                send_keepalive(self._writer)
            except OSError as e:
                self._abort()
                self.logger.error("op=sendKeepalive error=%s msg=failed to send keepalive", e)
                raise OSError(f'sending keepalive to "{self.addr}": {e}') from e

    def _consume_bgp(self, conn: socket.socket, reader: BinaryIO) -> None:
        try:
            while True:
                hdr = reader.read(HEADER_LEN)
                if len(hdr) < HEADER_LEN or hdr[:16] != MARKER:
                    return
                length, msg_type = struct.unpack("!HB", hdr[16:])
                if msg_type == MSG_NOTIFICATION:
                    try:
                        read_notification(reader)
                    except BGPError as e:
                        self.logger.error(
                            "event=peerNotification error=%s "
                            "msg=peer sent notification, closing session",
                            e,
                        )
                    return
                remaining = length - HEADER_LEN
                if remaining > 0 and len(reader.read(remaining)) < remaining:
                    return
        except (OSError, ValueError):
            return
        finally:
            with self._cond:
                if self._conn is conn:
                    self._abort()
                else:
                    _shutdown(conn)
            try:
                reader.close()
            except OSError:
                pass

    def set(self, *args: Advertisement) -> None:
        """Replace the advertisements the peer should receive; sent asynchronously."""
        with self._cond:
            new: dict[str, Advertisement] = {}
            for adv in args:
                validate(adv)
                new[str(adv.prefix)] = adv
            self._new = new
            stats.pending_prefixes(self.addr, len(new))
            self._cond.notify_all()

    def _abort(self) -> None:
        if self._conn is not None:
            _shutdown(self._conn)
            self._conn = None
            self._writer = None
            stats.session_down(self.addr)
        if self._new is not None:
            self._advertised, self._new = self._new, None
            stats.pending_prefixes(self.addr, len(self._advertised))
        self._cond.notify_all()

    def close(self) -> None:
        """Shut the session down for good."""
        with self._cond:
            self._closed = True
            self._abort()
        self._new_hold_time.set()


class NativeSessionManager(SessionManager):
    """Creates native BGP sessions; keeps no shared state."""

    def __init__(self, logger: Optional[logging.Logger] = None) -> None:
        self.logger = logger or _log

    def new_session(
        self,
        logger: Any,
        addr: str,
        src_addr: Optional[IPAddress],
        my_asn: int,
        router_id: Optional[IPAddress],
        asn: int,
        hold_time: Union[timedelta, float],
        keepalive_time: Union[timedelta, float],
        password: str,
        my_node: str,
        bfd_profile: str,
    ) -> NativeSession:
        """Create a session that immediately starts connecting to the peer."""
        session_logger = logging.LoggerAdapter(
            logger or self.logger, {"peer": addr, "localASN": my_asn, "peerASN": asn}
        )
        rid = _normalize(router_id) if router_id is not None else None
        if not isinstance(rid, ipaddress.IPv4Address):
            rid = None
        session = NativeSession(
            session_logger, addr, src_addr, my_asn, rid, asn,
            hold_time, keepalive_time, password, my_node,
        )
        stats.session_up_gauge.labels(addr).set(0)
        stats.prefixes_gauge.labels(addr).set(0)
        session._start()
        return session

    def sync_bfd_profiles(self, profiles: Mapping[str, Any]) -> None:
        """BFD is not available in native mode; always raises ValueError."""
        raise ValueError("bfd profiles not supported in native mode")