"""Validators applied to a raw configuration before it is parsed."""

from __future__ import annotations

from metallb.config.config import ConfigError, Proto, RawConfig, parse_cidr


def discard_frr_only(c: RawConfig) -> None:
    """Raise ConfigError if the configuration uses options only the FRR mode supports."""
    for p in c.peers:
        if p.bfd_profile:
            raise ConfigError(f"peer {p.addr} has bfd-profile set on native bgp mode")
        if p.keepalive_time:
            raise ConfigError(f"peer {p.addr} has keepalive-time set on native bgp mode")
    if c.bfd_profiles:
        raise ConfigError("bfd profiles section set")
    for pool in c.pools:
        for adv in pool.bgp_advertisements:
            if adv.aggregation_length_v6 is not None:
                raise ConfigError(
                    f"pool {pool.name} has aggregation-lenght-v6 set on native bgp mode"
                )
        if pool.protocol == Proto.BGP:
            for cidr in pool.addresses:
                try:
                    nets = parse_cidr(cidr)
                except ConfigError as e:
                    raise ConfigError(
                        f'invalid CIDR "{cidr}" in pool "{pool.name}": {e}'
                    ) from e
                for net in nets:
                    if net.version != 4:
                        raise ConfigError(
                            f'pool "{pool.name}" has ipv6 CIDR {net}, '
                            "native bgp mode does not support ipv6"
                        )


def dont_validate(c: RawConfig) -> None:
    """Accept any raw configuration; only the argument's type is checked."""
    if not isinstance(c, RawConfig):
        raise TypeError(f"expected a RawConfig, got {type(c).__name__}")