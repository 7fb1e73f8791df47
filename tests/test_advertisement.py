import ipaddress

import pytest

from metallb.bgp.advertisement import Advertisement, Session, SessionManager


def _adv(**kw):
    base = dict(
        prefix=ipaddress.ip_network("1.2.3.0/24"),
        next_hop=ipaddress.ip_address("10.20.30.40"),
        local_pref=42,
        communities=[1234, 2345],
    )
    base.update(kw)
    return Advertisement(**base)


def test_equal_same():
    assert _adv().equal(_adv())


@pytest.mark.parametrize(
    "change",
    [
        {"prefix": ipaddress.ip_network("1.2.4.0/24")},
        {"next_hop": ipaddress.ip_address("10.20.30.41")},
        {"next_hop": None},
        {"local_pref": 43},
        {"communities": [2345, 1234]},
        {"communities": []},
    ],
)
def test_equal_differs(change):
    assert not _adv().equal(_adv(**change))
    assert not _adv(**change).equal(_adv())


def test_defaults():
    adv = Advertisement(prefix=ipaddress.ip_network("1.2.3.0/24"))
    assert adv.next_hop is None and adv.local_pref == 0 and adv.communities == []


def test_interfaces_are_abstract():
    with pytest.raises(TypeError):
        Session()
    with pytest.raises(TypeError):
        SessionManager()


def test_session_context_manager_closes():
    class Dummy(Session):
        def __init__(self):
            self.closed = False
            self.advs = ()

        def set(self, *args):
            self.advs = args

        def close(self):
            self.closed = True

    with Dummy() as s:
        s.set(_adv())
        assert len(s.advs) == 1
    assert s.closed is True