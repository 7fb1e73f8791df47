from metallb.bgp.native.backoff import BACKOFF_FACTOR, BACKOFF_MAX, Backoff


def test_first_delays():
    b = Backoff()
    assert b.duration() == 0
    assert b.duration() == 1.0


def test_delays_multiply():
    b = Backoff()
    b.duration()
    prev = b.duration()
    for _ in range(4):
        cur = b.duration()
        assert cur == prev * BACKOFF_FACTOR
        prev = cur


def test_delay_capped():
    b = Backoff()
    delays = [b.duration() for _ in range(30)]
    assert max(delays) == BACKOFF_MAX
    assert delays[-1] == BACKOFF_MAX
    assert delays == sorted(delays)


def test_reset():
    b = Backoff()
    for _ in range(5):
        b.duration()
    b.reset()
    assert b.duration() == 0
    assert b.duration() == 1.0