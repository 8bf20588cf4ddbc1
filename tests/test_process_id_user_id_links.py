from telemetry_store.process_id_user_id_links import ProcessIdUserIdLinks


class FakeClock:
    def __init__(self):
        self.now = 1000.0

    def __call__(self):
        return self.now


def test_update_and_resolve():
    links = ProcessIdUserIdLinks()
    links.update(1, "alice")
    assert links.resolve_user_id(1) == "alice"
    assert links.resolve_user_id(2) is None
    assert len(links) == 1


def test_first_user_wins():
    links = ProcessIdUserIdLinks()
    links.update(1, "alice")
    links.update(1, "bob")
    assert links.resolve_user_id(1) == "alice"


def test_gc_removes_old_links():
    clock = FakeClock()
    links = ProcessIdUserIdLinks(clock)
    links.update(1, "alice")
    clock.now += 10
    links.update(2, "bob")
    clock.now += 10
    links.gc()
    assert links.resolve_user_id(1) is None
    assert links.resolve_user_id(2) == "bob"
    assert len(links) == 1


def test_gc_keeps_fresh_links():
    clock = FakeClock()
    links = ProcessIdUserIdLinks(clock)
    links.update(1, "alice")
    clock.now += 19.5
    links.gc()
    assert links.resolve_user_id(1) == "alice"