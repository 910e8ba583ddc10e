from gatekeeper.security import Action, Reason

from tests.helpers import IP, flags_only, make_context


def referer_shield(make_shield, **settings):
    config = flags_only(referer=3)
    config.enable_referer_check = True
    for name, value in settings.items():
        setattr(config, name, value)
    return make_shield(settings=config)


class TestRefererCheck:
    def test_rapid_requests_without_referer_are_denied(self, make_shield, store, clock):
        shield = referer_shield(make_shield)
        ctx = make_context(referer="")
        start = clock.now

        results = [shield.run(ctx, now=start + i) for i in range(4)]

        assert [d.allowed for d in results] == [True, True, True, False]
        assert results[-1].reason == Reason.EMPTY_REFERER
        assert store.get(IP, "rule")["reason"] == 4

    def test_requests_with_referer_are_not_flagged(self, make_shield, store, clock):
        shield = referer_shield(make_shield)
        ctx = make_context(referer="https://example.com/page")

        for i in range(6):
            assert shield.run(ctx, now=clock.now + i).allowed
        assert store.get(IP, "log")["flag_empty_referer"] == 0

    def test_slow_requests_are_not_flagged(self, make_shield, store, clock):
        shield = referer_shield(make_shield)
        ctx = make_context(referer="")

        for i in range(6):
            assert shield.run(ctx, now=clock.now + 10 * i).allowed
        assert store.get(IP, "log")["flag_empty_referer"] == 0


class TestSessionCheck:
    def make(self, make_shield):
        config = flags_only(session=2)
        config.enable_session_check = True
        return make_shield(settings=config)

    def test_new_session_every_request_is_denied(self, make_shield, clock):
        shield = self.make(make_shield)
        start = clock.now

        shield.run(make_context(session="a"), now=start)
        shield.run(make_context(session="b"), now=start + 1)
        decision = shield.run(make_context(session="c"), now=start + 2)

        assert decision.action == Action.DENY
        assert decision.reason == Reason.TOO_MANY_SESSIONS

    def test_stable_session_is_not_flagged(self, make_shield, store, clock):
        shield = self.make(make_shield)
        ctx = make_context(session="a")

        for i in range(5):
            assert shield.run(ctx, now=clock.now + i).allowed
        assert store.get(IP, "log")["flag_multi_session"] == 0

    def test_last_session_is_remembered(self, make_shield, store):
        shield = self.make(make_shield)

        shield.run(make_context(session="a"))
        shield.run(make_context(session="b"))

        assert store.get(IP, "log")["session"] == "b"


class TestCookieCheck:
    def make(self, make_shield):
        config = flags_only(cookie=2)
        config.enable_cookie_check = True
        return make_shield(settings=config)

    def test_missing_cookie_is_denied(self, make_shield):
        shield = self.make(make_shield)
        ctx = make_context()

        results = [shield.run(ctx) for _ in range(3)]

        assert results[-1].action == Action.DENY
        assert results[-1].reason == Reason.EMPTY_JS_COOKIE

    def test_cookie_pageviews_force_a_fresh_proof(self, make_shield, store):
        shield = self.make(make_shield)
        ctx = make_context(cookies={"ssjd": "1"})

        results = [shield.run(ctx) for _ in range(4)]

        assert all(d.allowed for d in results)
        assert [d.clear_cookie for d in results] == [False, False, False, True]
        log = store.get(IP, "log")
        assert log["pageviews_cookie"] == 0
        assert log["flag_js_cookie"] == 0

    def test_wrong_cookie_value_counts_as_missing(self, make_shield, store):
        shield = self.make(make_shield)
        ctx = make_context(cookies={"ssjd": "0"})

        shield.run(ctx)
        shield.run(ctx)

        assert store.get(IP, "log")["flag_js_cookie"] == 1

    def test_configured_cookie_value_is_the_proof(self, make_shield, store):
        config = flags_only(cookie=5)
        config.enable_cookie_check = True
        config.cookie_value = "js-ok"
        shield = make_shield(settings=config)

        shield.run(make_context(cookies={"ssjd": "js-ok"}))
        shield.run(make_context(cookies={"ssjd": "js-ok"}))
        shield.run(make_context(cookies={"ssjd": "1"}))

        log = store.get(IP, "log")
        assert log["pageviews_cookie"] == 1
        assert log["flag_js_cookie"] == 1


def test_flags_are_forgiven_after_reset_period(make_shield, store, clock):
    shield = referer_shield(make_shield, time_reset_flags=100)
    ctx = make_context(referer="")
    start = clock.now

    shield.run(ctx, now=start)
    shield.run(ctx, now=start + 1)
    shield.run(ctx, now=start + 2)
    assert store.get(IP, "log")["flag_empty_referer"] == 2

    assert shield.run(ctx, now=start + 100).allowed
    log = store.get(IP, "log")
    assert log["flag_empty_referer"] == 0
    assert log["first_time_flag"] == start + 100

    assert shield.run(ctx, now=start + 101).allowed
    assert store.get(IP, "log")["flag_empty_referer"] == 1


def test_filtering_disabled_skips_detection(make_shield, store):
    config = flags_only()
    config.enable_filtering = False
    shield = make_shield(settings=config)

    assert shield.run(make_context()).allowed
    assert len(store) == 0


def test_hostname_and_last_time_are_recorded(make_shield, store, clock):
    shield = make_shield(settings=flags_only())
    shield.run(make_context(hostname="crawler.example.net"))
    shield.run(make_context(hostname="crawler.example.net"), now=clock.now + 7)

    log = store.get(IP, "log")
    assert log["hostname"] == "crawler.example.net"
    assert log["last_time"] == clock.now + 7
