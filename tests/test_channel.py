import tempfile
import unittest
from pathlib import Path

from playersync.channel import PlaywrightChannel


class _FakeFrame:
    def __init__(self, url: str, parent=None):
        self.url = url
        self.parent_frame = parent


class _FakePage:
    def __init__(self, url: str = "https://music.163.com/st/webplayer"):
        self.url = url
        self.handlers = {}
        self.evaluated = []
        self.gotos = []
        self.idle_calls = 0
        self.on_idle = None
        self.closed = False
        self.fail_scripts = set()

    def on(self, event, handler):
        self.handlers[event] = handler

    def is_closed(self) -> bool:
        return self.closed

    def evaluate(self, script, arg=None):
        self.evaluated.append((script, arg))
        if script in self.fail_scripts:
            raise RuntimeError("Execution context was destroyed, most likely because of a navigation")
        return {"echo": arg}

    def goto(self, url, wait_until="load"):
        self.gotos.append((url, wait_until))

    def wait_for_timeout(self, _ms):
        self.idle_calls += 1
        if self.on_idle is not None:
            self.on_idle()


class PlaywrightChannelServeTests(unittest.TestCase):
    def setUp(self) -> None:
        self._tmp = tempfile.TemporaryDirectory()
        self.log = Path(self._tmp.name) / "sync.log"
        self.channel = PlaywrightChannel(
            "http://127.0.0.1:9222",
            guard_host="music.163.com",
            home_url="https://music.163.com/st/webplayer",
            log_path=self.log,
        )
        self.page = _FakePage()
        self.page.on_idle = self.channel.close

    def tearDown(self) -> None:
        self._tmp.cleanup()

    def test_submissions_run_in_fifo_order(self) -> None:
        results = []
        for n in range(3):
            self.channel.submit("(x) => x", n, results.append)
        self.channel.serve(self.page)
        self.assertEqual([arg for _s, arg in self.page.evaluated], [0, 1, 2])
        self.assertEqual(results, [{"echo": 0}, {"echo": 1}, {"echo": 2}])

    def test_evaluation_error_delivers_none(self) -> None:
        results = []
        self.page.fail_scripts.add("boom")
        self.channel.submit("boom", None, results.append)
        self.channel.submit("(x) => x", 1, results.append)
        self.channel.serve(self.page)
        self.assertEqual(results, [None, {"echo": 1}])
        self.assertIn("evaluate=no_result", self.log.read_text(encoding="utf-8"))

    def test_callback_errors_do_not_stop_the_loop(self) -> None:
        results = []

        def bad_callback(_value):
            raise KeyError("oops")

        self.channel.submit("(x) => x", 1, bad_callback)
        self.channel.submit("(x) => x", 2, results.append)
        self.channel.serve(self.page)
        self.assertEqual(results, [{"echo": 2}])

    def test_submit_after_close_delivers_none_immediately(self) -> None:
        self.channel.close()
        results = []
        self.channel.submit("(x) => x", 1, results.append)
        self.assertEqual(results, [None])

    def test_closed_page_ends_loop_and_drains(self) -> None:
        self.page.closed = True
        results = []
        self.channel.submit("(x) => x", 1, results.append)
        self.channel.serve(self.page)
        self.channel.close()
        self.assertEqual(results, [None])
        self.assertEqual(self.page.evaluated, [])

    def test_load_event_reports_success_and_error_pages(self) -> None:
        seen = []
        self.channel.add_load_listener(seen.append)
        self.channel.serve(self.page)
        self.page.handlers["load"](self.page)
        self.page.url = "chrome-error://chromewebdata/"
        self.page.handlers["load"](self.page)
        self.assertEqual(seen, [True, False])

    def test_guard_redirects_main_frame_leaving_player_host(self) -> None:
        def navigate_away(_value):
            handler = self.page.handlers["framenavigated"]
            handler(_FakeFrame("https://passport.example.com/login"))
            handler(_FakeFrame("https://ads.example.com/", parent=object()))
            handler(_FakeFrame("https://music.163.com/#/song?id=1"))
            handler(_FakeFrame("about:blank"))

        self.channel.submit("(x) => x", 0, navigate_away)
        self.channel.serve(self.page)
        self.assertEqual(self.page.gotos, [("https://music.163.com/st/webplayer", "commit")])
        self.assertIn("guard=redirect", self.log.read_text(encoding="utf-8"))

    def test_guard_is_disabled_without_a_host(self) -> None:
        channel = PlaywrightChannel("http://127.0.0.1:9222", guard_host="", home_url="https://x.test/")
        page = _FakePage()
        page.on_idle = channel.close
        channel.submit(
            "(x) => x",
            0,
            lambda _v: page.handlers["framenavigated"](_FakeFrame("https://elsewhere.test/")),
        )
        channel.serve(page)
        self.assertEqual(page.gotos, [])

    def test_navigate_is_queued_with_submissions(self) -> None:
        self.channel.navigate("https://music.163.com/st/webplayer")
        self.channel.submit("(x) => x", 1)
        self.channel.serve(self.page)
        self.assertEqual(self.page.gotos, [("https://music.163.com/st/webplayer", "commit")])
        self.assertEqual(len(self.page.evaluated), 1)


if __name__ == "__main__":
    unittest.main()
