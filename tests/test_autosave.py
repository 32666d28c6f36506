import asyncio

from progman.client.autosave import AutosaveScheduler

KEY = "Design|2024-05-01"


def test_only_the_last_value_is_saved():
    sent = []

    async def save(text):
        sent.append(text)

    async def run():
        saver = AutosaveScheduler(delay=0.05)
        for text in ("P", "Pa", "Panels"):
            saver.schedule(KEY, lambda t=text: save(t))
            await asyncio.sleep(0.01)
        assert saver.pending(KEY)
        await asyncio.sleep(0.15)
        assert not saver.pending(KEY)

    asyncio.run(run())
    assert sent == ["Panels"]


def test_keys_are_independent():
    sent = []

    async def save(key):
        sent.append(key)

    async def run():
        saver = AutosaveScheduler(delay=0.02)
        saver.schedule("a", lambda: save("a"))
        saver.schedule("b", lambda: save("b"))
        assert sorted(saver.pending_keys()) == ["a", "b"]
        await asyncio.sleep(0.1)

    asyncio.run(run())
    assert sorted(sent) == ["a", "b"]


def test_started_save_is_not_cancelled():
    sent = []

    async def slow_save(text):
        await asyncio.sleep(0.05)
        sent.append(text)

    async def run():
        saver = AutosaveScheduler(delay=0)
        saver.schedule(KEY, lambda: slow_save("first"))
        await asyncio.sleep(0.01)   # first save is now in flight
        saver.schedule(KEY, lambda: slow_save("second"))
        await asyncio.sleep(0.15)

    asyncio.run(run())
    assert sent == ["first", "second"]


def test_flush_sends_pending_saves_now():
    sent = []

    async def save():
        sent.append("now")

    async def run():
        saver = AutosaveScheduler(delay=30)
        saver.schedule(KEY, save)
        await saver.flush()
        assert saver.pending_keys() == []

    asyncio.run(run())
    assert sent == ["now"]


def test_cancel_and_aclose_discard():
    sent = []

    async def save():
        sent.append("x")

    async def run():
        saver = AutosaveScheduler(delay=0.01)
        saver.schedule("a", save)
        saver.schedule("b", save)
        assert saver.cancel("a") is True
        assert saver.cancel("a") is False
        await saver.aclose()
        await asyncio.sleep(0.05)

    asyncio.run(run())
    assert sent == []


def test_failed_save_is_logged(caplog):
    async def broken():
        raise RuntimeError("offline")

    async def run():
        saver = AutosaveScheduler(delay=0)
        saver.schedule(KEY, broken)
        await asyncio.sleep(0.02)

    asyncio.run(run())
    assert "autosave for Design|2024-05-01 failed" in caplog.text
