import asyncio

from cooldown import CooldownController


def _controller(duration=60):
    controller = CooldownController(duration=duration)
    calls = {"discard": 0, "scanning": []}

    def on_discard():
        calls["discard"] += 1

    controller.add_discard_listener(on_discard)
    controller.add_scanning_listener(calls["scanning"].append)
    return controller, calls


def test_start_pauses_scanning_and_discards_queue():
    controller, calls = _controller()

    async def run():
        controller.enable()
        controller.start()
        state = (controller.is_in_cooldown, controller.is_scanning, controller.remaining_seconds)
        controller.close()
        return state

    in_cooldown, scanning, remaining = asyncio.run(run())

    assert in_cooldown
    assert not scanning
    assert 0 < remaining <= 60
    assert calls["discard"] == 1
    assert calls["scanning"] == [True, False]


def test_enable_during_cooldown_waits_for_the_timer():
    controller, calls = _controller()

    async def run():
        controller.start()
        controller.enable()
        during = list(calls["scanning"])
        controller.end()
        return during

    during = asyncio.run(run())

    assert during == [False]
    assert calls["scanning"] == [False, True]
    assert controller.is_scanning


def test_timer_expiry_resumes_scanning():
    controller, calls = _controller(duration=0.01)

    async def run():
        controller.enable()
        controller.start()
        await asyncio.sleep(0.05)

    asyncio.run(run())

    assert not controller.is_in_cooldown
    assert calls["scanning"] == [True, False, True]


def test_end_without_scanner_enabled_stays_paused():
    controller, calls = _controller()

    async def run():
        controller.start()
        controller.end()

    asyncio.run(run())

    assert calls["scanning"] == [False]
    assert not controller.is_scanning


def test_disable_discards_and_pauses():
    controller, calls = _controller()
    controller.enable()
    controller.disable()

    assert calls["discard"] == 1
    assert calls["scanning"] == [True, False]
    assert controller.status() == {
        "is_in_cooldown": False,
        "cooldown_end_time": None,
        "remaining_seconds": 0.0,
        "scanning_enabled": False,
    }
