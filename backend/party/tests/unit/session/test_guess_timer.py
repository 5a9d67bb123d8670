import asyncio

from party.session.guess_timer import GuessTimer

WINDOW = 0.05


class _Expiries:
    def __init__(self) -> None:
        self.versions: list[int] = []
        self.fired = asyncio.Event()

    async def __call__(self, version: int) -> None:
        self.versions.append(version)
        self.fired.set()


class TestGuessTimer:
    async def test_arms_on_my_turn_and_fires_with_version(self):
        expiries = _Expiries()
        timer = GuessTimer(expiries, seconds=WINDOW)

        timer.sync(is_my_turn=True, version=4)
        assert timer.is_armed
        assert timer.armed_version == 4

        await asyncio.wait_for(expiries.fired.wait(), timeout=1.0)
        assert expiries.versions == [4]
        assert not timer.is_armed

    async def test_same_version_does_not_restart(self):
        expiries = _Expiries()
        timer = GuessTimer(expiries, seconds=1.0)

        timer.sync(is_my_turn=True, version=1)
        await asyncio.sleep(0.05)
        timer.sync(is_my_turn=True, version=1)

        assert timer.remaining < 0.97
        timer.cancel()

    async def test_fired_version_is_not_rearmed(self):
        expiries = _Expiries()
        timer = GuessTimer(expiries, seconds=WINDOW)
        timer.sync(is_my_turn=True, version=2)
        await asyncio.wait_for(expiries.fired.wait(), timeout=1.0)

        timer.sync(is_my_turn=True, version=2)

        assert not timer.is_armed
        await asyncio.sleep(2 * WINDOW)
        assert expiries.versions == [2]

    async def test_new_version_rearms(self):
        expiries = _Expiries()
        timer = GuessTimer(expiries, seconds=WINDOW)

        timer.sync(is_my_turn=True, version=1)
        timer.sync(is_my_turn=True, version=2)
        await asyncio.sleep(3 * WINDOW)

        assert expiries.versions == [2]

    async def test_losing_turn_cancels(self):
        expiries = _Expiries()
        timer = GuessTimer(expiries, seconds=WINDOW)

        timer.sync(is_my_turn=True, version=1)
        timer.sync(is_my_turn=False, version=2)
        await asyncio.sleep(3 * WINDOW)

        assert expiries.versions == []
        assert timer.armed_version is None

    async def test_per_call_duration_overrides_default(self):
        expiries = _Expiries()
        timer = GuessTimer(expiries, seconds=60.0)

        timer.sync(is_my_turn=True, version=1, seconds=WINDOW)

        await asyncio.wait_for(expiries.fired.wait(), timeout=1.0)
        assert expiries.versions == [1]
