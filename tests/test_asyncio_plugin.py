from pathlib import Path

CONFTEST = Path(__file__).with_name("conftest.py")


def test_plugin_runs_sync_and_async_test_bodies(pytester) -> None:
    pytester.makeconftest(CONFTEST.read_text(encoding="utf-8"))
    pytester.makepyfile(
        """
        import asyncio

        import pytest


        def test_sync_failure():
            assert False


        def test_sync_success():
            assert True


        @pytest.mark.asyncio
        async def test_async_failure():
            await asyncio.sleep(0)
            assert False


        @pytest.mark.asyncio
        async def test_async_with_fixture(clock):
            await asyncio.sleep(0)
            assert clock() == 1000.0
        """
    )

    result = pytester.runpytest_inprocess()

    result.assert_outcomes(passed=2, failed=2)
