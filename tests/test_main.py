# Copyright (c) 2026 Alessandro Orrù
# Licensed under MIT

import io
import pytest
from switchboard.dispatcher import Dispatcher
from switchboard.main import run_console


class TestRunConsole:
    @pytest.mark.asyncio
    async def test_prints_results(self, registry):
        registry.add_command("time", ["время"], callback=lambda text, result: "12:00")
        out = io.StringIO()

        handled = await run_console(Dispatcher(registry), io.StringIO("время\n\nабракадабра\n"), out)

        assert handled == 2
        assert "[time] 12:00" in out.getvalue()
        assert "[-] нет совпадений" in out.getvalue()

    @pytest.mark.asyncio
    async def test_first_line_is_welcome(self, registry):
        out = io.StringIO()

        await run_console(Dispatcher(registry), io.StringIO("абракадабра\n"), out)

        assert "[welcome]" in out.getvalue()

    @pytest.mark.asyncio
    async def test_end_session_stops(self, registry):
        def stop(text, result):
            result.end_session = True
            return "bye"

        registry.add_command("stop", ["стоп"], callback=stop)
        registry.add_command("time", ["время"])
        out = io.StringIO()

        handled = await run_console(Dispatcher(registry), io.StringIO("стоп\nвремя\n"), out)

        assert handled == 1
        assert "[stop] bye" in out.getvalue()
        assert "[time]" not in out.getvalue()
