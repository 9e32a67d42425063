import pytest

import absexporter.main as main_module


class _FakeClient:
    def __init__(self, *_args, **_kwargs):
        pass

    async def get_users(self):
        return []

    async def get_libraries(self):
        return []

    async def get_library_detail(self, library_id):
        raise AssertionError("no libraries to look up")

    async def get_all_sessions(self):
        return [], None


@pytest.mark.asyncio
async def test_scrape_once_prints_metrics(monkeypatch, capsys):
    monkeypatch.setattr(main_module, "AudiobookshelfClient", _FakeClient)

    ok = await main_module.scrape_once()

    assert ok is True
    out = capsys.readouterr().out
    assert "audiobookshelf_up 1.0" in out
    assert "audiobookshelf_sessions_total 0.0" in out


def test_main_exits_without_abs_url(monkeypatch):
    configured = []
    monkeypatch.setattr(main_module.settings, "abs_url", "")
    monkeypatch.setattr(main_module.settings, "log_format", "console")
    monkeypatch.setattr(
        main_module, "configure_logging", lambda *args: configured.append(args)
    )
    monkeypatch.setattr("sys.argv", ["absexporter"])

    with pytest.raises(SystemExit) as excinfo:
        main_module.main()

    assert excinfo.value.code == 1
    assert configured == [(main_module.settings.log_level, "console")]
