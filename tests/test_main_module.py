import pytest

import askme.main as main_mod


class FakeConsole:

    def __init__(self):
        self.printed = []

    def print(self, *args, **kwargs):
        self.printed.extend(str(arg) for arg in args)


@pytest.fixture
def fake_console(monkeypatch):
    console = FakeConsole()
    monkeypatch.setattr(main_mod, "console", console)
    return console


def run_main():
    with pytest.raises(SystemExit) as excinfo:
        main_mod.main()
    return excinfo.value.code


def test_clean_run_exits_zero_quietly(monkeypatch, fake_console, capsys):
    ran = []
    monkeypatch.setattr(main_mod, "cli_main", lambda: ran.append(True))
    assert run_main() == 0
    assert ran == [True]
    assert fake_console.printed == []
    assert capsys.readouterr().err == ""


def test_crash_is_reported_once(monkeypatch, fake_console):
    def crash():
        raise RuntimeError("failure in [cli]")
    monkeypatch.setattr(main_mod, "cli_main", crash)
    assert run_main() == 1
    assert len(fake_console.printed) == 1
    report = fake_console.printed[0]
    assert "unexpected error occurred" in report.lower()
    # rich markup in the message is escaped
    assert "failure in \\[cli]" in report


def test_cli_exit_status_is_kept(monkeypatch, fake_console):
    def usage_error():
        raise SystemExit(2)
    monkeypatch.setattr(main_mod, "cli_main", usage_error)
    assert run_main() == 2
    assert fake_console.printed == []
