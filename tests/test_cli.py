import json
import signal

import pytest

from ratchet.cli.main import RatchetCLI
from ratchet.core.settings import Settings
from ratchet.resolver.stub import StubResolver

SHA = "a" * 40
NEW_SHA = "b" * 40

WORKFLOW = (
    "name: ci\n"
    "\n"
    "jobs:\n"
    "  build:\n"
    "    runs-on: ubuntu-latest\n"
    "    steps:\n"
    "      - uses: actions/checkout@v4 # fetch sources\n"
    "      - run: make test\n"
)


def cli(**answers):
    return RatchetCLI(resolver=StubResolver(**answers), settings=Settings())


@pytest.fixture
def workflow(tmp_path):
    path = tmp_path / "ci.yml"
    path.write_text(WORKFLOW)
    return path


def test_pin_writes_file(workflow):
    code = cli(resolved={"actions://actions/checkout@v4": f"actions/checkout@{SHA}"}).run(
        ["pin", str(workflow)])
    assert code == 0
    assert workflow.read_text() == WORKFLOW.replace(
        "actions/checkout@v4 # fetch sources",
        f"actions/checkout@{SHA} # fetch sources ratchet:actions/checkout@v4",
    )


def test_check_exit_codes(workflow):
    assert cli().run(["check", str(workflow)]) == 1

    pinned = WORKFLOW.replace("actions/checkout@v4", f"actions/checkout@{SHA}")
    workflow.write_text(pinned)
    assert cli().run(["check", str(workflow)]) == 0


def test_lint_json_to_stdout(workflow, capsys):
    code = cli().run(["lint", "--format", "json", str(workflow)])
    assert code == 1
    out = capsys.readouterr().out
    assert json.loads(out) == [{
        "filename": workflow.as_posix(),
        "contents": "actions/checkout@v4",
        "line": 7,
        "column": 15,
    }]


def test_lint_unknown_format(workflow):
    assert cli().run(["lint", "--format", "xml", str(workflow)]) == 1


def test_unknown_parser(workflow):
    assert cli().run(["check", "--parser", "jenkins", str(workflow)]) == 1


def test_dry_run_leaves_file_untouched(workflow, capsys):
    """
    DRY RUN TEST: The result goes to stdout and the file stays as it was.
    """
    code = cli(resolved={"actions://actions/checkout@v4": f"actions/checkout@{SHA}"}).run(
        ["pin", "--dry-run", str(workflow)])
    assert code == 0
    assert workflow.read_text() == WORKFLOW
    assert f"actions/checkout@{SHA}" in capsys.readouterr().out


def test_out_directory(workflow, tmp_path):
    out = tmp_path / "pinned"
    code = cli(resolved={"actions://actions/checkout@v4": f"actions/checkout@{SHA}"}).run(
        ["pin", "--out", f"{out}/", str(workflow)])
    assert code == 0
    assert workflow.read_text() == WORKFLOW
    written = out / str(workflow).lstrip("/")
    assert f"actions/checkout@{SHA}" in written.read_text()


def test_failed_reference_skips_only_its_files(tmp_path):
    """
    WRITEBACK TEST: a file that references a failed lookup is left alone,
    every other file is still written, and the command fails.
    """
    good = tmp_path / "good.yml"
    bad = tmp_path / "bad.yml"
    good.write_text(WORKFLOW)
    bad.write_text(WORKFLOW + "      - uses: broken/action@v1\n")

    runner = cli(resolved={
        "actions://actions/checkout@v4": f"actions/checkout@{SHA}",
        "actions://broken/action@v1": RuntimeError("404 Not Found"),
    })
    assert runner.run(["pin", str(good), str(bad)]) == 1

    assert f"actions/checkout@{SHA}" in good.read_text()
    assert bad.read_text() == WORKFLOW + "      - uses: broken/action@v1\n"


def test_unpin_restores_constraint(workflow):
    pinned = WORKFLOW.replace(
        "actions/checkout@v4 # fetch sources",
        f"actions/checkout@{SHA} # fetch sources ratchet:actions/checkout@v4",
    )
    workflow.write_text(pinned)
    assert cli().run(["unpin", str(workflow)]) == 0
    assert workflow.read_text() == WORKFLOW


def test_update_repins_recorded_constraint(workflow):
    workflow.write_text(WORKFLOW.replace(
        "actions/checkout@v4 # fetch sources",
        f"actions/checkout@{SHA} # fetch sources ratchet:actions/checkout@v4",
    ))
    code = cli(resolved={"actions://actions/checkout@v4": f"actions/checkout@{NEW_SHA}"}).run(
        ["update", str(workflow)])
    assert code == 0
    assert f"actions/checkout@{NEW_SHA} # fetch sources ratchet:actions/checkout@v4" in workflow.read_text()


def test_upgrade(workflow):
    runner = cli(
        latest={"actions://actions/checkout@v4": "actions://actions/checkout@v5"},
        resolved={"actions://actions/checkout@v5": f"actions/checkout@{NEW_SHA}"},
    )
    assert runner.run(["upgrade", str(workflow)]) == 0
    assert f"actions/checkout@{NEW_SHA} # fetch sources ratchet:actions/checkout@v5" in workflow.read_text()


def test_upgrade_no_pin(workflow):
    runner = cli(latest={"actions://actions/checkout@v4": "actions://actions/checkout@v5"})
    assert runner.run(["upgrade", "--no-pin", str(workflow)]) == 0
    assert "actions/checkout@v5 # fetch sources ratchet:actions/checkout@v5" in workflow.read_text()


def test_out_file_with_many_inputs(tmp_path):
    a = tmp_path / "a.yml"
    b = tmp_path / "b.yml"
    a.write_text(WORKFLOW)
    b.write_text(WORKFLOW)
    assert cli().run(["pin", "--out", str(tmp_path / "x.yml"), str(a), str(b)]) == 1


def test_missing_path(tmp_path):
    assert cli().run(["check", str(tmp_path / "missing.yml")]) == 1


def test_no_command():
    assert cli().run([]) == 0


class InterruptingResolver(StubResolver):
    """Presses Ctrl-C, through whatever SIGINT handler is live, on every lookup."""

    handler = None

    def resolve(self, ref):
        self.handler = signal.getsignal(signal.SIGINT)
        self.handler(signal.SIGINT, None)
        return super().resolve(ref)


def test_ctrl_c_cancels_pending_lookups(tmp_path):
    """
    CANCELLATION TEST: Ctrl-C during a pin stops every lookup that has
    not been admitted yet, nothing is written and the handler is restored.
    """
    text = (
        "jobs:\n"
        "  build:\n"
        "    steps:\n"
        "      - uses: a/b@v1\n"
        "      - uses: c/d@v1\n"
    )
    path = tmp_path / "ci.yml"
    path.write_text(text)
    before = signal.getsignal(signal.SIGINT)

    resolver = InterruptingResolver(resolved={
        "actions://a/b@v1": f"a/b@{SHA}",
        "actions://c/d@v1": f"c/d@{SHA}",
    })
    runner = RatchetCLI(resolver=resolver, settings=Settings())
    assert runner.run(["pin", "--concurrency", "1", str(path)]) == 1

    assert resolver.handler == runner._interrupt
    assert resolver.calls == ["resolve:actions://a/b@v1"]
    assert path.read_text() == text
    assert signal.getsignal(signal.SIGINT) == before


def test_second_ctrl_c_aborts():
    runner = cli()
    runner._interrupt(signal.SIGINT, None)
    assert runner.cancel.is_set()
    with pytest.raises(KeyboardInterrupt):
        runner._interrupt(signal.SIGINT, None)
