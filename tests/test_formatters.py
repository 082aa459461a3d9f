import io
import json
import threading
from pathlib import Path

from rich.console import Console

from repox.core import Config, ExecutionResult, OperationResult, Outcome, RunSummary
from repox.formatters import OutputFormatter, OutputSynchronizer


def make_result(repo, outcome=Outcome.OK, execution=None, command="pull"):
    return OperationResult(
        repo=repo,
        path=Path("/dev") / repo,
        requested=command,
        command=command,
        outcome=outcome,
        execution=execution,
    )


def test_blocks_are_not_interleaved():
    out = io.StringIO()
    console = Console(file=out, width=200)
    output = OutputSynchronizer(console, Console(file=io.StringIO(), width=200))
    lines = [f"line {i}" for i in range(50)]

    def report(repo):
        execution = ExecutionResult(stdout="\n".join(f"{repo} {line}" for line in lines), returncode=0)
        output.report(make_result(repo, execution=execution))

    threads = [threading.Thread(target=report, args=(f"repo{i}",)) for i in range(8)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    blocks = [block for block in out.getvalue().split("\n\n") if block]
    assert len(blocks) == 8
    for block in blocks:
        header, *body = block.strip().splitlines()
        repo = header.split(": ")[1].split(" ")[0]
        assert body == [f"{repo} {line}" for line in lines]


def test_captured_output_is_not_treated_as_markup():
    out = io.StringIO()
    output = OutputSynchronizer(Console(file=out, width=200), Console(file=io.StringIO()))
    execution = ExecutionResult(stdout="[bold]not markup[/bold]\n", returncode=0)

    output.report(make_result("foo", execution=execution))

    assert "[bold]not markup[/bold]" in out.getvalue()


def test_silent_outcomes_and_disabled_output():
    out, err = io.StringIO(), io.StringIO()
    output = OutputSynchronizer(Console(file=out), Console(file=err))
    output.report(make_result("a", outcome=Outcome.SKIPPED))
    output.report(make_result("b", outcome=Outcome.CLEAN))

    disabled = OutputSynchronizer(Console(file=out), Console(file=err), enabled=False)
    disabled.report(make_result("c", execution=ExecutionResult(stdout="x", returncode=0)))

    assert out.getvalue() == ""
    assert err.getvalue() == ""


def test_run_summary_counts_outcomes():
    results = [
        make_result("a", Outcome.OK),
        make_result("b", Outcome.OK),
        make_result("c", Outcome.FAILED),
        make_result("d", Outcome.ERROR),
        make_result("e", Outcome.SKIPPED),
        make_result("f", Outcome.CLEAN),
    ]

    summary = RunSummary.from_results(results)

    assert summary.to_dict() == {
        "total": 6,
        "ok": 2,
        "failed": 1,
        "errors": 1,
        "skipped": 1,
        "clean": 1,
        "planned": 0,
    }


def test_print_summary():
    out = io.StringIO()
    formatter = OutputFormatter(Console(file=out, width=200))

    formatter.print_summary(RunSummary(total=3, ok=2, failed=1))

    assert "Done: 3 repositories | 2 ok | 1 failed" in out.getvalue()


def test_print_results_json():
    out = io.StringIO()
    formatter = OutputFormatter(Console(file=out, width=80), use_json=True)
    config = Config(command="pull", sub_dir="github", dev_dir=Path("/dev/github"), parallels=3)
    results = [
        make_result("b", execution=ExecutionResult(stdout="ok", returncode=0)),
        make_result("a", outcome=Outcome.FAILED, execution=ExecutionResult(returncode=1)),
    ]

    formatter.print_results_json(config, results, RunSummary.from_results(results))

    data = json.loads(out.getvalue())
    assert data["command"] == "pull"
    assert data["parallels"] == 3
    assert [r["repo"] for r in data["results"]] == ["a", "b"]
    assert data["results"][0]["outcome"] == "failed"
    assert data["results"][0]["success"] is False
    assert data["results"][1]["execution"]["stdout"] == "ok"
    assert data["summary"]["failed"] == 1


LONG_REPO = (
    "https://github.example.com/some-very-long-organization-name/"
    "an-equally-long-repository-name.git"
)


def test_long_identifiers_stay_on_one_line():
    out, err = io.StringIO(), io.StringIO()
    output = OutputSynchronizer(Console(file=out, width=80), Console(file=err, width=80))
    failed = ExecutionResult(stderr="fatal: repository not found\n", returncode=128)
    missing = ExecutionResult(error="[Errno 2] No such file or directory: 'git'")

    output.report(make_result(LONG_REPO, outcome=Outcome.FAILED, execution=failed))
    output.report(make_result(LONG_REPO, outcome=Outcome.ERROR, execution=missing))

    assert f"=== PULL: {LONG_REPO} === (exit 128)\n" in out.getvalue()
    assert f"[ERROR] pull failed on {LONG_REPO}:" in err.getvalue().splitlines()[1]


def test_header_shows_requested_and_resolved_command():
    out = io.StringIO()
    output = OutputSynchronizer(Console(file=out, width=200), Console(file=io.StringIO()))
    result = make_result("foo", execution=ExecutionResult(returncode=0), command="pull")
    result.command = "clone"

    output.report(result)

    assert "=== PULL: foo === (clone)" in out.getvalue()
