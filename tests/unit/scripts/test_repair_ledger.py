"""
Repair CLI tests
"""

import json
from pathlib import Path

import pytest

from scripts.repair_ledger import build_parser, run


class TestBuildParser:
    """Argument parsing"""

    def test_link_requires_account(self) -> None:
        with pytest.raises(SystemExit):
            build_parser().parse_args(["link"])

    def test_merge_arguments(self) -> None:
        args = build_parser().parse_args(["merge", "--from", "Subscription", "--to", "Subscriptions", "--dry-run"])

        assert args.source == "Subscription"
        assert args.target == "Subscriptions"
        assert args.kind == "expense"
        assert args.dry_run

    def test_post_missing_arguments(self) -> None:
        args = build_parser().parse_args(["post-missing", "--limit", "5", "--dry-run"])

        assert args.command == "post-missing"
        assert args.limit == 5
        assert args.dry_run

    def test_common_options(self, tmp_path: Path) -> None:
        args = build_parser().parse_args(["--company", "acme", "--db", str(tmp_path / "x.db"), "analyze"])

        assert args.company == "acme"
        assert args.db == tmp_path / "x.db"


class TestRun:
    """run() against a fresh database"""

    @pytest.mark.asyncio
    async def test_analyze(self, tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
        args = build_parser().parse_args(["--company", "acme", "--db", str(tmp_path / "cli.db"), "analyze"])

        assert await run(args) == 0

        report = json.loads(capsys.readouterr().out)
        assert report["issues_found"] == 0
        assert report["accounts"] == []

    @pytest.mark.asyncio
    async def test_recalculate_dry_run(self, tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
        args = build_parser().parse_args(
            ["--db", str(tmp_path / "cli.db"), "recalculate", "--ledger-accounts", "--dry-run"]
        )

        assert await run(args) == 0

        report = json.loads(capsys.readouterr().out)
        assert report["dry_run"] is True
        assert report["ledger_accounts"]["updated"] == 0
