from __future__ import annotations

import json
from decimal import Decimal
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from prediction_resolver.cli import main
from prediction_resolver.models.prediction import Category
from prediction_resolver.resolution.actors import ActorDirectory
from prediction_resolver.resolution.errors import ErrorCode, ResolutionError
from prediction_resolver.resolution.sweep import SweepReport
from prediction_resolver.services import Services

from fakes import build_account, slot_values, wallet


class TestCLIParsing:
    def test_no_command_fails(self) -> None:
        with pytest.raises(SystemExit):
            main([])

    def test_help_flag(self) -> None:
        with pytest.raises(SystemExit) as exc_info:
            main(["--help"])
        assert exc_info.value.code == 0

    def test_resolve_command_parses(self) -> None:
        with patch("prediction_resolver.cli.cmd_resolve", return_value=0) as mock_cmd:
            with pytest.raises(SystemExit):
                main(["resolve", "--wallet", "abc", "--type", "top_performer", "--index", "2"])
            args = mock_cmd.call_args[0][0]
            assert args.wallet == "abc"
            assert args.type == "top_performer"
            assert args.index == 2

    def test_resolve_rejects_unknown_type(self) -> None:
        with pytest.raises(SystemExit):
            main(["resolve", "--wallet", "abc", "--type", "sideways", "--index", "0"])

    def test_resolve_batch_agent(self) -> None:
        with patch("prediction_resolver.cli.cmd_resolve_batch", return_value=0) as mock_cmd:
            with pytest.raises(SystemExit):
                main(["resolve-batch", "--agent", "gpt-5.2"])
            assert mock_cmd.call_args[0][0].agent == "gpt-5.2"

    def test_migrate_command(self) -> None:
        with patch("prediction_resolver.cli.cmd_migrate", return_value=0) as mock_cmd:
            with pytest.raises(SystemExit) as exc_info:
                main(["migrate"])
            mock_cmd.assert_called_once()
            assert exc_info.value.code == 0

    def test_serve_defaults(self) -> None:
        with patch("prediction_resolver.cli.cmd_serve", return_value=0) as mock_cmd:
            with pytest.raises(SystemExit):
                main(["serve"])
            args = mock_cmd.call_args[0][0]
            assert args.port == 8000

    def test_verbose_flag(self) -> None:
        with patch("prediction_resolver.cli.cmd_sweep", return_value=0) as mock_cmd:
            with pytest.raises(SystemExit):
                main(["-v", "sweep"])
            assert mock_cmd.call_args[0][0].verbose is True


def _services() -> MagicMock:
    services = MagicMock(spec=Services)
    services.actors = ActorDirectory({})
    services.engine = MagicMock()
    services.sweeper = MagicMock()
    services.gateway = MagicMock()
    services.close = AsyncMock()
    return services


class TestCommands:
    def test_sweep_prints_report(self, capsys: pytest.CaptureFixture[str]) -> None:
        services = _services()
        services.sweeper.run_once = AsyncMock(return_value=SweepReport(owners_scanned=4))

        with patch("prediction_resolver.cli.open_services", new=AsyncMock(return_value=services)), \
                patch("prediction_resolver.cli.load_config"):
            with pytest.raises(SystemExit) as exc_info:
                main(["sweep"])

        assert exc_info.value.code == 0
        assert json.loads(capsys.readouterr().out)["ownersScanned"] == 4
        services.close.assert_awaited_once()

    def test_resolution_error_exit_code(self, capsys: pytest.CaptureFixture[str]) -> None:
        services = _services()
        services.engine.resolve_one = AsyncMock(
            side_effect=ResolutionError(ErrorCode.LOCK_HELD, "busy"),
        )

        with patch("prediction_resolver.cli.open_services", new=AsyncMock(return_value=services)), \
                patch("prediction_resolver.cli.load_config"):
            with pytest.raises(SystemExit) as exc_info:
                main(["resolve", "--wallet", wallet(1), "--type", "worst_performer", "--index", "1"])

        assert exc_info.value.code == 1
        out = json.loads(capsys.readouterr().out)
        assert out["error"] == "LOCK_HELD"
        services.engine.resolve_one.assert_awaited_once()
        assert services.engine.resolve_one.await_args.args[1] is Category.UNDERPERFORM
        services.close.assert_awaited_once()

    def test_decode_prints_account(self, capsys: pytest.CaptureFixture[str]) -> None:
        owner = wallet(2)
        services = _services()
        services.gateway.fetch_account = AsyncMock(
            return_value=build_account(owner, top={0: slot_values("bitcoin")}, points=75),
        )

        with patch("prediction_resolver.cli.open_services", new=AsyncMock(return_value=services)), \
                patch("prediction_resolver.cli.load_config"):
            with pytest.raises(SystemExit):
                main(["decode", "--wallet", owner])

        out = json.loads(capsys.readouterr().out)
        assert out["owner"] == owner
        assert out["points"] == 75
        assert out["slots"][0]["symbol"] == "bitcoin"
        assert Decimal(out["slots"][0]["entryPrice"]) == Decimal(100)
