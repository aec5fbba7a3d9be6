"""Tests for the command line entry point."""

import json
from pathlib import Path
from unittest.mock import MagicMock, patch

import pytest
import redis
import yaml

from folio.__main__ import main
from folio.state.redis_backend import STATE_VERSION

T0 = 1_767_225_600
EXAMPLE = Path(__file__).parents[2] / "config" / "snapshot.example.yaml"


@pytest.fixture
def mock_client():
    with patch("folio.state.redis_backend.redis.Redis") as mock_redis_cls:
        client = MagicMock()
        mock_redis_cls.return_value = client
        yield client


class TestCli:
    def test_plan_prints_json(self, settings_file, capsys, restore_logging):
        assert main(["plan", str(EXAMPLE), "--config", str(settings_file)]) == 0

        out = json.loads(capsys.readouterr().out)
        assert out["target_basket"] == [75 * 10**16, 25 * 10**16]
        assert len(out["trades"]) == 1

    def test_invalid_snapshot_fails(self, tmp_path, settings_file, capsys, restore_logging):
        path = tmp_path / "one_token.yaml"
        with open(path, "w") as f:
            yaml.dump(
                {
                    "supply": 10**18,
                    "tokens": [{"symbol": "USDC", "decimals": 6, "balance": 1, "price": "1", "target": "1"}],
                },
                f,
            )

        assert main(["plan", str(path), "--config", str(settings_file)]) == 1
        assert "Planning failed" in capsys.readouterr().err

    def test_missing_snapshot_fails(self, tmp_path, settings_file, capsys, restore_logging):
        assert main(["plan", str(tmp_path / "missing.yaml"), "--config", str(settings_file)]) == 1
        assert "Planning failed" in capsys.readouterr().err

    def test_requires_command(self):
        with pytest.raises(SystemExit):
            main([])


class TestStateCommand:
    def test_show(self, started_folio, mock_client, settings_file, capsys, restore_logging):
        mock_client.get.return_value = json.dumps(
            {"version": STATE_VERSION, "folio": started_folio.to_state_dict()}
        )

        code = main(["state", "show", "folio-1", "--now", str(T0 + 1), "--config", str(settings_file)])

        assert code == 0
        out = json.loads(capsys.readouterr().out)
        assert out["lifecycle"] == "ACTIVE"
        assert out["nonce"] == 1
        assert out["limit_span"] == 2 * 10**17
        assert out["auctions"] == 0
        mock_client.get.assert_called_once_with("folio:state:folio-1")
        mock_client.close.assert_called_once()

    def test_show_without_saved_state(self, mock_client, settings_file, capsys, restore_logging):
        mock_client.get.return_value = None
        assert main(["state", "show", "folio-1", "--config", str(settings_file)]) == 1
        assert "No saved state" in capsys.readouterr().err

    def test_clear(self, mock_client, settings_file, capsys, restore_logging):
        assert main(["state", "clear", "folio-1", "--config", str(settings_file)]) == 0
        mock_client.delete.assert_called_once_with("folio:state:folio-1")

    def test_redis_failure(self, mock_client, settings_file, capsys, restore_logging):
        mock_client.get.side_effect = redis.ResponseError("WRONGTYPE")
        assert main(["state", "show", "folio-1", "--config", str(settings_file)]) == 1
        assert "State show failed" in capsys.readouterr().err
        mock_client.close.assert_called_once()
