from __future__ import annotations

import json
from pathlib import Path

import pytest

from jackpot_engine.settlement.cli import main, parse_args


def test_split_command_prints_claim_amounts(capsys: pytest.CaptureFixture[str]) -> None:
    main(["split", "--pot", "1250000", "--fee-bps", "25"])
    assert json.loads(capsys.readouterr().out) == {"fee": 2_625, "payout": 1_047_375, "vrf_reimburse": 200_000}
    main(["split", "--pot", "1250000", "--fee-bps", "25", "--no-reimburse"])
    assert json.loads(capsys.readouterr().out)["payout"] == 1_246_875


def test_candidates_command_uses_pool_file(capsys: pytest.CaptureFixture[str]) -> None:
    main(
        [
            "candidates",
            "--pool",
            "config/jackpot/degen_pool_v1.yaml",
            "--randomness",
            "00" * 32,
            "--count",
            "3",
        ]
    )
    listing = json.loads(capsys.readouterr().out)
    assert [item["rank"] for item in listing] == [0, 1, 2]
    assert listing[0] == {"rank": 0, "token_index": 10, "asset": "POPCAT"}
    assert len({item["token_index"] for item in listing}) == 3


def test_check_config_summarises_defaults(capsys: pytest.CaptureFixture[str], monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("JACKPOT_ADMIN", "ops")
    main(
        [
            "check-config",
            "--protocol",
            "config/jackpot/protocol_v0.yaml",
            "--degen",
            "config/jackpot/degen_v0.yaml",
            "--pool",
            "config/jackpot/degen_pool_v1.yaml",
        ]
    )
    summary = json.loads(capsys.readouterr().out)
    assert summary["protocol"]["admin"] == "ops"
    assert summary["protocol"]["fee_bps"] == 25
    assert summary["degen"]["fallback_timeout_sec"] == 300
    assert summary["pool"] == {
        "version": 1,
        "size": 16,
        "snapshot_sha256": "b7a156e2b65c2c577c47b8d99fe5a8e2288c71cb20c91983bc4e6971731db436",
    }


def test_check_config_rejects_invalid_file(tmp_path: Path) -> None:
    path = tmp_path / "protocol.yaml"
    path.write_text(
        "admin: admin\ntreasury_account: treasury\nfee_bps: 20000\nticket_unit: 1\nround_duration_sec: 60\n",
        encoding="utf-8",
    )
    with pytest.raises(ValueError, match="INVALID_FEE_BPS"):
        main(["check-config", "--protocol", str(path)])


def test_subcommand_is_required() -> None:
    with pytest.raises(SystemExit):
        parse_args([])
    assert parse_args(["--log-path", "x.log", "split", "--pot", "1", "--fee-bps", "0"]).log_path == "x.log"
