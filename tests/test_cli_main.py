import json

from streamguard.cli.main import CliUsageError, _resolve_variants, main
from streamguard.core.driver import VARIANTS

import pytest


def test_resolve_variants_defaults_to_all():
    assert _resolve_variants(None) == list(VARIANTS)


def test_resolve_variants_dedupes():
    assert _resolve_variants(["envelope", "envelope"]) == ["envelope"]


def test_resolve_variants_rejects_unknown():
    with pytest.raises(CliUsageError, match="unknown variant"):
        _resolve_variants(["nope"])


def test_check_writes_payload_file(endpoint, tmp_path):
    out = tmp_path / "out.json"

    code = main(["check", "-t", endpoint.url("/foo"), "--repeat", "2", "--no-log-file", "-o", str(out)])

    payload = json.loads(out.read_text(encoding="utf-8"))
    assert code == 0
    assert payload["ok"] is True
    assert payload["meta"]["command"] == "check"
    assert len(payload["data"]["runs"]) == 2 * len(VARIANTS)
    assert all(r["released"] == r["handles"] == 1 for r in payload["data"]["runs"])


def test_check_reports_unexpected_status(endpoint, tmp_path):
    url = endpoint.stub("/foo", status=500, body=b"boom")
    out = tmp_path / "out.json"

    code = main(["check", "-t", url, "--variant", "envelope", "--no-log-file", "-o", str(out)])

    payload = json.loads(out.read_text(encoding="utf-8"))
    assert code == 1
    assert payload["ok"] is False
    assert any("UnexpectedStatusError" in e for e in payload["errors"])


def test_check_unknown_variant_is_usage_error(endpoint, capsys):
    code = main(["check", "-t", endpoint.url("/foo"), "--variant", "nope", "--no-log-file"])

    printed = json.loads(capsys.readouterr().out)
    assert code == 2
    assert "unknown variant" in printed["errors"][0]


def test_variants_table(capsys):
    code = main(["variants", "--format", "table", "--no-log-file"])

    out = capsys.readouterr().out
    assert code == 0
    for name in VARIANTS:
        assert name in out


def test_check_rejects_bad_chunk_size(endpoint, capsys):
    code = main(["check", "-t", endpoint.url("/foo"), "--chunk-size", "0", "--no-log-file"])

    printed = json.loads(capsys.readouterr().out)
    assert code == 2
    assert "--chunk-size" in printed["errors"][0]
