import json

from typer.testing import CliRunner

from chaintrack_api.merkle import build_tree
from chaintrack_cli.__main__ import app

runner = CliRunner()


def test_build_root():
    r = runner.invoke(app, ["build-root", "P1", "P2", "P3"])
    assert r.exit_code == 0, r.output
    assert "root" in r.output


def test_build_root_empty_fails():
    r = runner.invoke(app, ["build-root"])
    assert r.exit_code == 1


def test_commit_prove_verify(tmp_path):
    items = tmp_path / "items.txt"
    items.write_text("A-1\nA-2\n\nA-3\n")
    r = runner.invoke(
        app, ["commit", "--batch-code", "CLI-1", "--product-type", "oil", "--file", str(items)]
    )
    assert r.exit_code == 0, r.output
    assert (tmp_path / "storage" / "batches" / "CLI-1.json").exists()

    r = runner.invoke(app, ["prove", "--batch-code", "CLI-1", "--item", "A-2"])
    assert r.exit_code == 0, r.output
    proof = json.loads(r.output)
    assert proof["root"] == build_tree(["A-1", "A-2", "A-3"]).root

    proof_path = tmp_path / "proof.json"
    proof_path.write_text(json.dumps(proof))
    r = runner.invoke(app, ["verify", str(proof_path), "--item", "A-2"])
    assert r.exit_code == 0, r.output
    r = runner.invoke(app, ["verify", str(proof_path), "--item", "A-3"])
    assert r.exit_code == 1


def test_commit_with_generated_codes():
    r = runner.invoke(
        app, ["commit", "--batch-code", "CLI-2", "--product-type", "oil", "--count", "3"]
    )
    assert r.exit_code == 0, r.output
    r = runner.invoke(app, ["prove", "--batch-code", "CLI-2", "--item", "CLI-2-ITEM-00003"])
    assert r.exit_code == 0


def test_verify_malformed_proof(tmp_path):
    p = tmp_path / "bad.json"
    p.write_text(json.dumps({"leaf": "0x12", "proof": [], "root": "0x34"}))
    r = runner.invoke(app, ["verify", str(p)])
    assert r.exit_code == 2


def test_prove_unknown_batch():
    r = runner.invoke(app, ["prove", "--batch-code", "NONE", "--item", "x"])
    assert r.exit_code == 1


def test_anchor_records_tx(tmp_path):
    r = runner.invoke(app, ["commit", "--batch-code", "CLI-2", "--product-type", "oil", "--count", "2"])
    assert r.exit_code == 0, r.output
    tx = "0x" + "ab" * 32
    r = runner.invoke(app, ["anchor", "--batch-code", "CLI-2", "--tx-hash", tx])
    assert r.exit_code == 0, r.output
    stored = json.loads((tmp_path / "storage" / "batches" / "CLI-2.json").read_text())
    assert stored["tx_hash"] == tx
    r = runner.invoke(app, ["anchor", "--batch-code", "CLI-2", "--tx-hash", "0x12"])
    assert r.exit_code == 1


def test_serve_runs_uvicorn(monkeypatch):
    calls = []
    monkeypatch.setattr("chaintrack_cli.__main__.uvicorn.run", lambda *a, **kw: calls.append((a, kw)))
    r = runner.invoke(app, ["serve", "--port", "9000"])
    assert r.exit_code == 0, r.output
    assert calls == [(("chaintrack_api.main:app",), {"host": "127.0.0.1", "port": 9000, "reload": False})]
