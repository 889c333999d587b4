from __future__ import annotations
import json
import pathlib
from typing import List, Optional

import typer
import uvicorn
from rich import print

from chaintrack_api.batches import (
    commit_batch,
    generate_item_codes,
    load_commitment,
    proof_for_item,
    record_anchor,
    save_commitment,
)
from chaintrack_api.errors import FormatError, InputError, LedgerError
from chaintrack_api.ledger import LedgerClient, explorer_url
from chaintrack_api.merkle import InclusionProof, MerkleTree, hash_leaf, verify
from chaintrack_api.verification import verify_item

app = typer.Typer(add_completion=False, no_args_is_help=True)


def _read_items(items: Optional[List[str]], file: Optional[str]) -> List[str]:
    if file:
        lines = pathlib.Path(file).read_text(encoding="utf-8").splitlines()
        return [line for line in lines if line.strip()]
    return list(items or [])


@app.command()
def build_root(
    items: Optional[List[str]] = typer.Argument(None, help="Item identifiers"),
    file: Optional[str] = typer.Option(None, help="File with one item per line"),
):
    """Print the Merkle root for a list of item identifiers."""
    try:
        tree = MerkleTree.from_items(_read_items(items, file))
    except InputError as e:
        print(f"[red]{e}[/red]")
        raise typer.Exit(code=1)
    print({"root": tree.root, "leaves": len(tree), "depth": tree.depth})


@app.command()
def commit(
    batch_code: str = typer.Option(..., help="Batch code (also the storage key)"),
    product_type: str = typer.Option(..., help="Product type label"),
    count: Optional[int] = typer.Option(None, help="Generate this many item codes"),
    file: Optional[str] = typer.Option(None, help="File with one item per line"),
):
    """Build a batch commitment and store root plus per-item proofs."""
    try:
        if file:
            items = _read_items(None, file)
        elif count is not None:
            items = generate_item_codes(batch_code, count)
        else:
            raise typer.BadParameter("provide --count or --file")
        commitment = commit_batch(batch_code, product_type, items)
    except InputError as e:
        print(f"[red]{e}[/red]")
        raise typer.Exit(code=1)
    out = save_commitment(commitment)
    print(f"[green]Wrote commitment to {out}[/green]")
    print({"merkle_root": commitment.merkle_root, "item_count": commitment.item_count})


@app.command()
def prove(
    batch_code: str = typer.Option(...),
    item: str = typer.Option(..., help="Item identifier to prove"),
):
    """Print the stored inclusion proof for one item as JSON."""
    try:
        proof = proof_for_item(load_commitment(batch_code), item)
    except (FileNotFoundError, InputError) as e:
        print(f"[red]{e}[/red]")
        raise typer.Exit(code=1)
    typer.echo(json.dumps(proof.to_dict(), indent=2))


@app.command()
def anchor(
    batch_code: str = typer.Option(...),
    tx_hash: str = typer.Option(..., help="Transaction that submitted the root"),
):
    """Record the ledger transaction for a stored batch."""
    try:
        commitment = record_anchor(batch_code, tx_hash)
    except (FileNotFoundError, InputError) as e:
        print(f"[red]{e}[/red]")
        raise typer.Exit(code=1)
    print(f"[green]Anchored {commitment.batch_code}[/green]: {explorer_url(tx_hash)}")


@app.command("verify")
def verify_cmd(
    path: str = typer.Argument(..., help="Proof JSON file {leaf, proof, root}"),
    item: Optional[str] = typer.Option(None, help="Claimed item identifier"),
):
    """Verify a proof locally, without the ledger."""
    obj = json.loads(pathlib.Path(path).read_text())
    try:
        proof = InclusionProof.from_dict(obj)
        ok = verify(proof)
    except FormatError as e:
        print(f"[red]malformed proof: {e}[/red]")
        raise typer.Exit(code=2)
    if item is not None:
        ok = ok and hash_leaf(item) == proof.leaf
    print({"valid": ok})
    if not ok:
        raise typer.Exit(code=1)


@app.command()
def onchain_root(batch_code: str, rpc_url: Optional[str] = typer.Option(None)):
    """Fetch the committed root for a batch from the ledger."""
    try:
        root = LedgerClient(rpc_url=rpc_url).get_batch_merkle_root(batch_code)
    except LedgerError as e:
        print(f"[red]ledger error: {e}[/red]")
        raise typer.Exit(code=2)
    if root is None:
        print(f"[yellow]No root on ledger for {batch_code}[/yellow]")
        raise typer.Exit(code=1)
    print({"batch_code": batch_code, "merkle_root": root})


@app.command()
def onchain_verify(
    batch_code: str = typer.Option(...),
    item: str = typer.Option(...),
    rpc_url: Optional[str] = typer.Option(None),
):
    """Verify a stored item proof locally and against the ledger."""
    try:
        proof = proof_for_item(load_commitment(batch_code), item)
        client = LedgerClient(rpc_url=rpc_url)
        result = verify_item(item, proof, ledger=client, batch_code=batch_code)
    except (FileNotFoundError, InputError) as e:
        print(f"[red]{e}[/red]")
        raise typer.Exit(code=1)
    except LedgerError as e:
        print(f"[red]ledger error: {e}[/red]")
        raise typer.Exit(code=2)
    print(result.model_dump())
    print(f"[cyan]Contract[/cyan]: {explorer_url(client.contract_address, kind='address')}")
    if result.status != "verified":
        raise typer.Exit(code=1)


@app.command()
def serve(
    host: str = typer.Option("127.0.0.1"),
    port: int = typer.Option(8000),
    reload: bool = typer.Option(False, help="Reload on code changes (development)"),
):
    """Run the HTTP service."""
    uvicorn.run("chaintrack_api.main:app", host=host, port=port, reload=reload)


if __name__ == "__main__":
    app()
