# File: ublconv/cli.py
import json
import logging
from pathlib import Path

import click

from ublconv import constants
from ublconv.building.invoice import build_document
from ublconv.context import ALIASES, CONTEXTS, context_from_alias
from ublconv.errors import ConversionError
from ublconv.model import Invoice
from ublconv.parsing.document import parse_document, to_bytes
from ublconv.parsing.invoice import extract_binary_attachments, to_canonical
from ublconv.report import lines_frame, tax_frame, totals_by_category

log = logging.getLogger(__name__)


@click.group()
def main():
    """ublconv – pretvorba med kanoničnim računom in UBL 2.1."""
    logging.basicConfig(level=logging.INFO)


def _is_json(data: bytes) -> bool:
    return data.lstrip()[:1] in (b"{", b"[")


def _write(data: bytes, outfile):
    if outfile:
        Path(outfile).write_bytes(data)
        click.echo(f"[OK] {outfile}")
    else:
        click.echo(data.decode("utf-8"), nl=False)


@main.command()
@click.argument("infile", type=click.Path(exists=True, dir_okay=False))
@click.argument("outfile", type=click.Path(dir_okay=False), required=False)
@click.option(
    "--context",
    "context_name",
    default=None,
    help="Profil za izhodni UBL (privzeto UBLCONV_CONTEXT ali en16931)",
)
@click.option(
    "--profile-id",
    default=None,
    help="Zamenjaj ProfileID izbranega profila",
)
def convert(infile, outfile, context_name, profile_id):
    """Pretvori JSON račun v UBL ali UBL v JSON.

    Smer je določena z vsebino vhodne datoteke.
    """
    data = Path(infile).read_bytes()
    try:
        if _is_json(data):
            ctx = context_from_alias(context_name or constants.DEFAULT_CONTEXT, profile_id)
            root = build_document(Invoice.from_json(data), ctx)
            out = to_bytes(root)
        else:
            inv = to_canonical(parse_document(data))
            out = (json.dumps(inv.to_dict(), indent=2, ensure_ascii=False) + "\n").encode("utf-8")
    except ConversionError as exc:
        raise click.ClickException(str(exc)) from exc
    _write(out, outfile)


@main.command(name="contexts")
def list_contexts():
    """Izpiši podprte profile."""
    names: dict[str, list[str]] = {}
    for alias, ctx in ALIASES.items():
        names.setdefault(ctx.name, []).append(alias)
    for ctx in CONTEXTS:
        click.echo(f"{ctx.name}  ({', '.join(names.get(ctx.name, []))})")
        click.echo(f"    customization: {ctx.customization_id}")
        if ctx.profile_id:
            click.echo(f"    profile:       {ctx.profile_id}")
        if ctx.vesids.invoice:
            click.echo(f"    vesid:         {ctx.vesids.invoice} / {ctx.vesids.credit_note}")


def _load(invoice: str) -> Invoice:
    try:
        return to_canonical(parse_document(Path(invoice).read_bytes()))
    except ConversionError as exc:
        raise click.ClickException(str(exc)) from exc


@main.command()
@click.argument("invoice", type=click.Path(exists=True, dir_okay=False))
def summary(invoice):
    """Prikaži postavke in davčne podvsote UBL računa."""
    inv = _load(invoice)
    click.echo(f"{inv.code}  {inv.issue_date or ''}  {inv.currency}")
    lines = lines_frame(inv)
    click.echo(lines.to_string(index=False) if not lines.empty else "(brez postavk)")
    click.echo("")
    taxes = tax_frame(inv)
    if not taxes.empty:
        click.echo(taxes.to_string(index=False))
        click.echo("")
    grouped = totals_by_category(inv)
    if not grouped.empty:
        click.echo(grouped.to_string(index=False))
    if inv.totals is not None and inv.totals.payable is not None:
        click.echo(f"Za plačilo: {inv.totals.payable} {inv.currency}")


@main.command()
@click.argument("invoice", type=click.Path(exists=True, dir_okay=False))
@click.argument("outdir", type=click.Path(file_okay=False))
def attachments(invoice, outdir):
    """Shrani vgrajene priloge UBL računa v mapo."""
    try:
        found = extract_binary_attachments(parse_document(Path(invoice).read_bytes()))
    except ConversionError as exc:
        raise click.ClickException(str(exc)) from exc
    if not found:
        click.echo("Ni vgrajenih prilog.")
        return
    out = Path(outdir)
    out.mkdir(parents=True, exist_ok=True)
    for i, att in enumerate(found, start=1):
        name = Path(att.filename or att.id or f"attachment-{i}").name
        (out / name).write_bytes(att.data)
        click.echo(f"[OK] {name} ({len(att.data)} B)")


if __name__ == "__main__":
    main()
