import json
import shutil
from pathlib import Path

from click.testing import CliRunner

from ublconv.cli import main
from ublconv.parsing.document import parse_document, text

DATA_DIR = Path(__file__).parent / "data"


def _sample(tmp_path):
    src = tmp_path / "invoice.json"
    shutil.copy(DATA_DIR / "invoice-standard.json", src)
    return src


def test_convert_json_to_ubl(tmp_path):
    out = tmp_path / "invoice.xml"
    result = CliRunner().invoke(main, ["convert", str(_sample(tmp_path)), str(out)])
    assert result.exit_code == 0, result.output
    assert f"[OK] {out}" in result.output
    root = parse_document(out.read_bytes())
    assert text(root, "cbc:ID") == "SAMPLE-001"
    assert text(root, "cbc:CustomizationID") == "urn:cen.eu:en16931:2017"


def test_convert_with_context_and_profile(tmp_path):
    out = tmp_path / "invoice.xml"
    result = CliRunner().invoke(
        main,
        [
            "convert",
            str(_sample(tmp_path)),
            str(out),
            "--context",
            "PEPPOL",
            "--profile-id",
            "urn:example:profile",
        ],
    )
    assert result.exit_code == 0, result.output
    root = parse_document(out.read_bytes())
    assert text(root, "cbc:ProfileID") == "urn:example:profile"


def test_convert_default_context_from_environment(tmp_path, monkeypatch):
    from ublconv import constants

    monkeypatch.setattr(constants, "DEFAULT_CONTEXT", "nemhandel")
    out = tmp_path / "invoice.xml"
    result = CliRunner().invoke(main, ["convert", str(_sample(tmp_path)), str(out)])
    assert result.exit_code == 0, result.output
    assert text(parse_document(out.read_bytes()), "cbc:UBLVersionID") == "2.1"


def test_convert_to_stdout(tmp_path):
    result = CliRunner().invoke(main, ["convert", str(_sample(tmp_path))])
    assert result.exit_code == 0
    assert "<cbc:ID>SAMPLE-001</cbc:ID>" in result.output


def test_convert_ubl_to_json(tmp_path):
    xml = tmp_path / "invoice.xml"
    CliRunner().invoke(main, ["convert", str(_sample(tmp_path)), str(xml)])
    out = tmp_path / "back.json"
    result = CliRunner().invoke(main, ["convert", str(xml), str(out)])
    assert result.exit_code == 0, result.output
    data = json.loads(out.read_text(encoding="utf-8"))
    assert data["code"] == "SAMPLE-001"
    assert data["customer"]["addresses"][0]["locality"] == "München"


def test_unknown_context(tmp_path):
    result = CliRunner().invoke(
        main, ["convert", str(_sample(tmp_path)), "--context", "nope"]
    )
    assert result.exit_code != 0
    assert "unknown context 'nope'" in result.output


def test_convert_reports_validation_error(tmp_path, invoice_dict):
    del invoice_dict["doc"]["tax"]
    src = tmp_path / "bad.json"
    src.write_text(json.dumps(invoice_dict), encoding="utf-8")
    result = CliRunner().invoke(main, ["convert", str(src)])
    assert result.exit_code == 1
    assert "tax.ext.untdid-document-type: required" in result.output


def test_convert_rejects_foreign_xml(tmp_path):
    src = tmp_path / "order.xml"
    src.write_bytes(b'<Order xmlns="urn:oasis:names:specification:ubl:schema:xsd:Order-2"/>')
    result = CliRunner().invoke(main, ["convert", str(src)])
    assert result.exit_code == 1
    assert "unknown document type" in result.output


def test_contexts_lists_every_profile():
    result = CliRunner().invoke(main, ["contexts"])
    assert result.exit_code == 0
    assert "peppol-self-billed  (peppol-self-billed, peppol-selfbilled, peppol-self)" in result.output
    assert "customization: OIOUBL-2.1" in result.output
    assert result.output.count("customization:") == 8


def test_summary(tmp_path):
    xml = tmp_path / "invoice.xml"
    CliRunner().invoke(main, ["convert", str(_sample(tmp_path)), str(xml)])
    result = CliRunner().invoke(main, ["summary", str(xml)])
    assert result.exit_code == 0, result.output
    assert "SAMPLE-001  2024-02-13  EUR" in result.output
    assert "Development services" in result.output
    assert "Za plačilo: 1970.20 EUR" in result.output


def test_attachments_written_to_folder(tmp_path, invoice_dict):
    invoice_dict["doc"]["attachments"] = [
        {"code": "ATT-1", "name": "terms.txt", "mime": "text/plain", "data": "aGVsbG8="},
        {"code": "ATT-2", "mime": "text/plain", "data": "d29ybGQ="},
    ]
    src = tmp_path / "invoice.json"
    src.write_text(json.dumps(invoice_dict), encoding="utf-8")
    xml = tmp_path / "invoice.xml"
    CliRunner().invoke(main, ["convert", str(src), str(xml)])

    outdir = tmp_path / "att"
    result = CliRunner().invoke(main, ["attachments", str(xml), str(outdir)])
    assert result.exit_code == 0, result.output
    assert (outdir / "terms.txt").read_bytes() == b"hello"
    assert (outdir / "ATT-2").read_bytes() == b"world"
    assert "[OK] terms.txt (5 B)" in result.output


def test_attachments_none_found(tmp_path):
    xml = tmp_path / "invoice.xml"
    CliRunner().invoke(main, ["convert", str(_sample(tmp_path)), str(xml)])
    result = CliRunner().invoke(main, ["attachments", str(xml), str(tmp_path / "att")])
    assert result.exit_code == 0
    assert "Ni vgrajenih prilog." in result.output
    assert not (tmp_path / "att").exists()


def test_convert_bad_attachment_is_reported(tmp_path):
    data = json.loads((DATA_DIR / "invoice-standard.json").read_text(encoding="utf-8"))
    data["doc"]["attachments"] = [{"code": "ATT-1", "data": "@@@not-base64"}]
    src = tmp_path / "bad.json"
    src.write_text(json.dumps(data), encoding="utf-8")
    result = CliRunner().invoke(main, ["convert", str(src)])
    assert result.exit_code == 1
    assert "invalid base64 data" in result.output
    assert result.exception is None or isinstance(result.exception, SystemExit)


def test_convert_other_document_type(tmp_path):
    src = tmp_path / "order.json"
    src.write_text(
        json.dumps({"doc": {"$schema": "https://gobl.org/draft-0/bill/order", "code": "1"}}),
        encoding="utf-8",
    )
    result = CliRunner().invoke(main, ["convert", str(src)])
    assert result.exit_code == 1
    assert "unsupported document type" in result.output
