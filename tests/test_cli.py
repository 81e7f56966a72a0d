"""Tests for the command-line interface."""

import json
from pathlib import Path
from unittest.mock import MagicMock, patch

import pytest

from refundai.cli import extract_single, generate_from_form, main, preprocess_single
from refundai.extraction.fields import ParsedFormData
from refundai.extraction.receipt_extractor import ExtractionResult
from refundai.ocr.receipt_reader import ReadResult
from refundai.refund.client import RefundOutcome
from refundai.refund.template import render_local_template
from refundai.utils.config import AppConfig, ServerConfig
from refundai.validation.form_rules import RefundForm, to_generate_request

VALID_FORM = {
    "company": "eBay",
    "country": "DE",
    "firstName": "Ada",
    "lastName": "Lovelace",
    "productName": "Camera",
    "orderNumber": "E-77",
    "purchaseDate": "2024-02-10",
    "issueCategory": "product",
    "issueType": "Damaged product",
    "description": "The lens arrived cracked.",
    "tone": 60,
}


def _write_form(path: Path, values: dict) -> Path:
    path.write_text(json.dumps(values), encoding="utf-8")
    return path


def _extraction_result() -> ExtractionResult:
    return ExtractionResult(
        text="Order #E-77",
        fields=ParsedFormData(order_number="E-77", company="eBay"),
        source="rules",
        warnings=["LLM parsing unavailable: no key"],
        read=ReadResult(
            source_file="receipt.png",
            kind="image",
            text="Order #E-77",
            has_text=True,
            thresholds=[140],
        ),
    )


class TestExtractSingle:
    """Tests for single-file extraction."""

    @patch("refundai.cli.ReceiptExtractor")
    @patch("refundai.cli.load_config")
    def test_extract_single_returns_fields(
        self,
        mock_config: MagicMock,
        mock_extractor_cls: MagicMock,
        tmp_path: Path,
    ) -> None:
        mock_config.return_value = AppConfig()
        mock_extractor_cls.return_value.extract.return_value = _extraction_result()

        result = extract_single(tmp_path / "receipt.png")

        assert result["filename"] == "receipt.png"
        assert result["fields"] == {"company": "eBay", "orderNumber": "E-77"}
        assert result["source"] == "rules"
        assert result["threshold"] == 140
        assert result["raw_text"] == "Order #E-77"

    @patch("refundai.cli.ReceiptExtractor")
    @patch("refundai.cli.load_config")
    def test_extract_single_without_llm(
        self,
        mock_config: MagicMock,
        mock_extractor_cls: MagicMock,
        tmp_path: Path,
    ) -> None:
        mock_config.return_value = AppConfig()
        mock_extractor_cls.return_value.extract.return_value = _extraction_result()

        extract_single(tmp_path / "receipt.png", use_llm=False)

        kwargs = mock_extractor_cls.return_value.extract.call_args.kwargs
        assert kwargs["use_llm"] is False


class TestPreprocessSingle:
    """Tests for writing the binarized preview image."""

    @patch("refundai.cli.load_config")
    def test_writes_jpeg(
        self, mock_config: MagicMock, tmp_path: Path, png_bytes: bytes
    ) -> None:
        mock_config.return_value = AppConfig()
        image_path = tmp_path / "receipt.png"
        image_path.write_bytes(png_bytes)
        output_path = tmp_path / "out" / "binary.jpg"

        threshold = preprocess_single(image_path, output_path)

        assert output_path.exists()
        assert output_path.read_bytes()[:2] == b"\xff\xd8"
        assert isinstance(threshold, int)


class TestGenerateFromForm:
    """Tests for generating an email from a saved form."""

    @patch("refundai.cli.load_config")
    def test_invalid_form(self, mock_config: MagicMock, tmp_path: Path) -> None:
        mock_config.return_value = AppConfig()
        form_path = _write_form(tmp_path / "form.json", {**VALID_FORM, "lastName": ""})

        response, errors = generate_from_form(form_path, "en")

        assert response is None
        assert errors == {"last_name": "Last name is required."}

    @patch("refundai.cli.RefundClient")
    @patch("refundai.cli.load_config")
    def test_valid_form(
        self,
        mock_config: MagicMock,
        mock_client_cls: MagicMock,
        tmp_path: Path,
    ) -> None:
        mock_config.return_value = AppConfig(default_locale="fr")
        request = to_generate_request(RefundForm.model_validate(VALID_FORM), "fr")
        mock_client_cls.return_value.generate.return_value = RefundOutcome(
            response=render_local_template(request), tier="template"
        )
        form_path = _write_form(tmp_path / "form.json", VALID_FORM)

        response, errors = generate_from_form(form_path)

        assert errors == {}
        assert response is not None
        assert response["tier"] == "template"
        assert response["bestEmail"] == "support@ebay.com"
        sent = mock_client_cls.return_value.generate.call_args.args[0]
        assert sent.locale == "fr"


class TestMain:
    """Tests for the CLI main entry point."""

    def test_no_command_shows_help(self, capsys: pytest.CaptureFixture[str]) -> None:
        with pytest.raises(SystemExit) as exc_info:
            main([])
        assert exc_info.value.code == 0
        assert "extract" in capsys.readouterr().out

    def test_extract_missing_file(
        self, tmp_path: Path, capsys: pytest.CaptureFixture[str]
    ) -> None:
        with pytest.raises(SystemExit) as exc_info:
            main(["extract", str(tmp_path / "missing.png")])
        assert exc_info.value.code == 1
        assert "does not exist" in capsys.readouterr().err

    @patch("refundai.cli.extract_single")
    def test_extract_writes_output(
        self, mock_extract: MagicMock, tmp_path: Path
    ) -> None:
        receipt = tmp_path / "receipt.png"
        receipt.write_bytes(b"\x89PNG")
        output = tmp_path / "result.json"
        mock_extract.return_value = {"filename": "receipt.png", "fields": {}}

        main(["extract", str(receipt), "--no-llm", "-o", str(output)])

        mock_extract.assert_called_once_with(receipt, False)
        assert json.loads(output.read_text())["filename"] == "receipt.png"

    @patch("refundai.cli.generate_from_form")
    def test_generate_prints_validation_errors(
        self,
        mock_generate: MagicMock,
        tmp_path: Path,
        capsys: pytest.CaptureFixture[str],
    ) -> None:
        form_path = _write_form(tmp_path / "form.json", {})
        mock_generate.return_value = (None, {"country": "Country is required."})

        with pytest.raises(SystemExit) as exc_info:
            main(["generate", str(form_path), "-l", "en"])

        assert exc_info.value.code == 1
        assert "country: Country is required." in capsys.readouterr().err

    @patch("refundai.cli.generate_from_form")
    def test_generate_prints_json(
        self,
        mock_generate: MagicMock,
        tmp_path: Path,
        capsys: pytest.CaptureFixture[str],
    ) -> None:
        form_path = _write_form(tmp_path / "form.json", VALID_FORM)
        mock_generate.return_value = ({"subject": "Rückerstattung", "tier": "sdk"}, {})

        main(["generate", str(form_path)])

        mock_generate.assert_called_once_with(form_path, None)
        out = capsys.readouterr().out
        assert json.loads(out) == {"subject": "Rückerstattung", "tier": "sdk"}

    @patch("refundai.cli.uvicorn")
    @patch("refundai.cli.load_config")
    def test_serve(self, mock_config: MagicMock, mock_uvicorn: MagicMock) -> None:
        mock_config.return_value = AppConfig(server=ServerConfig(host="127.0.0.1"))
        main(["serve", "--port", "9000"])
        kwargs = mock_uvicorn.run.call_args.kwargs
        assert kwargs == {"host": "127.0.0.1", "port": 9000}
