"""Tests for receipt field parsing: coercion, regex rules, LLM and vision."""

from datetime import date
from unittest.mock import MagicMock

import pytest

from refundai.extraction.fields import (
    ParsedFormData,
    apply_to_form,
    coerce_amount,
    coerce_currency,
)
from refundai.extraction.llm_parser import (
    PARSING_SYSTEM_PROMPT,
    LLMFieldParser,
    build_parsing_prompt,
)
from refundai.extraction.receipt_extractor import ReceiptExtractor
from refundai.extraction.rule_extractor import RuleExtractor
from refundai.extraction.vision import OcrExtractedData, VisionAnalyzer, vision_prompt
from refundai.llm.client import LLMClient, LLMConfigurationError, LLMServiceError
from refundai.ocr.receipt_reader import NO_TEXT_MESSAGE, ReadResult
from refundai.utils.config import AppConfig, LLMConfig

SAMPLE_RECEIPT = """\
AMAZON.COM
Order #112-7654321-1234567
Order Placed: March 5, 2024
Grand Total: $49.99
"""

TODAY = date(2024, 6, 1)


def _read_result(text: str, has_text: bool = True) -> ReadResult:
    return ReadResult(
        source_file="receipt.png",
        kind="image",
        text=text,
        has_text=has_text,
        thresholds=[131],
    )


class TestCoercion:
    """Tests for amount and currency coercion."""

    @pytest.mark.parametrize(
        ("raw", "expected"),
        [
            (12, 12.0),
            ("49.99", 49.99),
            ("49,99", 49.99),
            ("$1,234.56", 1234.56),
            ("1.234,56 €", 1234.56),
            ("1,234", 1234.0),
        ],
    )
    def test_amounts(self, raw: object, expected: float) -> None:
        assert coerce_amount(raw) == pytest.approx(expected)

    @pytest.mark.parametrize(
        "raw",
        [None, True, "abc", "", float("inf"), "12 items, 3 left", "abc12", "1e5"],
    )
    def test_non_amounts(self, raw: object) -> None:
        assert coerce_amount(raw) is None

    @pytest.mark.parametrize(
        ("raw", "expected"),
        [
            ("EUR 12", 12.0),
            ("12 eur", 12.0),
            ("1 234,56", 1234.56),
            ("-5", -5.0),
        ],
    )
    def test_codes_and_spacing(self, raw: str, expected: float) -> None:
        assert coerce_amount(raw) == pytest.approx(expected)

    def test_currency_symbols_and_codes(self) -> None:
        assert coerce_currency("$") == "USD"
        assert coerce_currency("€") == "EUR"
        assert coerce_currency(" eur ") == "EUR"
        assert coerce_currency("euros") is None
        assert coerce_currency(None) is None


class TestParsedFormData:
    """Tests for the parsed field model."""

    def test_coerces_camel_case_input(self) -> None:
        parsed = ParsedFormData.model_validate(
            {
                "productName": "  Running shoes ",
                "productValue": "49,99",
                "currency": "€",
                "purchaseDate": "2024-01-15T10:00:00Z",
                "company": "",
                "unexpected": "ignored",
            }
        )
        assert parsed.product_name == "Running shoes"
        assert parsed.product_value == pytest.approx(49.99)
        assert parsed.currency == "EUR"
        assert parsed.purchase_date == "2024-01-15"
        assert parsed.company is None

    def test_drops_unparseable_date(self) -> None:
        assert ParsedFormData(purchase_date="last tuesday").purchase_date is None

    def test_to_json_omits_missing(self) -> None:
        parsed = ParsedFormData(order_number="A-1", other_company="shop.example")
        assert parsed.to_json() == {"orderNumber": "A-1", "otherCompany": "shop.example"}

    def test_is_empty(self) -> None:
        assert ParsedFormData().is_empty()
        assert not ParsedFormData(order_number="1").is_empty()


class TestApplyToForm:
    """Tests for auto-filling the form from parsed fields."""

    def test_other_company_selects_other(self) -> None:
        form: dict = {"company": "Apple"}
        filled = apply_to_form(form, ParsedFormData(other_company="Shop.Example.com"))
        assert form["company"] == "other"
        assert form["other_company"] == "shop.example.com"
        assert filled == ["company", "other_company"]

    def test_popular_company_is_canonicalized(self) -> None:
        form: dict = {}
        apply_to_form(form, ParsedFormData(company="amazon"))
        assert form["company"] == "Amazon"

    def test_domain_like_company_selects_other(self) -> None:
        form: dict = {}
        apply_to_form(form, ParsedFormData(company="example.org"))
        assert form == {"company": "other", "other_company": "example.org"}

    def test_copies_only_extracted_fields(self) -> None:
        form = {"first_name": "Ada", "description": "kept"}
        filled = apply_to_form(
            form,
            ParsedFormData(
                product_name="Lamp", product_value=0.0, purchase_date="2024-02-03"
            ),
        )
        assert form["first_name"] == "Ada"
        assert form["description"] == "kept"
        assert form["product_name"] == "Lamp"
        assert form["product_value"] == 0.0
        assert form["purchase_date"] == date(2024, 2, 3)
        assert set(filled) == {"product_name", "product_value", "purchase_date"}


class TestRuleExtractor:
    """Tests for regex-based field extraction."""

    def test_full_receipt(self) -> None:
        parsed = RuleExtractor(today=TODAY).extract(SAMPLE_RECEIPT)
        assert parsed.order_number == "112-7654321-1234567"
        assert parsed.purchase_date == "2024-03-05"
        assert parsed.product_value == pytest.approx(49.99)
        assert parsed.currency == "USD"
        assert parsed.company == "Amazon"
        assert parsed.other_company is None

    def test_month_first_date(self) -> None:
        extractor = RuleExtractor(today=TODAY)
        assert extractor.find_purchase_date("Date: 03/04/2024") == "2024-03-04"

    def test_day_first_date(self) -> None:
        extractor = RuleExtractor(today=TODAY)
        assert extractor.find_purchase_date("Date: 25/12/2023") == "2023-12-25"

    def test_french_month_name(self) -> None:
        extractor = RuleExtractor(today=TODAY)
        text = "Commande passée le 15 janvier 2024"
        assert extractor.find_purchase_date(text) == "2024-01-15"

    def test_future_dates_skipped(self) -> None:
        extractor = RuleExtractor(today=TODAY)
        text = "Delivery by 2024-07-10\nOrdered 2024-05-02"
        assert extractor.find_purchase_date(text) == "2024-05-02"

    def test_no_date(self) -> None:
        assert RuleExtractor(today=TODAY).find_purchase_date("no dates") is None

    def test_french_total(self) -> None:
        value, currency = RuleExtractor().find_total("Total TTC : 1 234,56 €")
        assert value == pytest.approx(1234.56)
        assert currency == "EUR"

    def test_total_ignores_subtotal(self) -> None:
        value, currency = RuleExtractor().find_total("Subtotal 10.00\nTotal: 12.50")
        assert value == pytest.approx(12.5)
        assert currency is None

    def test_no_total(self) -> None:
        assert RuleExtractor().find_total("nothing to pay") == (None, None)

    def test_domain_company(self) -> None:
        text = "Thanks for shopping at shop.example.fr"
        assert RuleExtractor().find_company(text) == (None, "shop.example.fr")

    def test_domain_fills_other_company(self) -> None:
        parsed = RuleExtractor(today=TODAY).extract("Visit shop.example.fr")
        assert parsed.company is None
        assert parsed.other_company == "shop.example.fr"

    def test_popular_company_by_domain(self) -> None:
        assert RuleExtractor().find_company("www.ebay.com") == ("eBay", None)

    def test_no_order_number(self) -> None:
        assert RuleExtractor().find_order_number("Thank you") is None


class TestLLMFieldParser:
    """Tests for LLM-based field parsing (mocked client)."""

    def test_prompt_wraps_text(self) -> None:
        system, user = build_parsing_prompt("TOTAL 9.99")
        assert system == PARSING_SYSTEM_PROMPT
        assert user.endswith('"""\nTOTAL 9.99\n"""')

    def test_parse(self) -> None:
        client = MagicMock(spec=LLMClient)
        client.complete_json.return_value = {
            "productName": "Headphones",
            "productValue": 89.9,
            "orderNumber": "A-42",
            "otherCompany": "audio.example",
        }
        parsed = LLMFieldParser(client, temperature=0.1).parse("receipt text")

        assert parsed.product_name == "Headphones"
        assert parsed.other_company == "audio.example"
        kwargs = client.complete_json.call_args.kwargs
        assert kwargs["temperature"] == 0.1
        assert kwargs["json_mode"] is True

    @pytest.mark.parametrize("text", [None, "", 123])
    def test_invalid_text(self, text: object) -> None:
        parser = LLMFieldParser(MagicMock(spec=LLMClient))
        with pytest.raises(ValueError, match="Missing or invalid 'text'"):
            parser.parse(text)


class TestVisionAnalyzer:
    """Tests for direct image analysis (mocked client)."""

    def test_prompt_language(self) -> None:
        assert vision_prompt("fr").startswith("Analysez")
        assert vision_prompt("de").startswith("Analyze")

    def test_analyze(self) -> None:
        client = MagicMock(spec=LLMClient)
        client.complete_json.return_value = {
            "company": "Amazon",
            "productName": "Kindle",
            "productValue": "129.99",
            "orderNumber": None,
        }
        analyzer = VisionAnalyzer(client, model="gpt-4o-mini", max_tokens=300)
        result = analyzer.analyze("data:image/jpeg;base64,AAAA", "en")

        assert result == OcrExtractedData(
            company="Amazon", product_name="Kindle", product_value=129.99
        )
        args, kwargs = client.complete_json.call_args
        content = args[0][0]["content"]
        assert content[1] == {
            "type": "image_url",
            "image_url": {"url": "data:image/jpeg;base64,AAAA"},
        }
        assert kwargs["max_tokens"] == 300
        assert kwargs["model"] == "gpt-4o-mini"

    def test_missing_fields_are_null(self) -> None:
        client = MagicMock(spec=LLMClient)
        client.complete_json.return_value = {}
        result = VisionAnalyzer(client).analyze("data:image/png;base64,AAAA")
        assert result.model_dump(by_alias=True) == {
            "company": None,
            "productName": None,
            "productValue": None,
            "orderNumber": None,
            "purchaseDate": None,
        }

    def test_empty_reply_is_all_null(self) -> None:
        sdk = MagicMock()
        sdk.chat.completions.create.return_value.choices = [MagicMock()]
        sdk.chat.completions.create.return_value.choices[0].message.content = "  "
        client = LLMClient(LLMConfig(), client=sdk)

        result = VisionAnalyzer(client).analyze("data:image/png;base64,AAAA")

        assert result == OcrExtractedData()

    def test_missing_image(self) -> None:
        with pytest.raises(ValueError, match="imageBase64"):
            VisionAnalyzer(MagicMock(spec=LLMClient)).analyze(None)


class TestReceiptExtractor:
    """Tests for the OCR to fields pipeline with LLM fallback."""

    def _extractor(self, read: ReadResult) -> tuple[ReceiptExtractor, MagicMock]:
        reader = MagicMock()
        reader.read.return_value = read
        client = MagicMock(spec=LLMClient)
        return ReceiptExtractor(AppConfig(), llm_client=client, reader=reader), client

    def test_llm_parsing(self) -> None:
        extractor, client = self._extractor(_read_result(SAMPLE_RECEIPT))
        client.complete_json.return_value = {"productName": "Echo Dot"}

        result = extractor.extract(b"...", filename="receipt.png")

        assert result.source == "llm"
        assert result.fields.product_name == "Echo Dot"
        assert result.warnings == []
        assert result.threshold == 131

    def test_falls_back_to_rules_when_unconfigured(self) -> None:
        extractor, client = self._extractor(_read_result(SAMPLE_RECEIPT))
        client.complete_json.side_effect = LLMConfigurationError("no key")

        result = extractor.extract(b"...", filename="receipt.png")

        assert result.source == "rules"
        assert result.fields.company == "Amazon"
        assert result.warnings == ["LLM parsing unavailable: no key"]

    def test_falls_back_to_rules_on_service_error(self) -> None:
        extractor, client = self._extractor(_read_result(SAMPLE_RECEIPT))
        client.complete_json.side_effect = LLMServiceError("LLM returned invalid JSON.")
        result = extractor.parse_text(SAMPLE_RECEIPT)
        assert result.source == "rules"

    def test_rules_only(self) -> None:
        extractor, client = self._extractor(_read_result(SAMPLE_RECEIPT))
        result = extractor.extract(b"...", use_llm=False)
        assert result.source == "rules"
        client.complete_json.assert_not_called()

    def test_no_text(self) -> None:
        extractor, client = self._extractor(
            _read_result(NO_TEXT_MESSAGE, has_text=False)
        )
        result = extractor.extract(b"...")
        assert result.source == "none"
        assert result.fields.is_empty()
        assert result.warnings == [NO_TEXT_MESSAGE]
        client.complete_json.assert_not_called()
