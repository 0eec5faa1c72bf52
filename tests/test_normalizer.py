"""
Tests for the CRM record normalizer.

Covers document ids, canonical text rendering and index metadata.
"""

import pytest

from crm_rag.errors import ValidationError
from crm_rag.rag.models import DataType
from crm_rag.rag.normalizer import UNSET, RecordNormalizer, format_yen


def make_customer(**overrides):
    data = {
        "customerId": "C001",
        "name": "Tanaka Taro",
        "phone": "090-1234-5678",
        "totalSales": 500000,
        "visitCount": 3,
    }
    data.update(overrides)
    return data


def make_quote(**overrides):
    data = {
        "quoteId": "Q100",
        "customerId": "C001",
        "vehicleInfo": "Toyota Prius 2019",
        "items": [
            {"itemId": "I1", "description": "Bumper repair", "quantity": 1, "unitPrice": 30000},
            {"itemId": "I2", "description": "Repainting", "quantity": 2, "unitPrice": 15000, "totalPrice": 30000},
        ],
        "status": "sent",
        "quoteDate": "2024-04-01",
    }
    data.update(overrides)
    return data


def make_work(**overrides):
    data = {
        "workId": "W7",
        "customerId": "C001",
        "vehicleInfo": "Honda Fit 2020",
        "workType": "repair",
        "description": "Rear door dent repair",
        "technician": "Suzuki",
        "workDate": "2024-05-10",
        "laborCost": 20000,
        "partsCost": 5000,
        "partsUsed": [{"partId": "P1", "partName": "Clip", "quantity": 4, "unitPrice": 250}],
        "rating": 5,
    }
    data.update(overrides)
    return data


class TestFormatYen:

    def test_thousands_separator(self):
        assert format_yen(500000) == "500,000 yen"

    def test_fractional_amount(self):
        assert format_yen(1234.5) == "1,234.50 yen"

    def test_missing_amount(self):
        assert format_yen(None) == UNSET


class TestDocumentId:

    def setup_method(self):
        self.normalizer = RecordNormalizer()

    def test_id_prefixed_by_type(self):
        doc_id, _ = self.normalizer.normalize(make_customer(), "customer")
        assert doc_id == "customer_C001"

    def test_each_type_uses_its_own_key(self):
        assert self.normalizer.normalize(make_quote(), "quote")[0] == "quote_Q100"
        assert self.normalizer.normalize(make_work(), "work_history")[0] == "work_history_W7"

    def test_generic_id_field_accepted(self):
        doc_id, _ = self.normalizer.normalize({"id": "C1", "name": "Tanaka"}, DataType.CUSTOMER)
        assert doc_id == "customer_C1"

    def test_fallback_key_used_without_identifier(self):
        record = make_customer()
        del record["customerId"]
        doc_id, _ = self.normalizer.normalize(record, "customer", fallback_key=3)
        assert doc_id == "customer_3"

    def test_missing_identifier_without_fallback_rejected(self):
        record = make_customer()
        del record["customerId"]
        with pytest.raises(ValidationError):
            self.normalizer.normalize(record, "customer")

    def test_normalize_is_pure(self):
        """Same record in, same id and text out."""
        first = self.normalizer.normalize(make_work(), "work_history")
        second = self.normalizer.normalize(make_work(), "work_history")
        assert first == second


class TestRender:

    def setup_method(self):
        self.normalizer = RecordNormalizer()

    def test_customer_text(self):
        _, text = self.normalizer.normalize(make_customer(), "customer")
        lines = text.split("\n")

        assert lines[0] == "Customer record"
        assert "Customer ID: C001" in lines
        assert "Name: Tanaka Taro" in lines
        assert "Total sales: 500,000 yen" in lines
        assert "Visit count: 3 visits" in lines
        assert f"Email: {UNSET}" in lines
        assert f"Notes: {UNSET}" in lines

    def test_absent_fields_keep_text_shape(self):
        """A sparse and a full record render the same labels."""
        _, sparse = self.normalizer.normalize({"customerId": "C2", "name": "Sato"}, "customer")
        _, full = self.normalizer.normalize(
            make_customer(email="t@example.com", address="Osaka", registeredAt="2023-01-01", notes="VIP"),
            "customer",
        )
        labels = lambda text: [line.split(":")[0] for line in text.split("\n")]
        assert labels(sparse) == labels(full)

    def test_quote_items_bulleted(self):
        _, text = self.normalizer.normalize(make_quote(), "quote")

        assert "Line items:" in text
        assert "  - Bumper repair x 1 @ 30,000 yen = 30,000 yen" in text
        assert "  - Repainting x 2 @ 15,000 yen = 30,000 yen" in text
        assert "Total amount: 60,000 yen" in text
        assert "Status: sent" in text

    def test_quote_without_items(self):
        _, text = self.normalizer.normalize(make_quote(items=[]), "quote")
        assert f"  - {UNSET}" in text
        assert "Total amount: 0 yen" in text

    def test_work_history_text(self):
        _, text = self.normalizer.normalize(make_work(), "work_history")

        assert text.startswith("Work history record")
        assert "Work type: repair" in text
        assert "  - Clip x 4 @ 250 yen" in text
        assert "Total cost: 25,000 yen" in text
        assert "Rating: 5/5" in text

    def test_csv_strings_coerced(self):
        record = {"customerId": "C3", "name": "Ito", "totalSales": "1,200,000", "visitCount": "7"}
        _, text = self.normalizer.normalize(record, "customer")
        assert "Total sales: 1,200,000 yen" in text
        assert "Visit count: 7 visits" in text


class TestValidation:

    def setup_method(self):
        self.normalizer = RecordNormalizer()

    def test_unknown_data_type(self):
        with pytest.raises(ValidationError):
            self.normalizer.normalize(make_customer(), "invoice")

    def test_unknown_quote_status(self):
        with pytest.raises(ValidationError):
            self.normalizer.normalize(make_quote(status="archived"), "quote")

    def test_rating_out_of_range(self):
        with pytest.raises(ValidationError):
            self.normalizer.normalize(make_work(rating=6), "work_history")

    def test_negative_sales(self):
        with pytest.raises(ValidationError):
            self.normalizer.normalize(make_customer(totalSales=-1), "customer")

    def test_missing_required_field(self):
        record = make_work()
        del record["technician"]
        with pytest.raises(ValidationError):
            self.normalizer.normalize(record, "work_history")


class TestDocuments:

    def setup_method(self):
        self.normalizer = RecordNormalizer()

    def test_metadata_tagged_with_type_and_id(self):
        doc = self.normalizer.to_document(make_customer(), "customer")

        assert doc.id == "customer_C001"
        assert doc.metadata["type"] == "customer"
        assert doc.metadata["id"] == "C001"
        assert doc.metadata["totalSales"] == 500000
        assert "email" not in doc.metadata

    def test_nested_sequences_carried_as_counts(self):
        doc = self.normalizer.to_document(make_quote(), "quote")
        assert doc.metadata["itemCount"] == 2
        assert "items" not in doc.metadata

    def test_known_fields_win_over_extra(self):
        doc = self.normalizer.to_document(
            make_customer(),
            "customer",
            extra_metadata={"type": "quote", "id": "other", "source": "import", "tags": ["a", "b"]},
        )
        assert doc.metadata["type"] == "customer"
        assert doc.metadata["id"] == "C001"
        assert doc.metadata["source"] == "import"
        assert doc.metadata["tags"] == '["a", "b"]'

    def test_fallback_key_becomes_metadata_id(self):
        record = make_customer()
        del record["customerId"]
        doc = self.normalizer.to_document(record, "customer", fallback_key=0)
        assert doc.id == "customer_0"
        assert doc.metadata["id"] == "0"

    def test_text_document_uses_metadata_id(self):
        doc = self.normalizer.document_from_text("Customer Tanaka, VIP", "customer", {"id": "C9"})
        assert doc.id == "customer_C9"
        assert doc.metadata == {"id": "C9", "type": "customer"}

    def test_text_document_id_deterministic(self):
        first = self.normalizer.document_from_text("Same text", "quote")
        second = self.normalizer.document_from_text("Same text", "quote")
        assert first.id == second.id
        assert first.id.startswith("quote_")

    def test_empty_text_rejected(self):
        with pytest.raises(ValidationError):
            self.normalizer.document_from_text("   ", "customer")
