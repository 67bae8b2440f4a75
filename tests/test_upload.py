"""
test_upload.py: Payloads sent to the Apps Script upload endpoints.
"""

from datetime import datetime, timezone

import pytest

from core.upload import BATCH_SIZE, clear_sheet_payload, format_form_month, turnover_form_payload, upload_batches

SCRIPT = "https://script.example.test/exec"
NOW = datetime(2024, 3, 1, 8, 30, tzinfo=timezone.utc)


class TestBatches:

    def test_split_in_fifties(self):
        rows = [[i, f"name {i}"] for i in range(120)]
        batches = upload_batches(SCRIPT, ["ID", "NAME"], rows, now=NOW)
        assert [len(b["data"]) for b in batches] == [BATCH_SIZE, BATCH_SIZE, 20]
        assert [b["batchNumber"] for b in batches] == [0, 1, 2]
        assert all(b["totalBatches"] == 3 and b["isBatch"] for b in batches)
        assert batches[2]["data"][-1] == [119, "name 119"]

    def test_headers_only_on_first_batch(self):
        batches = upload_batches(SCRIPT, ["ID"], [[1], [2], [3]], batch_size=2, now=NOW)
        assert batches[0]["headers"] == ["ID"]
        assert "headers" not in batches[1]
        assert batches[0]["action"] == "uploadData"
        assert batches[0]["googleScriptUrl"] == SCRIPT
        assert batches[0]["timestamp"] == "2024-03-01T08:30:00Z"

    def test_empty_sheet(self):
        assert upload_batches(SCRIPT, ["ID"], []) == []

    def test_bad_batch_size(self):
        with pytest.raises(ValueError):
            upload_batches(SCRIPT, ["ID"], [[1]], batch_size=0)

    def test_clear_sheet(self):
        assert clear_sheet_payload(SCRIPT, now=NOW) == {
            "googleScriptUrl": SCRIPT,
            "action": "clearSheet",
            "timestamp": "2024-03-01T08:30:00Z",
        }


class TestTurnoverForm:

    FORM = {"mois": "2024-03", "baja": "3", "group": "G1", "contrat": "CDD", "effectif1": "40", "effectif2": "38"}

    def test_month_label(self):
        assert format_form_month("2024-03") == "Mars 2, 2024"
        assert format_form_month("2023-12") == "Décembre 2, 2023"
        assert format_form_month("") == ""

    @pytest.mark.parametrize("value", ["2024-13", "2024-00", "mars"])
    def test_invalid_month(self, value):
        with pytest.raises(ValueError):
            format_form_month(value)

    def test_payload(self):
        payload = turnover_form_payload(SCRIPT, self.FORM)
        assert payload["action"] == "submitForm"
        assert payload["mois"] == "Mars 2, 2024"
        assert payload["groupe"] == "G1"
        assert "group" not in payload

    def test_missing_field(self):
        with pytest.raises(ValueError, match="Veuillez remplir tous les champs"):
            turnover_form_payload(SCRIPT, {**self.FORM, "effectif2": " "})
