import pytest

from src.reconcile.status import canonical_status


class TestCanonicalStatus:
    @pytest.mark.parametrize(
        "raw, expected",
        [
            ("confirmed", "Confirmed"),
            (" Confirmed ", "Confirmed"),
            ("completed", "Complete"),
            ("Complete", "Complete"),
            ("ready-to-invoice", "Ready to Invoice"),
            ("Ready to Invoice", "Ready to Invoice"),
            ("settled", "Paid"),
            ("invoiced", "Invoiced"),
            ("needs action", "Action Required"),
            ("first pencil", "First Pencil"),
            ("on_hold", "On Hold"),
            ("", "TBC"),
            (None, "TBC"),
        ],
    )
    def test_mapping(self, raw, expected):
        assert canonical_status(raw) == expected
