"""Tests for packaging models and response parsing."""

from tally_recon.models.packaging import (
    ExtractionFailure,
    ExtractionSuccess,
    PackagingData,
    PackagingLevel,
    PrimaryPackaging,
    SecondaryPackaging,
    merge_local_edits,
    parse_extraction_response,
)

from .fakes import success_payload


class TestParseResponse:
    """Test parse_extraction_response."""

    def test_success(self):
        response = parse_extraction_response(success_payload())

        assert isinstance(response, ExtractionSuccess)
        assert response.success
        assert response.request_id == "req-1"
        assert response.packaging.order_packaging_level == PackagingLevel.SECONDARY
        assert response.packaging.secondary.primary_packages_per_secondary == 10
        assert not response.requires_confirmation

    def test_success_requiring_confirmation(self):
        response = parse_extraction_response(success_payload(confirm_unit="ctn", normalized="carton"))

        assert response.requires_confirmation
        assert response.unit_confirmation.extracted_unit == "ctn"
        assert response.unit_confirmation.normalized_unit == "carton"

    def test_rate_limit_body(self):
        response = parse_extraction_response(
            {"success": False, "error": "Daily limit reached", "rateLimit": True, "currentUsage": 50, "limit": 50}
        )

        assert isinstance(response, ExtractionFailure)
        assert response.rate_limit
        assert response.current_usage == 50
        assert response.limit == 50

    def test_http_429_is_rate_limited(self):
        response = parse_extraction_response({"error": "Too many requests"}, status_code=429)
        assert response.rate_limit
        assert response.status_code == 429

    def test_success_without_packaging_is_failure(self):
        assert isinstance(parse_extraction_response({"success": True}), ExtractionFailure)

    def test_malformed_body(self):
        response = parse_extraction_response("<html>")
        assert isinstance(response, ExtractionFailure)
        assert response.error == "Malformed extraction response"

    def test_display_message_fallback(self):
        assert ExtractionFailure(error="", message="Try later").display_message == "Try later"
        assert "continue without it" in ExtractionFailure(error="").display_message


class TestMergeLocalEdits:
    """Operator edits reapplied over fresh extraction data."""

    def _packaging(self) -> PackagingData:
        return PackagingData.from_dict(success_payload()["packaging"])

    def test_secondary_level_total(self):
        edited = merge_local_edits(
            self._packaging(),
            secondary=SecondaryPackaging(description="crate", quantity=3, primary_packages_per_secondary=8),
        )

        assert edited.total_primary_packages == 24
        assert edited.secondary.description == "crate"

    def test_secondary_removed_falls_back_to_primary(self):
        edited = merge_local_edits(self._packaging(), order_quantity=5, secondary_removed=True)

        assert edited.secondary is None
        assert edited.order_packaging_level == PackagingLevel.PRIMARY
        assert edited.total_primary_packages == 5

    def test_primary_level_uses_order_quantity(self):
        packaging = PackagingData(
            total_primary_packages=4,
            order_quantity=4,
            primary=PrimaryPackaging(description="bottle", quantity=1, unit="l"),
        )

        edited = merge_local_edits(packaging, order_quantity=9)

        assert edited.total_primary_packages == 9
        assert edited.primary.unit == "l"

    def test_no_edits_keeps_values(self):
        packaging = self._packaging()
        assert merge_local_edits(packaging) == packaging


def test_with_primary_unit_without_primary():
    packaging = PackagingData(total_primary_packages=1, order_quantity=1)
    assert packaging.with_primary_unit("kg").primary.unit == "kg"
