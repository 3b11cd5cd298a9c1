"""Tests for business context resolution."""

import pytest

from tally_recon.models.context import BusinessContext, resolve_business_context


class TestResolveBusinessContext:
    def test_owner_preferred(self):
        memberships = {
            "biz-a": {"role": "member"},
            "biz-b": {"role": "super"},
            "biz-c": {"role": "owner"},
        }
        assert resolve_business_context(memberships).business_id == "biz-c"

    def test_super_before_first(self):
        memberships = {"biz-a": {"role": "member"}, "biz-b": {"role": "super"}}
        context = resolve_business_context(memberships)
        assert context.business_id == "biz-b"
        assert context.role == "super"

    def test_first_membership_fallback(self):
        memberships = {"biz-a": {"role": "member"}, "biz-b": {"role": "viewer"}}
        assert resolve_business_context(memberships).business_id == "biz-a"

    def test_personal_workspace_skipped(self):
        memberships = {"personal-123": {"role": "owner"}, "biz-b": {"role": "member"}}
        context = resolve_business_context(memberships)
        assert context.business_id == "biz-b"
        assert not context.is_personal

    def test_only_personal_workspaces(self):
        memberships = {"personal-1": {"role": "owner"}}
        assert resolve_business_context(memberships).business_id == "personal-1"

    def test_preferred_id(self):
        memberships = {"biz-a": {"role": "owner"}, "biz-b": {"role": "member"}}
        assert resolve_business_context(memberships, preferred_id="biz-b").business_id == "biz-b"

    def test_no_memberships(self):
        assert resolve_business_context({}) is None


def test_business_id_required():
    with pytest.raises(ValueError):
        BusinessContext(business_id=" ")
