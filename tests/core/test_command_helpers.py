"""
Ledgerline Command Helpers & Scope Guard — Tests
==================================================
"""

from __future__ import annotations

import uuid

import pytest

from core.commands.custom_fields import (
    build_custom_field_reset_map,
    diff_custom_field_changes,
    normalize_custom_field_values,
    split_custom_field_payload,
)
from core.commands.errors import ScopeViolation
from core.commands.helpers import (
    parse_with_custom_fields,
    require_id,
    require_tenant_scope,
)
from core.container import ServiceContainer, ServiceNotRegistered
from core.context import ensure_scope, resolve_undo_scope
from core.context.runtime import AuthContext, CommandRuntimeContext, OrganizationScope
from core.crud.errors import CrudHttpError

TENANT_ID = "tenant-helpers"
ORG_ID = "org-helpers"
SIBLING_ORG_ID = "org-sibling"


def make_ctx(**overrides) -> CommandRuntimeContext:
    values = {
        "container": ServiceContainer(),
        "auth": AuthContext(sub="user-1", tenant_id=TENANT_ID, org_id=ORG_ID),
        "selected_organization_id": ORG_ID,
    }
    values.update(overrides)
    return CommandRuntimeContext(**values)


# ══════════════════════════════════════════════════════════════
# require_id / require_tenant_scope
# ══════════════════════════════════════════════════════════════

class TestRequireId:
    @pytest.mark.parametrize(
        "value",
        [
            "abc",
            {"id": "abc"},
            {"recordId": "abc"},
            {"body": {"id": "abc"}},
            {"query": {"id": "abc"}},
        ],
    )
    def test_accepted_shapes(self, value):
        assert require_id(value) == "abc"

    def test_integer_id_becomes_string(self):
        assert require_id(42) == "42"

    def test_uuid_id_becomes_string(self):
        value = uuid.UUID("6f1c0c3e-8a4b-4d52-9a57-1f0f3b2a9c11")
        assert require_id({"id": value}) == "6f1c0c3e-8a4b-4d52-9a57-1f0f3b2a9c11"

    def test_missing_id_raises_400_with_message(self):
        with pytest.raises(CrudHttpError) as exc_info:
            require_id({"body": {}}, "Todo id required")
        assert exc_info.value.status == 400
        assert exc_info.value.body == {"error": "Todo id required"}

    def test_bool_is_not_an_id(self):
        with pytest.raises(CrudHttpError):
            require_id(True)


class TestRequireTenantScope:
    def test_falls_back_to_auth_tenant(self):
        assert require_tenant_scope(TENANT_ID, None) == TENANT_ID

    def test_matching_request_accepted(self):
        assert require_tenant_scope(TENANT_ID, TENANT_ID) == TENANT_ID

    def test_mismatch_is_forbidden(self):
        with pytest.raises(CrudHttpError) as exc_info:
            require_tenant_scope(TENANT_ID, "tenant-else")
        assert exc_info.value.status == 403

    def test_no_tenant_at_all(self):
        with pytest.raises(CrudHttpError) as exc_info:
            require_tenant_scope(None, None)
        assert exc_info.value.status == 400
        assert exc_info.value.message == "Tenant scope required"


# ══════════════════════════════════════════════════════════════
# CUSTOM FIELDS
# ══════════════════════════════════════════════════════════════

class TestCustomFieldPayload:
    def test_split_collects_prefixed_and_container_values(self):
        base, custom = split_custom_field_payload({
            "title": "x",
            "cf_color": "red",
            "cf:size": 3,
            "customFields": {"cf_shape": "round", "weight": 2},
        })
        assert base == {"title": "x"}
        assert custom == {"color": "red", "size": 3, "shape": "round", "weight": 2}

    def test_split_of_non_mapping_is_empty(self):
        assert split_custom_field_payload(None) == ({}, {})

    def test_parse_with_custom_fields_hands_base_to_parser(self):
        seen = {}

        def parser(data):
            seen.update(data)
            return "parsed"

        parsed, custom = parse_with_custom_fields(parser, {"name": "n", "cf_a": 1})
        assert parsed == "parsed"
        assert seen == {"name": "n"}
        assert custom == {"a": 1}

    def test_normalize_strips_prefix_and_lists_tuples(self):
        assert normalize_custom_field_values({"cf_tags": ("a", "b")}) == {"tags": ["a", "b"]}

    def test_reset_map_clears_keys_added_after(self):
        reset = build_custom_field_reset_map({"color": "red"}, {"color": "blue", "size": 3})
        assert reset == {"size": None, "color": "red"}

    def test_reset_map_with_no_before_clears_everything(self):
        assert build_custom_field_reset_map(None, {"a": 1, "b": 2}) == {"a": None, "b": None}

    def test_diff_custom_field_changes(self):
        diff = diff_custom_field_changes({"a": 1, "b": 2}, {"a": 1, "b": 3, "c": 4})
        assert diff == {"b": {"from": 2, "to": 3}, "c": {"from": None, "to": 4}}


# ══════════════════════════════════════════════════════════════
# SCOPE GUARD
# ══════════════════════════════════════════════════════════════

class TestScopeGuard:
    def test_ensure_scope_requires_tenant(self):
        with pytest.raises(CrudHttpError):
            ensure_scope(make_ctx(auth=AuthContext(sub="u")))

    def test_ensure_scope_requires_organization(self):
        ctx = make_ctx(
            auth=AuthContext(sub="u", tenant_id=TENANT_ID),
            selected_organization_id=None,
        )
        with pytest.raises(CrudHttpError):
            ensure_scope(ctx)

    def test_undo_scope_uses_snapshot_organization(self):
        ctx = make_ctx(organization_ids=(ORG_ID, SIBLING_ORG_ID))
        scope = resolve_undo_scope(ctx, {"tenantId": TENANT_ID, "organizationId": SIBLING_ORG_ID})
        assert scope.tenant_id == TENANT_ID
        assert scope.organization_id == SIBLING_ORG_ID

    def test_undo_scope_rejects_other_tenant(self):
        with pytest.raises(ScopeViolation):
            resolve_undo_scope(make_ctx(), {"tenantId": "tenant-else"})

    def test_undo_scope_rejects_organization_outside_allowed_set(self):
        ctx = make_ctx(organization_ids=(ORG_ID,))
        with pytest.raises(ScopeViolation):
            resolve_undo_scope(ctx, {"tenantId": TENANT_ID, "organizationId": SIBLING_ORG_ID})

    def test_undo_scope_consults_organization_scope(self):
        ctx = make_ctx(organization_scope=OrganizationScope(allowed_ids=(ORG_ID,)))
        with pytest.raises(ScopeViolation):
            resolve_undo_scope(ctx, {"organizationId": SIBLING_ORG_ID})

    def test_unrestricted_actor_may_undo_any_organization_in_tenant(self):
        scope = resolve_undo_scope(make_ctx(), {"organizationId": SIBLING_ORG_ID})
        assert scope.organization_id == SIBLING_ORG_ID


# ══════════════════════════════════════════════════════════════
# CONTAINER
# ══════════════════════════════════════════════════════════════

class TestServiceContainer:
    def test_unknown_service_raises_key_error_subclass(self):
        with pytest.raises(KeyError):
            ServiceContainer().resolve("missing")
        with pytest.raises(ServiceNotRegistered):
            ServiceContainer().resolve("missing")

    def test_singleton_factory_built_once(self):
        calls = []
        container = ServiceContainer().register_factory(
            "thing",
            lambda c: calls.append(1) or object(),
        )
        assert container.resolve("thing") is container.resolve("thing")
        assert calls == [1]

    def test_transient_factory_built_per_resolve(self):
        container = ServiceContainer().register_factory(
            "thing",
            lambda c: object(),
            singleton=False,
        )
        assert container.resolve("thing") is not container.resolve("thing")
