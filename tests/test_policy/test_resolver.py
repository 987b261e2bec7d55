"""Scope resolution: principal -> AccessScope, including the Localité fallback chain."""
from __future__ import annotations

import pytest

from helpers import principal
from orgscope.policy import ALL_LOCALITES, Role, ScopeDescriptor, ScopeMissing, ScopeType
from orgscope.policy.resolver import creation_scope, localite_fallback_chain, resolve_scope, resolve_top_level_id


def test_section_user_resolves_to_own_section(store):
    scope = resolve_scope(principal(Role.SECTION_USER, section_id="sec-1"), store)

    assert scope.descriptor == ScopeDescriptor(ScopeType.SECTION, "sec-1")
    assert scope.localite_id == "loc-1"
    assert not scope.is_tenant_wide


def test_section_user_without_section_is_scope_missing(store):
    with pytest.raises(ScopeMissing):
        resolve_scope(principal(Role.SECTION_USER), store)


def test_section_user_with_dangling_section_is_scope_missing(store):
    with pytest.raises(ScopeMissing):
        resolve_scope(principal(Role.SECTION_USER, section_id="sec-gone"), store)


def test_section_user_ignores_other_attachments_for_descriptor(store):
    # Legacy rows may carry a sous_localite_id too; only section_id counts.
    scope = resolve_scope(principal(Role.SECTION_USER, section_id="sec-4", sous_localite_id="sl-1"), store)

    assert scope.descriptor == ScopeDescriptor(ScopeType.SECTION, "sec-4")


def test_sous_localite_admin_resolves_to_own_sous_localite(store):
    scope = resolve_scope(principal(Role.SOUS_LOCALITE_ADMIN, sous_localite_id="sl-2"), store)

    assert scope.descriptor == ScopeDescriptor(ScopeType.SOUS_LOCALITE, "sl-2")
    assert scope.localite_id == "loc-1"


@pytest.mark.parametrize("sous_localite_id", [None, "sl-gone"])
def test_sous_localite_admin_without_valid_attachment_is_scope_missing(store, sous_localite_id):
    with pytest.raises(ScopeMissing):
        resolve_scope(principal(Role.SOUS_LOCALITE_ADMIN, sous_localite_id=sous_localite_id), store)


@pytest.mark.parametrize("role", [Role.LOCALITE, Role.OWNER])
def test_tenant_wide_roles_without_localite_get_sentinel(store, role):
    scope = resolve_scope(principal(role), store)

    assert scope.descriptor == ScopeDescriptor(ScopeType.LOCALITE, ALL_LOCALITES)
    assert scope.descriptor.is_all
    assert scope.is_tenant_wide
    assert scope.localite_id is None


def test_localite_with_concrete_localite(store):
    scope = resolve_scope(principal(Role.LOCALITE, localite_id="loc-2"), store)

    assert scope.descriptor == ScopeDescriptor(ScopeType.LOCALITE, "loc-2")
    assert scope.localite_id == "loc-2"


def test_localite_with_unknown_localite_is_scope_missing(store):
    with pytest.raises(ScopeMissing):
        resolve_scope(principal(Role.LOCALITE, localite_id="loc-gone"), store)


def test_override_is_honoured_for_existing_node(store):
    override = ScopeDescriptor(ScopeType.SECTION, "sec-3")
    scope = resolve_scope(principal(Role.OWNER), store, override=override)

    assert scope.descriptor == override
    assert scope.overridden
    assert not scope.is_tenant_wide
    assert scope.localite_id == "loc-1"


def test_override_to_missing_node_is_scope_missing(store):
    with pytest.raises(ScopeMissing):
        resolve_scope(principal(Role.LOCALITE), store, override=ScopeDescriptor(ScopeType.SOUS_LOCALITE, "sl-gone"))


def test_override_is_ignored_for_other_roles(store):
    override = ScopeDescriptor(ScopeType.SECTION, "sec-4")
    scope = resolve_scope(principal(Role.SECTION_USER, section_id="sec-1"), store, override=override)

    assert scope.descriptor == ScopeDescriptor(ScopeType.SECTION, "sec-1")
    assert not scope.overridden


# ---- Localité fallback chain (one test per precedence case) ----------------------------


def test_fallback_uses_own_localite_first(store):
    # Own localite_id wins even when the other attachments point elsewhere.
    p = principal(Role.COMITE_PEDAGOGIQUE, localite_id="loc-2", sous_localite_id="sl-1", section_id="sec-3")

    assert localite_fallback_chain(p, store) == "loc-2"


def test_fallback_uses_sous_localite_when_no_own_localite(store):
    p = principal(Role.COMITE_PEDAGOGIQUE, sous_localite_id="sl-3", section_id="sec-1")

    assert localite_fallback_chain(p, store) == "loc-2"


def test_fallback_uses_section_chain_last(store):
    p = principal(Role.ORG_UNIT_RESP, section_id="sec-4")

    assert localite_fallback_chain(p, store) == "loc-2"


def test_fallback_skips_dangling_sous_localite(store):
    p = principal(Role.ORG_UNIT_RESP, sous_localite_id="sl-gone", section_id="sec-3")

    assert localite_fallback_chain(p, store) == "loc-1"


def test_fallback_returns_none_without_attachments(store):
    assert localite_fallback_chain(principal(Role.ORG_UNIT_RESP), store) is None


def test_fallback_short_circuits(store):
    localite_fallback_chain(principal(Role.COMITE_PEDAGOGIQUE, localite_id="loc-1", section_id="sec-1"), store)

    assert store.lookups == 0


@pytest.mark.parametrize("role", [Role.COMITE_PEDAGOGIQUE, Role.ORG_UNIT_RESP])
def test_other_roles_resolve_to_home_localite(store, role):
    scope = resolve_scope(principal(role, sous_localite_id="sl-2"), store)

    assert scope.descriptor == ScopeDescriptor(ScopeType.LOCALITE, "loc-1")
    assert scope.localite_id == "loc-1"
    assert not scope.is_tenant_wide


def test_other_roles_without_home_are_scope_missing(store):
    with pytest.raises(ScopeMissing):
        resolve_scope(principal(Role.ORG_UNIT_RESP), store)


def test_top_level_id_never_raises(store):
    assert resolve_top_level_id(principal(Role.SECTION_USER, section_id="sec-gone"), store) is None
    assert resolve_top_level_id(principal(Role.SOUS_LOCALITE_ADMIN, sous_localite_id="sl-3"), store) == "loc-2"


def test_resolution_reads_the_store_every_time(store):
    p = principal(Role.SECTION_USER, section_id="sec-2")
    resolve_scope(p, store)
    first = store.lookups

    # Re-parenting is observed on the next resolution; nothing is cached.
    store.sections["sec-2"] = "sl-3"
    scope = resolve_scope(p, store)

    assert store.lookups > first
    assert scope.localite_id == "loc-2"


def test_creation_scope_uses_first_localite_for_sentinel(store):
    scope = resolve_scope(principal(Role.OWNER), store)

    assert creation_scope(scope, store) == ScopeDescriptor(ScopeType.LOCALITE, "loc-1")


def test_creation_scope_keeps_concrete_descriptor(store):
    scope = resolve_scope(principal(Role.SECTION_USER, section_id="sec-3"), store)

    assert creation_scope(scope, store) == ScopeDescriptor(ScopeType.SECTION, "sec-3")


def test_creation_scope_with_empty_store_is_scope_missing(store):
    scope = resolve_scope(principal(Role.LOCALITE), store)
    store.localites.clear()

    with pytest.raises(ScopeMissing):
        creation_scope(scope, store)
