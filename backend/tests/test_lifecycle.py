"""
Retirement rule tests for catalog entities and roles.
"""

import pytest

from retailpos.models import Category, Product, Role, Unit
from retailpos.permissions import CASHIER_ROLE, SUPER_ADMIN_ROLE
from retailpos.services import catalog_service, lifecycle_service, role_service
from retailpos.validation import ConflictError, NotFoundError


class TestCategoryRetirement:
    def test_category_with_active_products_is_blocked(self, db_session, category, product):
        with pytest.raises(ConflictError, match="1 active product"):
            catalog_service.delete_category(category.id)

        assert db_session.get(Category, category.id).is_active

    def test_empty_category_is_archived_not_deleted(self, db_session, category):
        catalog_service.delete_category(category.id)

        archived = db_session.get(Category, category.id)
        assert archived is not None
        assert archived.lifecycle_state == "ARCHIVED"
        assert category.id not in [c.id for c in catalog_service.list_categories()]
        assert category.id in [c.id for c in catalog_service.list_categories(include_inactive=True)]

    def test_archived_products_no_longer_block(self, db_session, category, product):
        catalog_service.delete_product(product.id)

        catalog_service.delete_category(category.id)

        assert db_session.get(Category, category.id).lifecycle_state == "ARCHIVED"

    def test_duplicate_name_is_case_insensitive(self, db_session, category):
        with pytest.raises(ConflictError):
            catalog_service.create_category({"name": "beverages"})


class TestProductRetirement:
    def test_product_is_archived_and_keeps_history(self, db_session, product):
        catalog_service.delete_product(product.id)

        archived = db_session.get(Product, product.id)
        assert archived.lifecycle_state == "ARCHIVED"
        assert archived.name == "Green Tea"


class TestUnitRetirement:
    def test_unit_in_use_is_blocked(self, db_session, admin_user, product):
        pcs = db_session.query(Unit).filter_by(short_name=product.unit).one()

        with pytest.raises(ConflictError):
            catalog_service.delete_unit(pcs.id)

    def test_unused_unit_is_archived(self, db_session, admin_user):
        unit = catalog_service.create_unit({"name": "Dozen", "short_name": "dz"})

        catalog_service.delete_unit(unit.id)

        assert db_session.get(Unit, unit.id).lifecycle_state == "ARCHIVED"


class TestRoleRetirement:
    def test_system_roles_cannot_be_deleted(self, db_session, admin_user):
        cashier = db_session.query(Role).filter_by(name=CASHIER_ROLE).one()

        with pytest.raises(ConflictError, match="system roles"):
            role_service.delete_role(cashier.id)

    def test_role_in_use_cannot_be_deleted(self, db_session, admin_user):
        role = role_service.create_role("Stock Clerk", {"stock": {"view": True}})
        admin_user.role_id = role.id
        db_session.commit()

        with pytest.raises(ConflictError, match="assigned to 1 user"):
            role_service.delete_role(role.id)

    def test_unused_custom_role_is_deleted(self, db_session, admin_user):
        role = role_service.create_role("Auditor", {"reports": {"view": True}})
        role_id = role.id

        role_service.delete_role(role_id)

        assert db_session.get(Role, role_id) is None
        with pytest.raises(NotFoundError):
            role_service.get_role(role_id)

    def test_system_role_cannot_be_renamed(self, db_session, admin_user):
        admin_role = db_session.query(Role).filter_by(name=SUPER_ADMIN_ROLE).one()

        with pytest.raises(ConflictError):
            role_service.update_role(admin_role.id, name="Owner")


class TestPolicyTable:
    def test_every_policy_declares_a_mode(self):
        for model, policy in lifecycle_service.POLICIES.items():
            assert policy.mode in (lifecycle_service.ARCHIVE, lifecycle_service.DELETE), model

    def test_unknown_entity_type_has_no_policy(self):
        with pytest.raises(ValueError):
            lifecycle_service.policy_for(object())
