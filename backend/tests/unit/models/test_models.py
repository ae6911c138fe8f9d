"""
Unit Tests for model helpers: lifecycle, roles and vehicle type codes
"""
import pytest

from app.models.catalog import Rate
from app.models.user import User, UserRole, ROLE_LEVELS
from app.models.vehicle import Vehicle, MaintenanceStatus, generate_type_code


class TestGenerateTypeCode:

    @pytest.mark.parametrize("name,code", [
        ("Sedan", "sedan"),
        ("Sprinter Van", "sprinter_van"),
        ("  SUV  ", "suv"),
        ("Mini-Bus 20", "mini-bus_20"),
        ("Camioneta (Lujo)!", "camioneta_lujo"),
        ("Autobús", "autobs"),
    ])
    def test_codes(self, name, code):
        assert generate_type_code(name) == code


class TestLifecycle:

    def test_new_record_state(self):
        rate = Rate(name="Premium", active=True, exists=True)

        assert rate.lifecycle_status == "active"

    def test_deactivate_and_activate(self):
        rate = Rate(name="Premium", active=True, exists=True)

        rate.deactivate()
        assert rate.lifecycle_status == "archived"
        assert rate.exists is True

        rate.activate()
        assert rate.lifecycle_status == "active"

    def test_soft_delete(self):
        rate = Rate(name="Premium", active=True, exists=True)

        rate.soft_delete("user-1")

        assert rate.lifecycle_status == "deleted"
        assert rate.active is False
        assert rate.deleted_by_id == "user-1"
        assert rate.deleted_at is not None

    def test_restore_keeps_record_inactive(self):
        rate = Rate(name="Premium", active=True, exists=True)
        rate.soft_delete("user-1")

        rate.restore()

        assert rate.exists is True
        assert rate.active is False
        assert rate.deleted_at is None
        assert rate.deleted_by_id is None


class TestUserRoles:

    def test_levels_are_ordered(self):
        assert ROLE_LEVELS[UserRole.SUPERADMIN] > ROLE_LEVELS[UserRole.ADMIN] > ROLE_LEVELS[UserRole.CLIENT]
        assert UserRole.GUEST.level == 1

    def test_every_role_has_a_level(self):
        assert set(ROLE_LEVELS) == set(UserRole)

    def test_admin_flags(self):
        assert User(email="a@example.com", role=UserRole.SUPERADMIN).is_admin
        assert User(email="a@example.com", role=UserRole.ADMIN).is_admin
        assert not User(email="a@example.com", role=UserRole.DEPARTMENT_MANAGER).is_admin

    def test_full_name_falls_back_to_email(self):
        assert User(email="a@example.com", first_name="Ana", last_name="López").full_name == "Ana López"
        assert User(email="a@example.com").full_name == "a@example.com"


class TestVehicleAvailability:

    def test_available_when_active_and_operational(self):
        vehicle = Vehicle(active=True, maintenance_status=MaintenanceStatus.OPERATIONAL.value)

        assert vehicle.is_available is True

    def test_not_available_in_maintenance(self):
        vehicle = Vehicle(active=True, maintenance_status=MaintenanceStatus.MAINTENANCE.value)

        assert vehicle.is_available is False

    def test_not_available_when_inactive(self):
        vehicle = Vehicle(active=False, maintenance_status=MaintenanceStatus.OPERATIONAL.value)

        assert vehicle.is_available is False
