"""Unit tests for app.services.tenant_directory: host resolution and domain provisioning."""

import unittest
from unittest.mock import MagicMock

from sqlalchemy import create_engine
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import sessionmaker

from app.models import Base, DomainMapping, User
from app.services.tenant_directory import (
    DomainConflictError,
    DomainNotFoundError,
    TenantDirectory,
    host_from_header,
    is_local_host,
)


def _settings() -> MagicMock:
    settings = MagicMock()
    settings.LOCAL_HOSTS = ["localhost", "127.0.0.1"]
    settings.PREVIEW_HOST_SUFFIXES = [".figma.com", "figma.site"]
    return settings


class TestLocalHosts(unittest.TestCase):
    """Dev and preview hosts resolve without touching the database."""

    def test_local_hosts_short_circuit(self) -> None:
        db = MagicMock()
        directory = TenantDirectory(db, _settings())
        for host in ("localhost", "127.0.0.1", "app.figma.com", "demo.figma.site", "figma.site"):
            with self.subTest(host=host):
                result = directory.resolve(host)
                self.assertEqual(result.kind, "local")
                self.assertIsNone(result.tenant_id)
                self.assertTrue(result.found)
        db.query.assert_not_called()

    def test_lookalike_is_not_local(self) -> None:
        self.assertFalse(is_local_host("notfigma.com", _settings()))
        self.assertFalse(is_local_host("localhost.acme.example", _settings()))
        self.assertFalse(is_local_host("127.0.0.1.evil.example", _settings()))
        self.assertFalse(is_local_host("127.0.0.10", _settings()))

    def test_malformed_hosts_are_not_found_without_query(self) -> None:
        db = MagicMock()
        directory = TenantDirectory(db, _settings())
        for host in ("", "acme.example:8443", "acme.example."):
            with self.subTest(host=host):
                self.assertEqual(directory.resolve(host).kind, "not_found")
        db.query.assert_not_called()

    def test_host_from_header(self) -> None:
        self.assertEqual(host_from_header("admin.acme.example:443"), "admin.acme.example")
        self.assertEqual(host_from_header("acme.example"), "acme.example")
        self.assertEqual(host_from_header("[::1]:8000"), "[::1]")
        self.assertEqual(host_from_header(None), "")


class _DirectoryDbTest(unittest.TestCase):
    def setUp(self) -> None:
        engine = create_engine("sqlite://")
        Base.metadata.create_all(engine)
        self.db = sessionmaker(bind=engine)()
        self.db.add_all(
            [
                User(id="C-ACME", email="acme@x.test", username="acme", display_name="Acme", role="center", tenant_id="C-ACME"),
                User(id="C-BETA", email="beta@x.test", username="beta", role="center", tenant_id="C-BETA"),
                User(id="S1", email="s1@x.test", username="s1", role="store", parent_id="C-ACME", tenant_id="C-ACME"),
                DomainMapping(domain="acme.example", tenant_id="C-ACME", domain_type="main"),
                DomainMapping(domain="admin.acme.example", tenant_id="C-ACME", domain_type="admin"),
                DomainMapping(domain="old.acme.example", tenant_id="C-ACME", domain_type="main", is_active=False),
                DomainMapping(domain="store.example", tenant_id="S1", domain_type="main"),
            ]
        )
        self.db.commit()
        self.directory = TenantDirectory(self.db, _settings())

    def tearDown(self) -> None:
        self.db.close()


class TestResolve(_DirectoryDbTest):
    """Exact match on active mappings owned by a center."""

    def test_admin_domain(self) -> None:
        result = self.directory.resolve("admin.acme.example")
        self.assertEqual(result.kind, "mapped")
        self.assertEqual(result.tenant_id, "C-ACME")
        self.assertEqual(result.tenant_name, "Acme")
        self.assertEqual(result.domain_type, "admin")

    def test_unnamed_center_gets_placeholder(self) -> None:
        self.directory.provision("C-BETA", "beta.example", "main")
        self.assertEqual(self.directory.resolve("beta.example").tenant_name, "Unnamed Center")

    def test_unknown_domain(self) -> None:
        self.assertEqual(self.directory.resolve("random.example").kind, "not_found")

    def test_match_is_case_sensitive(self) -> None:
        self.assertEqual(self.directory.resolve("Admin.Acme.Example").kind, "not_found")

    def test_inactive_mapping_is_not_found(self) -> None:
        self.assertEqual(self.directory.resolve("old.acme.example").kind, "not_found")

    def test_mapping_owned_by_non_center_is_not_found(self) -> None:
        self.assertEqual(self.directory.resolve("store.example").kind, "not_found")


class TestProvision(_DirectoryDbTest):
    """Provisioning keeps one active mapping per domain and per tenant slot."""

    def test_new_mapping(self) -> None:
        mapping = self.directory.provision("C-BETA", "admin.beta.example", "admin")
        self.assertTrue(mapping.is_active)
        self.assertEqual(self.directory.resolve("admin.beta.example").tenant_id, "C-BETA")

    def test_active_domain_conflicts(self) -> None:
        with self.assertRaises(DomainConflictError):
            self.directory.provision("C-BETA", "acme.example", "main")

    def test_second_active_mapping_of_same_type_conflicts(self) -> None:
        with self.assertRaises(DomainConflictError):
            self.directory.provision("C-ACME", "www.acme.example", "main")

    def test_retired_domain_is_reused(self) -> None:
        self.directory.deactivate("acme.example")
        mapping = self.directory.provision("C-ACME", "old.acme.example", "main")
        self.assertTrue(mapping.is_active)
        self.assertEqual(
            self.db.query(DomainMapping).filter(DomainMapping.domain == "old.acme.example").count(),
            1,
        )

    def test_unknown_center(self) -> None:
        with self.assertRaises(DomainNotFoundError):
            self.directory.provision("S1", "s1.example", "main")

    def test_rejects_port_and_type(self) -> None:
        with self.assertRaises(DomainConflictError):
            self.directory.provision("C-BETA", "beta.example:80", "main")
        with self.assertRaises(DomainConflictError):
            self.directory.provision("C-BETA", "beta.example", "partner")


class TestDeactivate(_DirectoryDbTest):
    def test_deactivate_keeps_row(self) -> None:
        self.directory.deactivate("admin.acme.example")
        self.assertEqual(self.directory.resolve("admin.acme.example").kind, "not_found")
        self.assertEqual(len(self.directory.list_for_tenant("C-ACME")), 3)

    def test_other_tenant_cannot_deactivate(self) -> None:
        with self.assertRaises(DomainNotFoundError):
            self.directory.deactivate("acme.example", tenant_id="C-BETA")

    def test_unknown_domain(self) -> None:
        with self.assertRaises(DomainNotFoundError):
            self.directory.deactivate("nope.example")



class TestReplace(_DirectoryDbTest):
    """Moving a tenant binds main and admin.<domain> together."""

    def test_binds_pair_and_retires_current(self) -> None:
        mappings = self.directory.replace("C-ACME", "acme.test")
        self.assertEqual(
            sorted((m.domain, m.domain_type) for m in mappings),
            [("acme.test", "main"), ("admin.acme.test", "admin")],
        )
        self.assertEqual(self.directory.resolve("acme.test").tenant_id, "C-ACME")
        self.assertEqual(self.directory.resolve("admin.acme.test").domain_type, "admin")
        self.assertEqual(self.directory.resolve("acme.example").kind, "not_found")
        self.assertEqual(self.directory.resolve("admin.acme.example").kind, "not_found")
        self.assertEqual(len(self.directory.list_for_tenant("C-ACME")), 5)

    def test_reuses_retired_rows(self) -> None:
        self.directory.replace("C-ACME", "acme.test")
        self.directory.replace("C-ACME", "acme.example")
        self.assertEqual(self.directory.resolve("admin.acme.example").tenant_id, "C-ACME")
        self.assertEqual(len(self.directory.list_for_tenant("C-ACME")), 5)

    def test_taken_host_changes_nothing(self) -> None:
        with self.assertRaises(DomainConflictError):
            self.directory.replace("C-BETA", "acme.example")
        self.assertEqual(self.directory.resolve("acme.example").tenant_id, "C-ACME")
        self.assertEqual(self.directory.list_for_tenant("C-BETA"), [])

    def test_unknown_center(self) -> None:
        with self.assertRaises(DomainNotFoundError):
            self.directory.replace("S1", "s1.example")

    def test_rejects_port(self) -> None:
        with self.assertRaises(DomainConflictError):
            self.directory.replace("C-BETA", "beta.example:80")


class TestSchemaConstraints(_DirectoryDbTest):
    """The database itself refuses rows the service would never write."""

    def test_second_active_mapping_of_same_type(self) -> None:
        self.db.add(DomainMapping(domain="www.acme.example", tenant_id="C-ACME", domain_type="main"))
        with self.assertRaises(IntegrityError):
            self.db.commit()
        self.db.rollback()

    def test_retired_mappings_do_not_count(self) -> None:
        self.db.add(DomainMapping(domain="older.acme.example", tenant_id="C-ACME", domain_type="main", is_active=False))
        self.db.commit()

    def test_unknown_domain_type(self) -> None:
        self.db.add(DomainMapping(domain="p.beta.example", tenant_id="C-BETA", domain_type="partner"))
        with self.assertRaises(IntegrityError):
            self.db.commit()
        self.db.rollback()


if __name__ == "__main__":
    unittest.main()
