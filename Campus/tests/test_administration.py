from __future__ import annotations

from django.test import SimpleTestCase

from Campus.access.adapter import to_bulk_outcome
from Campus.access.contracts import Principal
from Campus.access.exceptions import AuthorizationDenied, Unauthenticated, ValidationError
from Campus.access.guards import PermissionGuard, build_gate
from Campus.access.runtime import build_runtime

from .fakes import FakeAccessBackend, isolated_cache


class AdministrationTestCase(SimpleTestCase):
    def setUp(self):
        self.backend = FakeAccessBackend()
        self.runtime = build_runtime(self.backend, backend=isolated_cache(), namespace="admin", workers=2)
        self.cache = self.runtime.cache
        self.admin = self.runtime.administration

        self.root = Principal("root", self.backend.add_user("root", "admin"))
        self.backend.add_user("ana", "author", {"course:create"})
        self.backend.add_user("bo", "student")
        self.backend.add_user("cy", "editor")
        self.backend.add_user("di", "admin")

    def tearDown(self):
        self.cache.shutdown()

    def resolves(self) -> int:
        return self.backend.calls["get_my_permissions"]


class SelfRefreshTests(AdministrationTestCase):
    def test_mutating_another_user_keeps_actor_snapshot(self):
        before = self.cache.get(self.root, timeout=5)
        self.admin.assign_role(self.root, "ana", "editor")
        self.assertEqual(self.cache.peek("root"), before)
        self.assertEqual(self.resolves(), 1)
        self.assertEqual(self.backend.users["ana"]["role"], "editor")

    def test_mutating_another_user_drops_their_snapshot(self):
        ana = Principal("ana", "tok-ana")
        self.cache.get(ana, timeout=5)
        self.admin.grant_permissions(self.root, "ana", ["internship:read"])
        self.assertIsNone(self.cache.peek("ana"))
        self.assertIn("internship:read", self.cache.get(ana, timeout=5).effective)

    def test_granting_to_self_refreshes_actor_snapshot(self):
        self.cache.get(self.root, timeout=5)
        self.admin.grant_permissions(self.root, "root", ["analytics:view"])
        snapshot = self.cache.peek("root")
        self.assertIsNotNone(snapshot)
        self.assertIn("analytics:view", snapshot.effective)
        self.assertEqual(self.resolves(), 2)

    def test_self_is_recognised_by_backend_user_id(self):
        actor = Principal("root-login", "tok-root")
        self.cache.get(actor, timeout=5)
        self.admin.grant_permissions(actor, "root", ["analytics:export"])
        self.assertIn("analytics:export", self.cache.peek("root-login").effective)

    def test_reset_on_self_leaves_exactly_the_role_base(self):
        self.backend.users["root"]["custom"] = {"analytics:view", "system:backup"}
        self.assertIn("system:backup", self.cache.get(self.root, timeout=5).effective)
        self.admin.reset_permissions(self.root, "root")
        snapshot = self.cache.peek("root")
        self.assertEqual(snapshot.effective, frozenset(self.backend.roles["admin"]["permissions"]))
        self.assertEqual(snapshot.extra_permissions, frozenset())

    def test_revoke_on_self(self):
        self.backend.users["root"]["custom"] = {"analytics:view"}
        self.cache.get(self.root, timeout=5)
        self.admin.revoke_permissions(self.root, "root", ["analytics:view"])
        self.assertNotIn("analytics:view", self.cache.peek("root").effective)


class LoginNameTests(AdministrationTestCase):
    """Django usernames that differ from the backend user id."""

    def setUp(self):
        super().setUp()
        self.backend.add_user("u-bob", "author", {"user:view"})
        self.bob = Principal("bob", "tok-u-bob")

    def test_revoking_by_backend_id_drops_login_snapshot(self):
        guard = PermissionGuard(self.cache, build_gate("user:view"))
        self.assertTrue(guard.evaluate(self.bob, timeout=5).allowed)

        self.admin.revoke_permissions(self.root, "u-bob", ["user:view"])

        self.assertIsNone(self.cache.peek("bob"))
        self.assertFalse(guard.evaluate(self.bob, timeout=5).allowed)
        self.assertEqual(self.resolves(), 2)

    def test_role_change_by_backend_id_is_seen_on_next_check(self):
        self.assertEqual(self.cache.get(self.bob, timeout=5).role, "author")
        self.admin.assign_role(self.root, "u-bob", "student")
        self.assertEqual(self.cache.get(self.bob, timeout=5).role, "student")


class BulkAssignTests(AdministrationTestCase):
    def test_partial_failure_reports_each_id_in_order(self):
        self.backend.fail_bulk_for = {"bo"}
        outcome = self.admin.bulk_assign_role(self.root, ["ana", "bo", "cy"], "reviewer")

        self.assertEqual([r.user_id for r in outcome.results], ["ana", "bo", "cy"])
        self.assertEqual(outcome.succeeded, ("ana", "cy"))
        self.assertEqual(outcome.failed, ("bo",))
        self.assertEqual(self.backend.users["ana"]["role"], "reviewer")
        self.assertEqual(self.backend.users["cy"]["role"], "reviewer")
        self.assertEqual(self.backend.users["bo"]["role"], "student")

    def test_succeeded_targets_lose_their_snapshots(self):
        ana = Principal("ana", "tok-ana")
        bo = Principal("bo", "tok-bo")
        self.cache.get(ana, timeout=5)
        self.cache.get(bo, timeout=5)
        self.backend.fail_bulk_for = {"bo"}
        self.admin.bulk_assign_role(self.root, ["ana", "bo"], "reviewer")
        self.assertIsNone(self.cache.peek("ana"))
        self.assertIsNotNone(self.cache.peek("bo"))

    def test_duplicate_and_blank_ids_are_dropped(self):
        outcome = self.admin.bulk_assign_role(self.root, ["ana", " ", "ana", "cy"], "reviewer")
        self.assertEqual([r.user_id for r in outcome.results], ["ana", "cy"])

    def test_empty_id_list_is_rejected_before_any_call(self):
        with self.assertRaises(ValidationError):
            self.admin.bulk_assign_role(self.root, [], "reviewer")
        self.assertEqual(self.backend.calls["bulk_assign_role"], 0)

    def test_ids_missing_from_backend_results_count_as_failed(self):
        outcome = to_bulk_outcome(
            ["a", "b"],
            {"message": "1 updated", "results": [{"userId": "a", "success": True}]},
        )
        self.assertEqual(outcome.succeeded, ("a",))
        self.assertEqual(outcome.failed, ("b",))
        self.assertEqual(outcome.results[1].message, "No result returned")


class ValidationTests(AdministrationTestCase):
    def test_demotion_carries_warnings(self):
        check = self.admin.validate_role_transition(self.root, "di", "user")
        self.assertTrue(check.valid)
        self.assertTrue(check.warnings)
        self.assertIn("User will lose permission: user:manage", check.warnings)

    def test_lateral_move_has_no_warnings(self):
        check = self.admin.validate_role_transition(self.root, "cy", "reviewer")
        self.assertTrue(check.valid)
        self.assertEqual(check.warnings, ())

    def test_unknown_role_is_rejected_without_mutation(self):
        with self.assertRaises(ValidationError) as ctx:
            self.admin.assign_role(self.root, "ana", "overlord")
        self.assertIn("role", ctx.exception.field_errors)
        self.assertEqual(self.backend.calls["assign_role"], 0)
        self.assertEqual(self.backend.users["ana"]["role"], "author")

    def test_empty_token_list_is_rejected_without_mutation(self):
        with self.assertRaises(ValidationError):
            self.admin.grant_permissions(self.root, "ana", [])
        with self.assertRaises(ValidationError):
            self.admin.revoke_permissions(self.root, "ana", ["  "])
        self.assertEqual(self.backend.calls["add_permissions"], 0)
        self.assertEqual(self.backend.calls["remove_permissions"], 0)

    def test_missing_user_id(self):
        with self.assertRaises(ValidationError):
            self.admin.reset_permissions(self.root, "")


class RejectionTests(AdministrationTestCase):
    def test_denied_mutation_keeps_actor_snapshot(self):
        editor = Principal("cy", "tok-cy")
        before = self.cache.get(editor, timeout=5)
        with self.assertRaises(AuthorizationDenied):
            self.admin.assign_role(editor, "bo", "author")
        self.assertEqual(self.cache.peek("cy"), before)
        self.assertEqual(self.backend.users["bo"]["role"], "student")

    def test_target_at_actor_level_is_denied(self):
        with self.assertRaises(AuthorizationDenied):
            self.admin.assign_role(self.root, "di", "user")

    def test_anonymous_actor(self):
        with self.assertRaises(Unauthenticated):
            self.admin.reset_permissions(Principal("root", ""), "ana")


class ReadModelTests(AdministrationTestCase):
    def test_analysis_keeps_role_and_custom_sets_apart(self):
        analysis = self.admin.analyze_permissions(self.root, "ana")
        self.assertEqual(analysis.current_role, "author")
        self.assertEqual(analysis.custom_permissions, frozenset({"course:create"}))
        self.assertEqual(
            analysis.effective_permissions,
            analysis.role_permissions | analysis.custom_permissions,
        )

    def test_role_hierarchy_is_fetched_once(self):
        first = self.admin.role_hierarchy(self.root)
        self.admin.list_roles(self.root)
        self.assertEqual(self.backend.calls["get_role_hierarchy"], 1)
        self.assertEqual(first.names()[0], "user")
        self.assertEqual(self.runtime.roles.level_of("reviewer"), 5)

    def test_refresh_roles_fetches_again(self):
        self.admin.role_hierarchy(self.root)
        self.admin.refresh_roles(self.root)
        self.assertEqual(self.backend.calls["get_role_hierarchy"], 2)
