from unittest.mock import patch

from fastapi import FastAPI

from app.core.errors import install_error_handlers
from tests.api.base import *  # noqa: F401,F403


class ContactCrudTests(ResourceApiBase):
    def test_create_requires_name_and_persists_nothing(self):
        response = self.client.post("/api/v1/contacts", json={"email": "nobody@example.com"})
        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.json(), {"status": "error", "message": ["name is required"]})
        with self.SessionLocal() as db:
            self.assertEqual(db.query(Contact).count(), 0)

    def test_create_rejects_non_object_payload(self):
        response = self.client.post("/api/v1/contacts", json=[{"name": "Ada"}])
        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.json()["message"], ["payload must be a JSON object"])

    def test_create_collects_every_failing_field(self):
        response = self.client.post("/api/v1/contacts", json={"name": "Ada", "email": "no-at-sign", "nickname": "A"})
        self.assertEqual(response.status_code, 400)
        messages = response.json()["message"]
        self.assertIn("nickname is not a known field", messages)
        self.assertTrue(any(message.startswith("email:") for message in messages), messages)

    def test_public_create_shapes_identifier_as_public_id(self):
        response = self.client.post("/api/v1/contacts", json={"name": "Grace", "email": "GRACE@EXAMPLE.COM"})
        self.assertEqual(response.status_code, 201)
        body = response.json()["contact"]
        self.assertTrue(is_public_id(body["id"]))
        self.assertTrue(body["id"].startswith("contact_"))
        self.assertEqual(body["email"], "grace@example.com")
        self.assertEqual(body["type"], "customer")
        self.assertNotIn("public_id", body)
        self.assertNotIn("phone", body)

    def test_internal_caller_gets_internal_serializer(self):
        created = self._create_contact(phone="+100200300")
        UUID(created["id"])
        self.assertTrue(is_public_id(created["public_id"]))
        self.assertEqual(created["phone"], "+100200300")
        self.assertIn("updated_at", created)

    def test_find_by_public_id_and_primary_key(self):
        created = self._create_contact()
        by_public = self.client.get(f"/api/v1/contacts/{created['public_id']}")
        self.assertEqual(by_public.status_code, 200)
        self.assertEqual(by_public.json()["contact"]["id"], created["public_id"])

        by_pk = self.client.get(f"/api/v1/contacts/{created['id']}", headers=self._internal_headers())
        self.assertEqual(by_pk.status_code, 200)
        self.assertEqual(by_pk.json()["contact"]["public_id"], created["public_id"])

    def test_unknown_id_is_not_found(self):
        for record_id in ("contact_ZZZZZZZ", "not-an-id"):
            response = self.client.get(f"/api/v1/contacts/{record_id}")
            self.assertEqual(response.status_code, 404)
            self.assertEqual(response.json(), {"status": "failed", "message": "Contact not found"})

    def test_public_list_is_bare_and_internal_list_is_wrapped(self):
        self._create_contact(name="Ada")
        self._create_contact(name="Grace")

        public = self.client.get("/api/v1/contacts")
        self.assertEqual(public.status_code, 200)
        self.assertIsInstance(public.json(), list)
        self.assertEqual(len(public.json()), 2)

        internal = self.client.get("/api/v1/contacts", headers=self._internal_headers())
        self.assertEqual(internal.status_code, 200)
        self.assertEqual(list(internal.json()), ["contacts"])
        self.assertEqual(len(internal.json()["contacts"]), 2)

    def test_list_filters_sort_and_pagination(self):
        self._create_contact(name="Young", age=20)
        self._create_contact(name="Middle", age=40)
        self._create_contact(name="Senior", age=50)

        response = self.client.get("/api/v1/contacts?age_gt=30&sort=age:desc&limit=1&page=2")
        self.assertEqual(response.status_code, 200)
        self.assertEqual([item["name"] for item in response.json()], ["Middle"])

        response = self.client.get("/api/v1/contacts?name_in=Young,Senior&sort=name")
        self.assertEqual([item["name"] for item in response.json()], ["Senior", "Young"])

        response = self.client.get("/api/v1/contacts?name_like=dd&_trace=1")
        self.assertEqual([item["name"] for item in response.json()], ["Middle"])

    def test_invalid_query_parameters(self):
        response = self.client.get("/api/v1/contacts?colour=red")
        self.assertEqual(response.status_code, 400)
        body = response.json()
        self.assertEqual(body["status"], "error")
        self.assertEqual(body["parameter"], "colour")

        response = self.client.get("/api/v1/contacts?page=0")
        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.json()["parameter"], "page")

        response = self.client.get("/api/v1/contacts?sort=phone_number")
        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.json()["parameter"], "sort")

    def test_count_and_search(self):
        self._create_contact(name="Ada Lovelace", type="vendor")
        self._create_contact(name="Grace Hopper", email="grace@navy.example")
        self._create_contact(name="Alan Turing", type="vendor")

        count = self.client.get("/api/v1/contacts/count?type=vendor&sort=latest")
        self.assertEqual(count.status_code, 200)
        self.assertEqual(count.json(), {"count": 2})

        found = self.client.get("/api/v1/contacts/search?query=navy")
        self.assertEqual(found.status_code, 200)
        self.assertEqual([item["name"] for item in found.json()], ["Grace Hopper"])

        wrapped = self.client.get("/api/v1/contacts/search?query=a&type=vendor", headers=self._internal_headers())
        self.assertEqual(len(wrapped.json()["contacts"]), 2)

    def test_update_and_partial_validation(self):
        created = self._create_contact(age=36)

        updated = self.client.patch(f"/api/v1/contacts/{created['public_id']}", json={"age": 37})
        self.assertEqual(updated.status_code, 200)
        self.assertEqual(updated.json()["contact"]["age"], 37)
        self.assertEqual(updated.json()["contact"]["name"], created["name"])

        replaced = self.client.put(f"/api/v1/contacts/{created['public_id']}", json={"type": "driver"})
        self.assertEqual(replaced.status_code, 200)
        self.assertEqual(replaced.json()["contact"]["type"], "driver")

        empty = self.client.patch(f"/api/v1/contacts/{created['public_id']}", json={})
        self.assertEqual(empty.status_code, 400)
        self.assertEqual(empty.json()["message"], ["no fields to update"])

        invalid = self.client.patch(f"/api/v1/contacts/{created['public_id']}", json={"age": 400})
        self.assertEqual(invalid.status_code, 400)

        missing = self.client.patch("/api/v1/contacts/contact_ZZZZZZZ", json={"age": 1})
        self.assertEqual(missing.status_code, 404)

    def test_delete_returns_envelope_with_snapshot(self):
        created = self._create_contact()

        deleted = self.client.delete(f"/api/v1/contacts/{created['public_id']}")
        self.assertEqual(deleted.status_code, 200)
        body = deleted.json()
        self.assertEqual(body["status"], "success")
        self.assertEqual(body["message"], "Resource deleted")
        self.assertEqual(body["data"]["id"], created["public_id"])

        self.assertEqual(self.client.get(f"/api/v1/contacts/{created['public_id']}").status_code, 404)
        self.assertEqual(self.client.delete(f"/api/v1/contacts/{created['public_id']}").status_code, 404)

    def test_relation_count_and_contain(self):
        contact = self._create_contact()
        self._create_order(customer_uuid=contact["id"])
        self._create_order(customer_uuid=contact["id"], total=5)

        response = self.client.get(f"/api/v1/contacts/{contact['public_id']}?count=orders&contain=orders,ghosts")
        self.assertEqual(response.status_code, 200)
        body = response.json()["contact"]
        self.assertEqual(body["orders_count"], 2)
        self.assertEqual(len(body["orders"]), 2)
        self.assertTrue(all(item["id"].startswith("order_") for item in body["orders"]))
        self.assertNotIn("ghosts", body)

        listed = self.client.get("/api/v1/contacts?with_count=orders")
        self.assertEqual(listed.json()[0]["orders_count"], 2)


class VersionFallbackTests(ResourceApiBase):
    def test_unregistered_version_uses_generic_serializer(self):
        created = self._create_contact(phone="+1")

        public = self.client.get(f"/api/v2/contacts/{created['public_id']}")
        self.assertEqual(public.status_code, 200)
        body = public.json()["contact"]
        self.assertEqual(body["id"], created["public_id"])
        self.assertEqual(body["phone"], "+1")
        self.assertNotIn("public_id", body)

        internal = self.client.get(f"/api/v2/contacts/{created['public_id']}", headers=self._internal_headers())
        self.assertEqual(internal.json()["contact"]["id"], created["id"])
        self.assertEqual(internal.json()["contact"]["public_id"], created["public_id"])

    def test_unknown_resource_is_not_found(self):
        response = self.client.get("/api/v1/spaceships")
        self.assertEqual(response.status_code, 404)
        self.assertEqual(response.json(), {"status": "failed", "message": "Resource not found"})

        response = self.client.post("/api/v1/spaceships", json={"name": "x"})
        self.assertEqual(response.status_code, 404)


class OrderArtifactTests(ResourceApiBase):
    def test_internal_order_downgrades_to_public_serializer(self):
        contact = self._create_contact()
        order = self._create_order(customer_uuid=contact["id"])
        self.assertEqual(order["currency"], "EUR")
        self.assertEqual(order["customer"], contact["public_id"])
        self.assertEqual(order["customer_uuid"], contact["id"])
        UUID(order["id"])

        public = self.client.get(f"/api/v1/orders/{order['public_id']}")
        body = public.json()["order"]
        self.assertEqual(body["id"], order["public_id"])
        self.assertNotIn("customer_uuid", body)

    def test_create_validator_applies_to_create_only(self):
        missing = self.client.post("/api/v1/orders", json={"total": 5})
        self.assertEqual(missing.status_code, 400)
        self.assertEqual(missing.json()["message"], ["currency is required"])

        negative = self.client.post("/api/v1/orders", json={"currency": "usd", "total": -1})
        self.assertEqual(negative.status_code, 400)

        order = self._create_order()
        updated = self.client.patch(f"/api/v1/orders/{order['public_id']}", json={"status": "completed"})
        self.assertEqual(updated.status_code, 200)
        self.assertEqual(updated.json()["order"]["status"], "completed")

    def test_order_filter_handles_its_own_keys(self):
        ada = self._create_contact(name="Ada")
        grace = self._create_contact(name="Grace")
        self._create_order(customer_uuid=ada["id"], total=1, notes="first")
        self._create_order(customer_uuid=ada["id"], total=2, status="completed", notes="second")
        self._create_order(customer_uuid=grace["id"], total=3, notes="third")

        active = self.client.get("/api/v1/orders?active=1&sort=total")
        self.assertEqual([item["notes"] for item in active.json()], ["first", "third"])

        by_public_id = self.client.get(f"/api/v1/orders?customer={ada['public_id']}&sort=total")
        self.assertEqual([item["notes"] for item in by_public_id.json()], ["first", "second"])

        by_uuid = self.client.get(f"/api/v1/orders/count?customer={grace['id']}")
        self.assertEqual(by_uuid.json(), {"count": 1})

        nothing = self.client.get("/api/v1/orders?customer=somebody")
        self.assertEqual(nothing.json(), [])

        # Only orders have these keys; contacts reject them as unknown fields.
        rejected = self.client.get("/api/v1/contacts?active=1")
        self.assertEqual(rejected.status_code, 400)
        self.assertEqual(rejected.json()["parameter"], "active")


class DashboardArtifactTests(ResourceApiBase):
    def test_dashboard_uses_generic_artifacts(self):
        created = self.client.post("/api/v1/dashboards", json={"name": "Ops"})
        self.assertEqual(created.status_code, 201)
        body = created.json()["dashboard"]
        self.assertTrue(body["id"].startswith("dashboard_"))
        self.assertEqual(body["name"], "Ops")
        self.assertIn("updated_at", body)

    def test_widget_serializer_override_applies_to_every_version(self):
        dashboard = self.client.post("/api/v1/dashboards", json={"name": "Ops"}, headers=self._internal_headers())
        dashboard_uuid = dashboard.json()["dashboard"]["id"]

        created = self.client.post(
            "/api/v1/dashboard-widgets",
            json={"name": "Revenue", "component": "line-chart", "dashboard_uuid": dashboard_uuid},
        )
        self.assertEqual(created.status_code, 201, created.text)
        widget = created.json()["dashboard_widget"]
        self.assertTrue(widget["id"].startswith("widget_"))
        self.assertEqual(widget["grid_options"], {})
        self.assertEqual(widget["dashboard_uuid"], dashboard_uuid)

        v2 = self.client.get(f"/api/v2/dashboard_widgets/{widget['id']}")
        self.assertEqual(v2.status_code, 200)
        self.assertEqual(set(v2.json()["dashboard_widget"]), set(widget))

    def test_widget_rejects_malformed_foreign_key(self):
        response = self.client.post(
            "/api/v1/dashboard_widgets",
            json={"name": "Revenue", "component": "line-chart", "dashboard_uuid": "nope"},
        )
        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.json()["message"], ["dashboard_uuid must be a valid UUID"])

    def test_dashboard_contains_widgets(self):
        dashboard = self.client.post("/api/v1/dashboards", json={"name": "Ops"}, headers=self._internal_headers())
        body = dashboard.json()["dashboard"]
        self.client.post(
            "/api/v1/dashboard_widgets",
            json={"name": "Revenue", "component": "line-chart", "dashboard_uuid": body["id"]},
        )

        response = self.client.get(f"/api/v1/dashboards/{body['public_id']}?contain=widgets&count=widgets")
        payload = response.json()["dashboard"]
        self.assertEqual(payload["widgets_count"], 1)
        self.assertEqual(payload["widgets"][0]["name"], "Revenue")


class ColumnTypeValidationTests(ResourceApiBase):
    def test_update_rejects_wrong_types_and_overlong_strings(self):
        order = self._create_order()
        response = self.client.patch(
            f"/api/v1/orders/{order['public_id']}", json={"total": "abc", "currency": "toolong"}
        )
        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.json()["status"], "error")
        self.assertEqual(
            set(response.json()["message"]),
            {"total must be a valid integer", "currency must be at most 3 characters"},
        )
        unchanged = self.client.get(f"/api/v1/orders/{order['public_id']}").json()["order"]
        self.assertEqual((unchanged["total"], unchanged["currency"]), (100, "EUR"))

    def test_booleans_are_not_numbers(self):
        order = self._create_order()
        response = self.client.patch(f"/api/v1/orders/{order['public_id']}", json={"total": True})
        self.assertEqual(response.json()["message"], ["total must be a valid integer"])

    def test_numeric_strings_are_coerced(self):
        order = self._create_order()
        response = self.client.patch(f"/api/v1/orders/{order['public_id']}", json={"total": "7"})
        self.assertEqual(response.status_code, 200, response.text)
        self.assertEqual(response.json()["order"]["total"], 7)

    def test_schemaless_entity_still_checks_column_types(self):
        response = self.client.post("/api/v1/dashboards", json={"name": 123})
        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.json(), {"status": "error", "message": ["name must be a valid string"]})

        too_long = self.client.post("/api/v1/dashboards", json={"name": "x" * 201})
        self.assertEqual(too_long.json()["message"], ["name must be at most 200 characters"])
        with self.SessionLocal() as db:
            self.assertEqual(db.query(Dashboard).count(), 0)


class ErrorEnvelopeTests(ResourceApiBase):
    def test_page_beyond_bound_is_a_parameter_error(self):
        response = self.client.get("/api/v1/contacts?page=100000000000000000000")
        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.json()["status"], "error")
        self.assertEqual(response.json()["parameter"], "page")

    def test_malformed_json_body_is_a_validation_envelope(self):
        response = self.client.post(
            "/api/v1/contacts", content="{not json", headers={"Content-Type": "application/json"}
        )
        self.assertEqual(response.status_code, 400)
        body = response.json()
        self.assertEqual(body["status"], "error")
        self.assertIsInstance(body["message"], list)
        self.assertTrue(body["message"][0].startswith("body"), body)
        self.assertNotIn("detail", body)

    def test_missing_body_is_a_validation_envelope(self):
        response = self.client.post("/api/v1/contacts")
        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.json(), {"status": "error", "message": ["body is required"]})

    def test_commit_failure_rolls_back_and_returns_500_envelope(self):
        with patch("app.models.common.generate_public_id", return_value="contact_AAAAAAA"):
            first = self.client.post("/api/v1/contacts", json={"name": "Ada"})
            with self.assertLogs("app.crud", level="WARNING"):
                second = self.client.post("/api/v1/contacts", json={"name": "Grace"})
        self.assertEqual(first.status_code, 201, first.text)
        self.assertEqual(second.status_code, 500)
        self.assertEqual(second.json()["status"], "error")
        self.assertIsInstance(second.json()["message"], str)
        with self.SessionLocal() as db:
            self.assertEqual([row.name for row in db.query(Contact).all()], ["Ada"])

    def test_read_failure_returns_500_envelope(self):
        bare = create_engine(
            "sqlite+pysqlite:///:memory:",
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
        )
        BareSession = sessionmaker(bind=bare, autocommit=False, autoflush=False)

        def missing_tables_db():
            db = BareSession()
            try:
                yield db
            finally:
                db.close()

        app.dependency_overrides[get_db] = missing_tables_db
        try:
            for path in ("/api/v1/contacts", "/api/v1/contacts/count", "/api/v1/contacts/search?query=a"):
                with self.subTest(path=path):
                    response = self.client.get(path)
                    self.assertEqual(response.status_code, 500)
                    self.assertEqual(response.json()["status"], "error")
        finally:
            bare.dispose()

    def test_unexpected_exception_uses_generic_envelope(self):
        failing = FastAPI()
        install_error_handlers(failing)

        @failing.get("/boom")
        def boom():
            raise RuntimeError("driver exploded")

        with TestClient(failing, raise_server_exceptions=False) as client:
            with self.assertLogs("app.http", level="ERROR"):
                response = client.get("/boom")
        self.assertEqual(response.status_code, 500)
        self.assertEqual(response.json(), {"status": "error", "message": "Internal error"})


class UnversionedRouteTests(ResourceApiBase):
    def test_unversioned_routes_use_default_version(self):
        created = self.client.post("/api/contacts", json={"name": "Ada", "email": "ada@example.com"})
        self.assertEqual(created.status_code, 201, created.text)
        public_id = created.json()["contact"]["id"]

        versioned = self.client.get(f"/api/v{settings.DEFAULT_API_VERSION}/contacts/{public_id}")
        unversioned = self.client.get(f"/api/contacts/{public_id}")
        self.assertEqual(unversioned.status_code, 200)
        self.assertEqual(unversioned.json(), versioned.json())
        self.assertEqual(self.client.get("/api/contacts/count").json(), {"count": 1})

    def test_version_zero_is_rejected(self):
        response = self.client.get("/api/v0/contacts")
        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.json()["parameter"], "version")

    def test_non_numeric_version_is_not_a_version(self):
        response = self.client.get("/api/vX/contacts")
        self.assertEqual(response.status_code, 404)
        self.assertEqual(response.json(), {"status": "failed", "message": "Resource not found"})
