import unittest
from unittest.mock import patch

from fastapi.testclient import TestClient

from gradecalc.app import app, get_store
from gradecalc.core.models import CourseRecord
from gradecalc.services.canvas_service import CanvasService, CanvasServiceError
from gradecalc.services.storage import KeyValueStorage
from gradecalc.state.course_store import CourseStore


class ApiTestCase(unittest.TestCase):
    def setUp(self):
        self.store = CourseStore(KeyValueStorage(":memory:"))
        app.dependency_overrides[get_store] = lambda: self.store
        self.client = TestClient(app)

    def tearDown(self):
        app.dependency_overrides.clear()
        self.store.storage.close()


class CalculatorApiTests(ApiTestCase):
    def test_health(self):
        self.assertEqual(self.client.get("/health").json(), {"status": "ok"})

    def test_projection(self):
        res = self.client.post(
            "/calculator/projection",
            json={"current_grade": 80, "final_weight": 50, "final_score": 90},
        )
        self.assertEqual(res.status_code, 200)
        body = res.json()
        self.assertAlmostEqual(body["projected_grade"], 85.0)
        self.assertEqual(body["band"]["label"], "B")
        self.assertEqual(body["risk"], "LowRisk")

    def test_requirement(self):
        res = self.client.post(
            "/calculator/requirement",
            json={"current_grade": 85.75, "final_weight": 30, "target_cutoff": 93, "round_to_whole": True},
        )
        body = res.json()
        self.assertAlmostEqual(body["required_raw"], 108.25)
        self.assertEqual(body["required_clamped"], 100)
        self.assertFalse(body["achievable"])
        self.assertFalse(body["infinite"])

    def test_requirement_with_zero_weight(self):
        res = self.client.post(
            "/calculator/requirement",
            json={"current_grade": 95, "final_weight": 0, "target_cutoff": 90},
        )
        body = res.json()
        self.assertIsNone(body["required_raw"])
        self.assertTrue(body["infinite"])
        self.assertFalse(body["achievable"])
        self.assertTrue(body["already_achieved"])

    def test_band_validation(self):
        res = self.client.post("/bands/validate", json=[{"label": "P", "cutoff": 50}])
        self.assertFalse(res.json()["valid"])
        res = self.client.post("/bands/validate", json=[{"label": "P", "cutoff": 50}, {"label": "F", "cutoff": 0}])
        self.assertTrue(res.json()["valid"])


class CourseApiTests(ApiTestCase):
    def test_list_seeded_courses(self):
        courses = self.client.get("/courses").json()
        self.assertEqual(len(courses), 4)
        math_course = courses[0]
        self.assertEqual(math_course["name"], "Math")
        self.assertEqual(math_course["status"], "impossible")
        self.assertAlmostEqual(math_course["requirement"]["required_raw"], 108.25)
        self.assertEqual(math_course["current_band"]["label"], "B")

    def test_create_update_delete(self):
        res = self.client.post("/courses", json={"name": "Physics", "current_grade": 150, "final_weight": 40})
        self.assertEqual(res.status_code, 201)
        created = res.json()
        self.assertEqual(created["current"], 100)

        res = self.client.patch(f"/courses/{created['id']}", json={"current_grade": 72.5, "target_band_label": "B"})
        self.assertEqual(res.json()["current"], 72.5)

        res = self.client.delete(f"/courses/{created['id']}")
        self.assertEqual(res.json(), {"status": "deleted"})
        self.assertEqual(self.client.get(f"/courses/{created['id']}").status_code, 404)

    def test_requirement_without_target(self):
        course = self.store.add_course("Open", current_grade=70, final_weight=20, target_band_label="Z")
        res = self.client.get(f"/courses/{course.id}/requirement")
        self.assertEqual(res.json(), {"target": None, "message": "No target set"})

    def test_grades_table(self):
        course = self.store.add_course("Half", current_grade=80, final_weight=50)
        self.client.patch("/settings", json={"round_to_whole": False})
        rows = self.client.get(f"/courses/{course.id}/grades-table").json()
        self.assertEqual(rows[0]["label"], "A−")
        self.assertEqual(rows[0]["required"], 100.0)

    def test_what_if(self):
        course = self.store.add_course("Half", current_grade=60, final_weight=50)
        rows = self.client.get(f"/courses/{course.id}/what-if", params={"kind": "risk"}).json()
        self.assertEqual([row["final_score"] for row in rows], [0, 30, 50, 70])
        self.assertEqual(rows[0]["risk"], "HighRisk")
        res = self.client.get(f"/courses/{course.id}/what-if", params={"kind": "luck"})
        self.assertEqual(res.status_code, 400)

    def test_summary(self):
        body = self.client.get("/summary").json()
        self.assertAlmostEqual(body["gpa"], 3.075, delta=0.006)
        self.assertEqual(body["current_grades"]["1"], "86")
        self.assertEqual(body["statistics"]["at_risk"], 0)

    def test_invalid_custom_bands_are_rejected(self):
        res = self.client.patch("/settings", json={"grade_bands": [{"label": "P", "cutoff": 50}]})
        self.assertEqual(res.status_code, 400)

    def test_backup_round_trip(self):
        backup = self.client.get("/backup").json()
        self.store.reset()
        res = self.client.post("/backup", json=backup)
        self.assertEqual(res.json(), {"status": "imported", "count": 4})

    def test_bad_backup(self):
        res = self.client.post("/backup", json={"something": "else"})
        self.assertEqual(res.status_code, 400)
        self.assertEqual(len(self.store.get_courses()), 4)


class LmsApiTests(ApiTestCase):
    def test_unsupported_provider(self):
        res = self.client.post("/api/lms/moodle", json={"token": "t", "baseUrl": "x"})
        self.assertEqual(res.status_code, 400)
        self.assertEqual(res.json(), {"error": "Unsupported provider"})

    def test_missing_credentials(self):
        res = self.client.post("/api/lms/canvas", json={"token": "t"})
        self.assertEqual(res.status_code, 400)
        self.assertIn("error", res.json())

    def test_non_object_body(self):
        res = self.client.post("/api/lms/canvas", json=["token"])
        self.assertEqual(res.json(), {"error": "Invalid request"})

    def test_import_returns_classes(self):
        imported = [CourseRecord(id="42", name="Chemistry", current_grade=91, final_weight=100, source="canvas")]
        with patch.object(CanvasService, "import_classes", return_value=imported):
            res = self.client.post("/api/lms/canvas", json={"token": "t", "url": "canvas.example.edu"})
        self.assertEqual(res.status_code, 200)
        self.assertEqual(res.json()["classes"][0]["name"], "Chemistry")

    def test_canvas_failure_is_reported(self):
        error = CanvasServiceError("Canvas request failed (401): Unauthorized", status_code=502)
        with patch.object(CanvasService, "import_classes", side_effect=error):
            res = self.client.post("/api/lms/canvas", json={"token": "t", "baseUrl": "canvas.example.edu"})
        self.assertEqual(res.status_code, 502)
        self.assertIn("401", res.json()["error"])

    def test_import_into_store(self):
        imported = [CourseRecord(id="42", name="Chemistry", current_grade=91, final_weight=100, source="canvas")]
        with patch.object(CanvasService, "import_classes", return_value=imported):
            res = self.client.post("/courses/import/canvas", json={"token": "t", "baseUrl": "canvas.example.edu"})
        self.assertEqual(res.json(), {"status": "imported", "count": 1})
        self.assertEqual(len(self.store.get_courses()), 5)

    def test_failed_import_leaves_store_untouched(self):
        before = self.store.export_backup()
        with patch.object(CanvasService, "import_classes", side_effect=CanvasServiceError("down", status_code=502)):
            res = self.client.post("/courses/import/canvas", json={"token": "t", "baseUrl": "canvas.example.edu"})
        self.assertEqual(res.status_code, 502)
        self.assertEqual(self.store.export_backup(), before)

    def test_courses_proxy_usage(self):
        self.assertIn("message", self.client.get("/api/canvas/courses").json())

    def test_courses_proxy(self):
        with patch.object(CanvasService, "fetch_courses", return_value=[{"id": 1}]):
            res = self.client.post("/api/canvas/courses", json={"token": "t", "baseUrl": "canvas.example.edu"})
        self.assertEqual(res.json(), {"courses": [{"id": 1}]})


if __name__ == "__main__":
    unittest.main()
