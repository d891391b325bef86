import io
import json
import os
import tempfile
import unittest
from contextlib import redirect_stdout
from pathlib import Path
from unittest import mock

import yaml

from cld_engine.cli import main
from cld_engine.server import create_app

from test_pipeline import WORKBOOK, make_config


class CLITests(unittest.TestCase):
    def setUp(self) -> None:
        self._tmp = tempfile.TemporaryDirectory()
        self.root = Path(self._tmp.name)
        self.project_dir = self.root / "projects" / "demo"
        self.project_dir.mkdir(parents=True)
        (self.project_dir / "workbook.yml").write_text(yaml.safe_dump(WORKBOOK), encoding="utf-8")
        self.env = mock.patch.dict(os.environ, {"CLD_PROJECTS_DIR": str(self.root / "projects")})
        self.env.start()

    def tearDown(self) -> None:
        self.env.stop()
        self._tmp.cleanup()

    def _run(self, *argv):
        buf = io.StringIO()
        with redirect_stdout(buf):
            code = main(list(argv))
        return code, buf.getvalue()

    def test_archetypes_list_and_show(self) -> None:
        code, out = self._run("archetypes", "list")
        self.assertEqual(code, 0)
        self.assertIn("limits_to_growth", out)

        code, out = self._run("archetypes", "show", "escalation")
        self.assertEqual(code, 0)
        data = json.loads(out)
        self.assertEqual(data["name"], "Escalation")
        self.assertEqual(len(data["links"]), 4)

        with redirect_stdout(io.StringIO()), mock.patch("sys.stderr", new=io.StringIO()):
            self.assertEqual(main(["archetypes", "show", "nope"]), 2)

    def test_knowledge_validate(self) -> None:
        code, out = self._run("knowledge", "validate", "--project", "demo")
        self.assertEqual(code, 0)
        self.assertIn("Knowledge validation OK.", out)

        code, out = self._run("knowledge", "validate", "--project", "missing")
        self.assertEqual(code, 1)
        self.assertIn("Knowledge validation failed:", out)

    def test_analyze_writes_to_out_dir(self) -> None:
        out_dir = self.root / "out"
        code, out = self._run("analyze", str(self.project_dir / "workbook.yml"), "--out", str(out_dir))
        self.assertEqual(code, 0)
        data = json.loads(out)
        self.assertTrue(Path(data["analysis"]).exists())
        self.assertEqual(Path(data["analysis"]).parent, out_dir)

    def test_run(self) -> None:
        code, out = self._run("run", "--project", "demo")
        self.assertEqual(code, 0)
        self.assertTrue(Path(json.loads(out)["strategic_options"]).exists())


class ServerTests(unittest.TestCase):
    def setUp(self) -> None:
        self._tmp = tempfile.TemporaryDirectory()
        self.root = Path(self._tmp.name)
        cfg = make_config(self.root)
        project_dir = cfg.projects_dir / "demo"
        project_dir.mkdir(parents=True)
        (project_dir / "workbook.yml").write_text(yaml.safe_dump(WORKBOOK), encoding="utf-8")
        self.client = create_app(cfg).test_client()

    def tearDown(self) -> None:
        self._tmp.cleanup()

    def test_index_and_projects(self) -> None:
        self.assertEqual(self.client.get("/").status_code, 200)
        r = self.client.get("/projects")
        self.assertEqual(r.get_json(), {"projects": ["demo"]})

    def test_analyze_endpoint(self) -> None:
        r = self.client.post("/analyze", json=WORKBOOK)
        self.assertEqual(r.status_code, 200)
        data = r.get_json()
        self.assertEqual(data["status"], "ok")
        self.assertEqual(len(data["analysis"]["loops"]), 2)
        self.assertIn("strategic_options", data["analysis"])

    def test_analyze_rejects_bad_input(self) -> None:
        self.assertEqual(self.client.post("/analyze", json=[1, 2]).status_code, 400)
        dangling = dict(WORKBOOK, links=[{"id": "l1", "source_id": "demand", "target_id": "ghost"}])
        r = self.client.post("/analyze", json=dangling)
        self.assertEqual(r.status_code, 400)
        self.assertEqual(r.get_json()["status"], "error")

    def test_run_pipeline_and_artifacts(self) -> None:
        r = self.client.get("/run-pipeline/demo")
        self.assertEqual(r.status_code, 200)
        self.assertEqual(r.get_json()["status"], "ok")

        r = self.client.get("/artifacts/demo")
        files = r.get_json()["files"]
        self.assertIn("loops.json", files)

        r = self.client.get("/artifacts/demo/loops.json")
        self.assertEqual(r.status_code, 200)
        r.close()

    def test_unknown_project(self) -> None:
        self.assertEqual(self.client.get("/run-pipeline/ghost").status_code, 404)
        self.assertEqual(self.client.get("/artifacts/ghost").get_json(), {"files": []})


if __name__ == "__main__":
    unittest.main()
