# ABOUTME: Validates loading canonical student, assessment, error, and exam tables.
# ABOUTME: Ensures vocabulary checks, defaults, and settings files populate the repository.

import tempfile
import unittest
from datetime import datetime, timezone
from pathlib import Path

from src.common.data_pipeline import load_canonical_tables
from src.common.errors import InvalidInput
from src.common.settings import InstitutionSettings


class CanonicalTablesTest(unittest.TestCase):
    def setUp(self) -> None:
        self.tmpdir = tempfile.TemporaryDirectory()
        self.data_dir = Path(self.tmpdir.name)
        self._write(
            "students.csv",
            """student_id,institution_id,user_id,full_name,class_year,current_clerkship,has_accommodations
S1,INST1,U1,Ada Lovelace,2025,surgery,false
S2,INST1,U2,Grace Hopper,2026,,true
""",
        )
        self._write(
            "assessments.csv",
            """assessment_id,student_id,kind,name,date_taken,score,fraction_correct,question_count,notes
A1,S1,practice_exam,NBME 25,2024-05-20,210,0.62,200,
A2,S1,question_block,Block 3,2024-03-01,,0.80,40,timed
A3,S2,shelf_exam,Surgery Shelf,2024-05-25,,,,
""",
        )
        self._write(
            "error_events.csv",
            """assessment_id,category,system,topic,question_ref,reflection
A1,knowledge_deficit,cardiovascular,murmurs,Q12,
A1,Misread,renal,,Q40,skipped the stem
A2,time_management,general,,,
""",
        )
        self._write(
            "exams.csv",
            """exam_id,student_id,name,exam_type_code,scheduled_date,content_weight,outcome
E1,S1,Step 1,STEP1,2024-07-01,1.5,
E2,S1,Old Shelf,SHELF,2024-02-01,,pass
E3,S2,Step 2,STEP2,2024-08-01,0,
""",
        )

    def tearDown(self) -> None:
        self.tmpdir.cleanup()

    def _write(self, name: str, data: str) -> None:
        (self.data_dir / name).write_text(data.strip() + "\n", encoding="utf-8")

    def test_loads_students_with_flags(self) -> None:
        repo = load_canonical_tables(self.data_dir)
        s1 = repo.get_student("S1")
        s2 = repo.get_student("S2")

        self.assertEqual(s1.institution_id, "INST1")
        self.assertEqual(s1.user_id, "U1")
        self.assertEqual(s1.class_year, 2025)
        self.assertFalse(s1.has_accommodations)
        self.assertTrue(s2.has_accommodations)
        self.assertIsNone(s2.current_clerkship)
        self.assertEqual(len(repo.list_students("INST1")), 2)

    def test_assessments_carry_nested_errors_newest_first(self) -> None:
        repo = load_canonical_tables(self.data_dir)
        history = repo.list_assessments("S1")

        self.assertEqual([a.assessment_id for a in history], ["A1", "A2"])
        self.assertEqual(history[0].date_taken, datetime(2024, 5, 20, tzinfo=timezone.utc))
        self.assertEqual([e.category for e in history[0].errors], ["knowledge_deficit", "misread"])
        self.assertEqual(history[0].errors[1].reflection, "skipped the stem")
        self.assertEqual(history[0].question_count, 200)
        self.assertAlmostEqual(history[0].fraction_correct, 0.62)

        blank = repo.list_assessments("S2")[0]
        self.assertIsNone(blank.fraction_correct)
        self.assertIsNone(blank.question_count)
        self.assertEqual(blank.errors, ())

    def test_exams_default_weight_and_pending_filter(self) -> None:
        repo = load_canonical_tables(self.data_dir)

        pending = repo.list_pending_exams("S1")
        self.assertEqual([e.exam_id for e in pending], ["E1"])
        self.assertEqual(pending[0].content_weight, 1.5)
        self.assertEqual(repo.list_pending_exams("S2")[0].content_weight, 0.0)
        self.assertEqual(len(repo.exams["S1"]), 2)

    def test_missing_weight_defaults_to_one(self) -> None:
        self._write(
            "exams.csv",
            """exam_id,student_id,name,scheduled_date
E1,S1,Step 1,2024-07-01
""",
        )
        repo = load_canonical_tables(self.data_dir)
        self.assertEqual(repo.list_pending_exams("S1")[0].content_weight, 1.0)

    def test_optional_error_table(self) -> None:
        (self.data_dir / "error_events.csv").unlink()
        repo = load_canonical_tables(self.data_dir)
        self.assertTrue(all(not a.errors for a in repo.list_assessments("S1")))

    def test_missing_required_table_raises(self) -> None:
        (self.data_dir / "exams.csv").unlink()
        with self.assertRaises(InvalidInput):
            load_canonical_tables(self.data_dir)

    def test_missing_required_column_raises(self) -> None:
        self._write("students.csv", "student_id\nS1\n")
        with self.assertRaises(InvalidInput):
            load_canonical_tables(self.data_dir)

    def test_unknown_error_category_names_row(self) -> None:
        self._write(
            "error_events.csv",
            """assessment_id,category,system
A1,guessing,renal
""",
        )
        with self.assertRaisesRegex(InvalidInput, "row 0"):
            load_canonical_tables(self.data_dir)

    def test_unknown_assessment_kind_raises(self) -> None:
        self._write(
            "assessments.csv",
            """assessment_id,student_id,kind,date_taken
A1,S1,quiz,2024-05-20
""",
        )
        with self.assertRaisesRegex(InvalidInput, "unknown assessment kind"):
            load_canonical_tables(self.data_dir)

    def test_bad_date_raises(self) -> None:
        self._write(
            "assessments.csv",
            """assessment_id,student_id,kind,date_taken
A1,S1,custom,not-a-date
""",
        )
        with self.assertRaisesRegex(InvalidInput, "unparseable date_taken"):
            load_canonical_tables(self.data_dir)

    def test_settings_file_populates_institutions(self) -> None:
        self._write(
            "institution_settings.yaml",
            """INST1:
  high_risk_threshold: 70
  enable_auto_alerts: false
""",
        )
        repo = load_canonical_tables(self.data_dir)
        settings = repo.get_institution_settings("INST1")
        self.assertEqual(settings.high_risk_threshold, 70)
        self.assertFalse(settings.enable_auto_alerts)
        self.assertEqual(repo.get_institution_settings("OTHER").high_risk_threshold, 75.0)

    def test_error_rows_for_unknown_assessments_raise(self) -> None:
        self._write(
            "error_events.csv",
            """assessment_id,category,system
A1,misread,renal
A9,misread,renal
""",
        )
        with self.assertRaisesRegex(InvalidInput, r"row\(s\) 1 \(A9\)"):
            load_canonical_tables(self.data_dir)

    def test_default_settings_apply_under_institution_entries(self) -> None:
        self._write(
            "institution_settings.yaml",
            """INST1:
  high_risk_threshold: 70
""",
        )
        defaults = InstitutionSettings(default_weekly_hours=15.0, enable_auto_alerts=False)
        repo = load_canonical_tables(self.data_dir, default_settings=defaults)
        inst1 = repo.get_institution_settings("INST1")
        self.assertEqual(inst1.high_risk_threshold, 70)
        self.assertEqual(inst1.default_weekly_hours, 15.0)
        self.assertFalse(inst1.enable_auto_alerts)
        self.assertIs(repo.get_institution_settings("OTHER"), defaults)

    def test_non_mapping_settings_entry_raises(self) -> None:
        self._write("institution_settings.yaml", "INST1: strict\n")
        with self.assertRaisesRegex(InvalidInput, "INST1"):
            load_canonical_tables(self.data_dir)


if __name__ == "__main__":
    unittest.main()
