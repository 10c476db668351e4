import re

import pandas as pd
import pytest

from attendance import Directory, Entity, default_directory
from attendance.directory import DEFAULT_GUARDIAN_PHONE, SAMPLE_STUDENTS

def test_lookup_matches_exact_id(directory):
    assert directory.lookup("STU-003").name == "Olivia Martinez"
    assert directory.lookup("  STU-003\n").name == "Olivia Martinez"
    assert directory.lookup("stu-003") is None
    assert directory.lookup("XYZ") is None
    assert directory.lookup(None) is None

def test_register_generates_unique_ids(directory):
    first = directory.register("Mia Chen", "9-A", "Wei Chen", "+1 (555) 010-2001")
    second = directory.register("Lucas Gray", "9-A", "Anna Gray")

    assert re.fullmatch(r"STU-\d{5}", first.entity_id)
    assert first.entity_id != second.entity_id
    assert directory.lookup(first.entity_id) == first
    assert second.guardian_phone == DEFAULT_GUARDIAN_PHONE
    assert len(directory) == len(SAMPLE_STUDENTS) + 2

@pytest.mark.parametrize("name, group, guardian", [
    ("", "9-A", "Wei Chen"),
    ("Mia Chen", "", "Wei Chen"),
    ("Mia Chen", "9-A", ""),
])
def test_register_requires_name_grade_and_parent(directory, name, group, guardian):
    with pytest.raises(ValueError):
        directory.register(name, group, guardian)

def test_duplicate_ids_are_rejected(directory):
    with pytest.raises(ValueError):
        directory.add(Entity("STU-001", "Someone", "1-A", "Parent", "+1"))

def test_search_matches_name_or_id(directory):
    assert [e.entity_id for e in directory.search("wilson")] == ["STU-002"]
    assert [e.name for e in directory.search("stu-005")] == ["Ava Brown"]
    assert len(directory.search("")) == len(directory)

def test_roster_csv_is_loaded(tmp_path):
    roster = tmp_path / "roster.csv"
    pd.DataFrame([
        {"id": "STU-101", "name": "Zoe Park", "grade": "7-B", "parent_name": "Jin Park",
         "parent_phone": "+1 (555) 010-3001"},
        {"id": "STU-102", "name": "Ella King", "grade": "7-B", "parent_name": "Tom King",
         "parent_phone": ""},
    ]).to_csv(roster, index=False)

    directory = Directory.from_roster(str(roster))

    assert len(directory) == 2
    assert directory.lookup("STU-101").guardian_name == "Jin Park"
    assert directory.lookup("STU-102").guardian_phone == DEFAULT_GUARDIAN_PHONE

def test_roster_with_missing_columns_is_rejected(tmp_path):
    roster = tmp_path / "roster.csv"
    pd.DataFrame([{"id": "STU-101", "name": "Zoe Park"}]).to_csv(roster, index=False)

    with pytest.raises(ValueError, match="grade"):
        Directory.from_roster(str(roster))

def test_default_directory_falls_back_to_sample_students(tmp_path):
    directory = default_directory(str(tmp_path / "missing.csv"))

    assert len(directory) == len(SAMPLE_STUDENTS)
    assert "STU-001" in directory
