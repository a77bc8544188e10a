import sys
from pathlib import Path

# Ensure project root is on PYTHONPATH
ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from colloquium.models import Degree, Exam, RoomMapping, StaffMember
from colloquium.rooms import all_mapped_rooms, rooms_for

MAPPINGS = (
    RoomMapping(Degree.BA, "Interaction Design", ("A101", "A102")),
    RoomMapping(Degree.BA, "Visual Communication", ("B201",)),
    RoomMapping(Degree.BA, "Product Design", ("B202", "A102")),
)
STAFF = {
    "S1": StaffMember("S1", "Prof. Weber", competence_areas=("Product Design",)),
    "S2": StaffMember("S2", "Prof. Lang", competence_areas=("Visual Communication", "Interaction Design")),
}


def test_ba_exam_is_bound_to_its_area_rooms():
    exam = Exam("E1", Degree.BA, "S1", "S2", competence_area="interaction design")
    assert rooms_for(exam, MAPPINGS, STAFF) == ["A101", "A102"]


def test_unmapped_area_falls_back_to_every_mapped_room():
    exam = Exam("E1", Degree.BA, "S1", "S2", competence_area="Sound")
    assert rooms_for(exam, MAPPINGS, STAFF) == ["A101", "A102", "B201", "B202"]
    assert rooms_for(exam, (), STAFF) == []


def test_ma_exam_follows_examiner_primary_areas():
    exam = Exam("E1", Degree.MA, "S1", "S2")
    assert rooms_for(exam, MAPPINGS, STAFF) == ["B202", "A102", "B201", "A101"]


def test_integrated_ba_exam_follows_examiners():
    exam = Exam("E1", Degree.BA, "S2", "S1", competence_area="Interaction Design", integrated=True)
    assert rooms_for(exam, MAPPINGS, STAFF)[:3] == ["B201", "B202", "A102"]


def test_degree_scoped_mapping_wins():
    mappings = (
        RoomMapping(Degree.MA, "Product Design", ("M1",)),
        RoomMapping(Degree.BA, "Product Design", ("B202",)),
    )
    exam = Exam("E1", Degree.BA, "S1", "", competence_area="Product Design")
    assert rooms_for(exam, mappings, STAFF) == ["B202"]


def test_all_mapped_rooms_is_deduplicated_in_order():
    assert all_mapped_rooms(MAPPINGS) == ["A101", "A102", "B201", "B202"]
