import pytest

from svprep.bam import readgroups
from svprep.pipeline.shared import InputValidationError


@pytest.mark.parametrize("rgs", [
    [("rg1", "lib1")],
    [("rg1", "lib1"), ("rg2", "lib1")],
    [("rg1", "lib1"), ("rg2", "lib2"), ("rg3", "lib1"), ("rg4", None)],
])
def test_libraries_partition_read_groups(make_bam, rgs):
    libs = readgroups.get_libraries(make_bam(read_groups=rgs))
    all_rgs = [rg for lib in libs for rg in lib.read_groups]
    assert sorted(all_rgs) == sorted(rg for rg, _ in rgs)
    assert len(all_rgs) == len(set(all_rgs))


def test_libraries_group_by_library_tag(make_bam):
    in_file = make_bam(read_groups=[("rg1", "lib1"), ("rg2", "lib2"), ("rg3", "lib1")])
    libs = readgroups.get_libraries(in_file)
    assert libs == [readgroups.Library("lib1", ("rg1", "rg3")),
                    readgroups.Library("lib2", ("rg2",))]


def test_read_group_without_library_is_own_library(make_bam):
    libs = readgroups.get_libraries(make_bam(read_groups=[("rg1", None), ("rg2", None)]))
    assert [lib.name for lib in libs] == ["rg1", "rg2"]


def test_read_group_id_matching_library_tag_stays_separate(make_bam):
    in_file = make_bam(read_groups=[("lib1", None), ("rg2", "lib1"), ("rg3", "lib1")])
    libs = readgroups.get_libraries(in_file)
    assert libs == [readgroups.Library("lib1", ("lib1",)),
                    readgroups.Library("lib1", ("rg2", "rg3"))]


def test_library_order_is_stable(make_bam):
    in_file = make_bam(read_groups=[("rg1", "libB"), ("rg2", "libA"), ("rg3", "libC")])
    first = readgroups.get_libraries(in_file)
    assert [lib.name for lib in first] == ["libB", "libA", "libC"]
    assert readgroups.get_libraries(in_file) == first


def test_no_read_groups_is_single_library(make_bam, mocker):
    warning = mocker.patch("svprep.bam.readgroups.logger.warning")
    libs = readgroups.get_libraries(make_bam(read_groups=()))
    assert libs == [readgroups.Library(None, ())]
    assert warning.called


def test_malformed_file_is_validation_error(tmp_path):
    in_file = tmp_path / "bad.bam"
    in_file.write_bytes(b"not an alignment file")
    with pytest.raises(InputValidationError):
        readgroups.get_libraries(str(in_file))


def test_all_read_groups():
    libs = [readgroups.Library("lib1", ("rg1", "rg3")), readgroups.Library("lib2", ("rg2",))]
    assert readgroups.all_read_groups(libs) == ("rg1", "rg3", "rg2")
