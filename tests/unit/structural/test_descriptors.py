import pytest

from svprep.bam.insertsize import InsertStats
from svprep.pipeline.shared import InputValidationError
from svprep.structural import descriptors


@pytest.fixture
def builder(data):
    return descriptors.DescriptorBuilder(data)


def test_discordant_args(builder, make_bam):
    in_file = make_bam(read_groups=(("rg1", "lib1"), ("rg2", "lib1")))
    stats = InsertStats(500.5, 50.25, 101, "/ws/stats/sample0.lib0.x4.histo")
    builder.add_discordant(in_file, ["rg1", "rg2"], stats)
    assert builder.to_args() == [
        "-pe",
        "id:NA12878,bam_file:%s,histo_file:/ws/stats/sample0.lib0.x4.histo,"
        "mean:500.5,stdev:50.25,read_length:101,min_non_overlap:101,discordant_z:5,"
        "back_distance:10,weight:1,min_mapping_threshold:20,read_group:rg1,read_group:rg2" % in_file]


def test_split_args(builder):
    builder.add_split("/ws/sample0.split.bam", [], sample_id="NA12878")
    assert builder.to_args() == [
        "-sr",
        "id:NA12878,bam_file:/ws/sample0.split.bam,back_distance:10,weight:1,"
        "min_mapping_threshold:20,min_clip:20"]


def test_depth_args(builder):
    builder.add_depth("NA12878", "/calls/cnv.bedpe")
    assert builder.to_args() == ["-bedpe", "bedpe_file:/calls/cnv.bedpe,id:NA12878,weight:4"]


def test_order_depth_discordant_split(builder):
    stats = InsertStats(500.0, 50.0, 100, "h")
    builder.add_split("s0.bam", ["rg1"], sample_id="s0")
    builder.add_discordant("d0.bam", ["rg1"], stats, sample_id="s0")
    builder.add_depth("s0", "cnv.bedpe")
    builder.add_discordant("d0.bam", ["rg2"], stats, sample_id="s0")
    assert builder.to_args()[::2] == ["-bedpe", "-pe", "-pe", "-sr"]
    assert "read_group:rg2" in builder.to_args()[5]


def test_weights_follow_configuration(data):
    data["config"]["algorithm"]["depth_weight"] = 6
    data["config"]["algorithm"]["evidence_weight"] = 2
    builder = descriptors.DescriptorBuilder(data)
    assert builder.add_depth("s0", "cnv.bedpe").weight == 6
    assert builder.add_split("s0.bam", [], sample_id="s0").weight == 2


def test_unknown_descriptor():
    with pytest.raises(TypeError):
        descriptors.to_args(("not", "a", "descriptor"))


def test_parse_depth_specs(tmp_path):
    bedpe = tmp_path / "cnv.bedpe"
    bedpe.write_text("")
    assert descriptors.parse_depth_specs(["NA12878:%s" % bedpe]) == [("NA12878", str(bedpe))]


@pytest.mark.parametrize("spec", ["cnv.bedpe", ":cnv.bedpe", "NA12878:", "NA12878:/missing/cnv.bedpe"])
def test_parse_depth_specs_invalid(spec):
    with pytest.raises(InputValidationError):
        descriptors.parse_depth_specs([spec])
