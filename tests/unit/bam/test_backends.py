import pytest

from svprep.bam import backends
from svprep.pipeline import config_utils

from conftest import fake_get_program


@pytest.fixture
def samtools_only(mocker):
    mocker.patch("svprep.pipeline.config_utils.get_program",
                 side_effect=fake_get_program(("samtools",)))


@pytest.fixture
def with_sambamba(mocker):
    mocker.patch("svprep.pipeline.config_utils.get_program",
                 side_effect=fake_get_program(("samtools", "sambamba")))


def test_prefers_sambamba(with_sambamba):
    backend = backends.select_backend({})
    assert isinstance(backend, backends.SambambaBackend)


def test_falls_back_to_samtools(samtools_only):
    backend = backends.select_backend({})
    assert type(backend) is backends.SamtoolsBackend


def test_requires_samtools(mocker):
    mocker.patch("svprep.pipeline.config_utils.get_program",
                 side_effect=fake_get_program(()))
    with pytest.raises(config_utils.CmdNotFound):
        backends.select_backend({})


def test_samtools_view_library(samtools_only, make_bam):
    backend = backends.SamtoolsBackend({})
    in_file = make_bam()
    assert backend.view_library_cl(in_file, ("rg1",), "lib.rgs") == \
        "/opt/bin/samtools view -h -R lib.rgs %s" % in_file
    assert backend.view_library_cl(in_file, (), None, header=False) == \
        "/opt/bin/samtools view %s" % in_file


def test_samtools_sort(samtools_only):
    backend = backends.SamtoolsBackend({})
    assert backend.to_sorted_bam_cl("spl_pipe", "out.bam", "tmp") == \
        "/opt/bin/samtools sort -T tmp/sorttmp -O bam -o out.bam spl_pipe"


def test_sambamba_filters_read_groups(with_sambamba, make_bam):
    backend = backends.SambambaBackend({})
    in_file = make_bam()
    cl = backend.view_library_cl(in_file, ("rg1", "rg2"), "lib.rgs")
    assert cl == ("/opt/bin/sambamba view -h -F "
                  "'read_group == \"rg1\" or read_group == \"rg2\"' %s" % in_file)


def test_merge_runs_command(samtools_only, mocker):
    run = mocker.patch("svprep.bam.backends.do.run")
    backend = backends.SamtoolsBackend({})
    backend.merge(["a.bam", "b.bam"], "out.bam")
    assert run.call_args[0][0] == ["/opt/bin/samtools", "merge", "-f", "out.bam", "a.bam", "b.bam"]


def test_count(samtools_only, mocker):
    check_output = mocker.patch("svprep.bam.backends.subprocess.check_output",
                                return_value=b"42\n")
    assert backends.SamtoolsBackend({}).count("in.bam") == 42
    check_output.assert_called_once_with(["/opt/bin/samtools", "view", "-c", "in.bam"])
