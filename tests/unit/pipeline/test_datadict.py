from svprep.pipeline import config_utils
from svprep.pipeline import datadict as dd


def test_algorithm_getters_default_without_config():
    assert dd.get_min_sample_weight({}) == 4
    assert dd.get_discordant_z({}) == 5
    assert dd.get_insert_sample_cap({}) == 1000000
    assert dd.get_keep_tmp({}) is False
    assert dd.get_exclude_file({}) is None


def test_algorithm_getters_read_config():
    config = config_utils.load_system_config()
    config["algorithm"]["min_sample_weight"] = 6
    data = {"config": config, "reference": "/ref/hg38.fa"}
    assert dd.get_min_sample_weight(data) == 6
    assert dd.get_ref_file(data) == "/ref/hg38.fa"
    assert dd.get_config(data) is config


def test_setter_returns_updated_copy():
    data = {"config": {"resources": {}}}
    new_data = dd.set_tmp_dir(data, "/scratch/tx")
    assert dd.get_tmp_dir(new_data) == "/scratch/tx"
    assert dd.get_tmp_dir(data) is None


def test_is_setter():
    data = {"config": {"algorithm": {"exclude": "/regions/exclude.bed"}}}
    assert dd.is_set_exclude_file(data)
    assert not dd.is_set_ref_file(data)
