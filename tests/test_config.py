"""Tests for run configuration models and the YAML loader."""

from pathlib import Path

import pytest
from pydantic import ValidationError

from splicebench.config import (
    BenchmarkType,
    ConfigFileNotFoundError,
    ConfigParseError,
    ConfigValidationError,
    LoadMode,
    QuerySet,
    RunConfig,
    build_config,
    load_config,
    save_config,
)
from tests.conftest import make_config


class TestRunConfigDefaults:
    """Tests for RunConfig defaults and derived values."""

    def test_defaults(self):
        cfg = make_config()
        assert cfg.benchmark == BenchmarkType.TPCH
        assert cfg.scale == 1
        assert cfg.mode == LoadMode.BULK
        assert cfg.query_set == QuerySet.GOOD
        assert cfg.iterations == 0
        assert cfg.timeout == 0
        assert cfg.log_base == Path("./splicebench-output")
        assert cfg.sqlshell == Path("/sqlshell/sqlshell.sh")

    def test_schema_name_upper_case(self):
        cfg = make_config(benchmark="tpch", scale=10, suffix="nightly")
        assert cfg.schema_name == "TPCH10NIGHTLY"

    def test_schema_name_without_suffix(self):
        assert make_config(scale=100).schema_name == "TPCH100"

    def test_connection_args_host(self):
        assert make_config().connection_args == ["-h", "localhost"]

    def test_connection_args_url(self):
        url = "jdbc:splice://db:1527/splicedb;user=splice;password=admin"
        cfg = make_config(host="", url=url)
        assert cfg.connection_args == ["-U", url]
        assert cfg.target == url

    def test_single_run(self):
        assert make_config(iterations=0).single_run
        assert make_config(iterations=1).single_run
        assert not make_config(iterations=2).single_run

    def test_effective_label_generated(self):
        label = make_config(scale=10).effective_label("20261018-1200")
        assert label == "TPCH-10 benchmark run started 20261018-1200"

    def test_effective_label_user(self):
        assert make_config(label="nightly").effective_label("x") == "nightly"

    def test_frozen(self):
        cfg = make_config()
        with pytest.raises(ValidationError):
            cfg.scale = 10


class TestRunConfigValidation:
    """Tests for RunConfig field validation."""

    def test_host_and_url_both_missing(self):
        with pytest.raises(ValidationError, match="exactly one of host or url"):
            RunConfig()

    def test_host_and_url_both_given(self):
        with pytest.raises(ValidationError, match="exactly one of host or url"):
            make_config(url="jdbc:splice://db:1527/splicedb")

    @pytest.mark.parametrize("scale", [1, 10, 100, 1000])
    def test_supported_scales(self, scale):
        assert make_config(scale=scale).scale == scale

    @pytest.mark.parametrize("scale", [0, 2, 50, 10000])
    def test_unsupported_scale(self, scale):
        with pytest.raises(ValidationError, match="not supported"):
            make_config(scale=scale)

    def test_unknown_benchmark(self):
        with pytest.raises(ValidationError):
            make_config(benchmark="TPCDS")

    def test_unknown_mode(self):
        with pytest.raises(ValidationError):
            make_config(mode="parallel")

    def test_unknown_query_set(self):
        with pytest.raises(ValidationError):
            make_config(query_set="some")

    @pytest.mark.parametrize("field", ["iterations", "timeout"])
    def test_counts_bounded(self, field):
        assert getattr(make_config(**{field: 99999}), field) == 99999
        with pytest.raises(ValidationError):
            make_config(**{field: 100000})
        with pytest.raises(ValidationError):
            make_config(**{field: -1})

    def test_suffix_rejects_punctuation(self):
        with pytest.raises(ValidationError, match="suffix"):
            make_config(suffix="a-b")

    def test_extra_fields_rejected(self):
        with pytest.raises(ValidationError):
            make_config(warehouse="s3://x")


class TestBuildConfig:
    """Tests for build_config merging and error wrapping."""

    def test_overrides_only(self):
        cfg = build_config({"host": "db1", "scale": 10})
        assert cfg.host == "db1"
        assert cfg.scale == 10

    def test_none_overrides_ignored(self, tmp_path):
        path = tmp_path / "splicebench.yaml"
        path.write_text("host: db1\nscale: 100\n")
        cfg = build_config({"scale": None, "mode": None}, path)
        assert cfg.scale == 100
        assert cfg.mode == LoadMode.BULK

    def test_overrides_win_over_file(self, tmp_path):
        path = tmp_path / "splicebench.yaml"
        path.write_text("host: db1\nscale: 100\nquery_set: all\n")
        cfg = build_config({"scale": 10}, path)
        assert cfg.scale == 10
        assert cfg.query_set == QuerySet.ALL

    def test_validation_error_lists_fields(self):
        with pytest.raises(ConfigValidationError) as exc_info:
            build_config({"host": "db1", "scale": 7})
        assert "scale" in str(exc_info.value)
        assert exc_info.value.errors[0]["loc"] == ("scale",)

    def test_missing_target_is_model_level(self):
        with pytest.raises(ConfigValidationError) as exc_info:
            build_config({})
        assert "config" in str(exc_info.value)
        assert not exc_info.value.errors[0]["loc"]

    def test_missing_target_reported_before_bad_values(self):
        with pytest.raises(ConfigValidationError) as exc_info:
            build_config({"scale": 7, "query_set": "most"})
        assert [err["loc"] for err in exc_info.value.errors] == [()]
        assert "exactly one of host or url" in str(exc_info.value)

    def test_missing_file(self, tmp_path):
        with pytest.raises(ConfigFileNotFoundError):
            build_config({}, tmp_path / "nope.yaml")

    def test_bad_yaml(self, tmp_path):
        path = tmp_path / "bad.yaml"
        path.write_text("host: [unclosed\n")
        with pytest.raises(ConfigParseError):
            build_config({}, path)

    def test_non_mapping_yaml(self, tmp_path):
        path = tmp_path / "list.yaml"
        path.write_text("- host\n- url\n")
        with pytest.raises(ConfigParseError, match="mapping"):
            build_config({}, path)


class TestSaveLoad:
    """Tests for save_config / load_config."""

    def test_save_then_load(self, tmp_path):
        cfg = make_config(scale=10, mode="linear", iterations=3, timeout=600)
        path = tmp_path / "saved.yaml"
        save_config(cfg, path)
        loaded = load_config(path)
        assert loaded == cfg

    def test_save_omits_defaults(self, tmp_path):
        path = tmp_path / "saved.yaml"
        save_config(make_config(), path)
        assert path.read_text().strip() == "host: localhost"
