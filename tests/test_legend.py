"""Unit tests for legend formatting"""
from akips_datasource.legend import format_legend
from akips_datasource.models import QueryTarget, ScopedVar


def _target(**kw):
    return QueryTarget(refId="A", rawQuery="q", **kw)


class TestFormatLegend:

    def test_no_format_returns_raw_name(self):
        assert format_legend(_target(), "sw1 eth0 ifInOctets") == "sw1 eth0 ifInOctets"
        assert format_legend(None, "x") == "x"

    def test_template_with_metric_name(self):
        t = _target(legendFormat="${__device}: ${__metricName}")
        out = format_legend(t, "ifInOctets", {"__device": ScopedVar(text="sw1", value="sw1")})
        assert out == "sw1: ifInOctets"

    def test_metric_name_overrides_caller_variable(self):
        t = _target(legendFormat="${__metricName}")
        assert format_legend(t, "real", {"__metricName": {"text": "fake", "value": "fake"}}) == "real"

    def test_regex_capture_group(self):
        t = _target(legendFormat=r"^\S+ (\S+)", legendRegex=True)
        assert format_legend(t, "sw1 eth0 ifInOctets") == "eth0"

    def test_regex_without_group_falls_back(self):
        t = _target(legendFormat=r"eth\d", legendRegex=True)
        assert format_legend(t, "sw1 eth0") == "sw1 eth0"

    def test_regex_no_match_falls_back(self):
        t = _target(legendFormat=r"(vlan\d+)", legendRegex=True)
        assert format_legend(t, "eth0") == "eth0"

    def test_malformed_regex_falls_back(self):
        t = _target(legendFormat="(bad[", legendRegex=True)
        assert format_legend(t, "eth0") == "eth0"

    def test_regex_pattern_substitutes_variables(self):
        t = _target(legendFormat=r"${__device} (\S+)", legendRegex=True)
        out = format_legend(t, "sw1 eth0", {"__device": ScopedVar(text="sw1", value="sw1")})
        assert out == "eth0"

    def test_optional_group_not_taking_part_falls_back(self):
        t = _target(legendFormat=r"eth0(x)?", legendRegex=True)
        assert format_legend(t, "eth0") == "eth0"
