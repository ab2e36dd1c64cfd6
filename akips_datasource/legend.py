from __future__ import annotations

import re
from typing import Any, Mapping, Optional

from loguru import logger

from akips_datasource.exceptions import TemplateError
from akips_datasource.models import QueryTarget, ScopedVar
from akips_datasource.templating import substitute


def _compile_legend_regex(pattern: str) -> re.Pattern:
    try:
        return re.compile(pattern)
    except re.error as e:
        raise TemplateError(f"invalid legend regex {pattern!r}: {e}") from e


def format_legend(target: Optional[QueryTarget], raw_name: str,
                  scoped_vars: Optional[Mapping[str, Any]] = None) -> str:
    """根据 legendFormat 生成序列显示名。
    1. 未配置 => 原名
    2. legendRegex => 正则匹配原名，取第 1 个捕获组；失败或正则非法 => 原名
    3. 否则作为模板，额外注入 __metricName = 原名
    """
    raw_name = raw_name or ""
    if target is None or not target.legendFormat:
        return raw_name

    if target.legendRegex:
        pattern = substitute(target.legendFormat, scoped_vars)
        try:
            rx = _compile_legend_regex(pattern)
        except TemplateError as e:
            logger.debug(f"图例正则回退原名 refId={target.refId}: {e}")
            return raw_name
        m = rx.search(raw_name)
        if m and rx.groups >= 1 and m.group(1) is not None:
            return m.group(1)
        return raw_name

    variables = dict(scoped_vars or {})
    variables["__metricName"] = ScopedVar(text=raw_name, value=raw_name)
    return substitute(target.legendFormat, variables)
