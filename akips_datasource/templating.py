from __future__ import annotations

import re
from typing import Any, Mapping, Optional

from akips_datasource.models import ScopedVar, ScopedVars

_PLACEHOLDER_RE = re.compile(r"\$\{(\w+)\}")


def _var_text(var: Any) -> str:
    if isinstance(var, ScopedVar):
        return var.text
    if isinstance(var, Mapping):
        text = var.get("text")
        if text is None:
            text = var.get("value", "")
        return str(text)
    return "" if var is None else str(var)


def merge_variables(external: Optional[Mapping[str, Any]], reserved: Optional[ScopedVars]) -> dict:
    """调用方变量在前，保留变量在后（同名时保留变量生效）。"""
    merged = dict(external or {})
    merged.update(reserved or {})
    return merged


def substitute(template: Optional[str], variables: Optional[Mapping[str, Any]]) -> str:
    """把 ${name} 替换为变量的 text。
    - 未知变量原样保留，由后端校验语法
    - 单次扫描，替换结果不会被再次展开
    """
    if not template:
        return template or ""
    if "${" not in template or not variables:
        return template

    def _replace(m: re.Match) -> str:
        name = m.group(1)
        if name not in variables:
            return m.group(0)
        return _var_text(variables[name])

    return _PLACEHOLDER_RE.sub(_replace, template)
