"""
Requirement Import — load framework requirements from YAML or Excel.

Supported formats:
  - YAML: a list (or ``requirements:`` key) of nodes with code, name,
    description, category, sort_order and optional nested ``children``
    or a ``parent_code`` pointing at an earlier / existing requirement.
  - Excel (.xlsx): first sheet, header row with columns
    code | name | description | category | parent_code | sort_order.
"""
import logging
import zipfile
from typing import Any, BinaryIO

import yaml
from openpyxl import load_workbook
from openpyxl.utils.exceptions import InvalidFileException
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from opengrc.models.framework import Framework, FrameworkRequirement

log = logging.getLogger(__name__)

_COLUMNS = ("code", "name", "description", "category", "parent_code", "sort_order")


# ═══════════════════════════════════════════════
# EXCEL
# ═══════════════════════════════════════════════

def read_excel_rows(file: BinaryIO) -> list[dict[str, Any]]:
    try:
        wb = load_workbook(file, read_only=True, data_only=True)
    except (InvalidFileException, zipfile.BadZipFile) as e:
        raise ValueError(f"Invalid Excel file: {e}") from e
    try:
        ws = wb.worksheets[0]
        rows = ws.iter_rows(values_only=True)
        header = next(rows, None)
        if header is None:
            return []
        headers = [str(c).strip().lower() if c is not None else "" for c in header]

        result = []
        for row in rows:
            row_dict = {}
            for i, val in enumerate(row):
                if i < len(headers) and headers[i] in _COLUMNS:
                    row_dict[headers[i]] = val
            if row_dict.get("code") or row_dict.get("name"):
                result.append(row_dict)
        return result
    finally:
        wb.close()


# ═══════════════════════════════════════════════
# YAML
# ═══════════════════════════════════════════════

def read_yaml_rows(file: BinaryIO) -> list[dict[str, Any]]:
    content = file.read()
    if isinstance(content, bytes):
        content = content.decode("utf-8")
    try:
        data = yaml.safe_load(content)
    except yaml.YAMLError as e:
        raise ValueError(f"Invalid YAML: {e}") from e
    if not data:
        raise ValueError("Empty YAML file")
    if isinstance(data, dict):
        data = data.get("requirements", [])
    if not isinstance(data, list):
        raise ValueError("YAML must contain a list of requirements")
    return _flatten_yaml(data, parent_code=None)


def _flatten_yaml(nodes: list[dict], parent_code: str | None) -> list[dict[str, Any]]:
    result = []
    for node in nodes:
        flat = {k: node.get(k) for k in _COLUMNS}
        if parent_code is not None and not flat.get("parent_code"):
            flat["parent_code"] = parent_code
        result.append(flat)
        children = node.get("children") or []
        if children:
            result.extend(_flatten_yaml(children, parent_code=str(node.get("code"))))
    return result


# ═══════════════════════════════════════════════
# INSERT
# ═══════════════════════════════════════════════

async def import_requirements(
    s: AsyncSession, fw: Framework, rows: list[dict[str, Any]]
) -> tuple[int, int, list[str]]:
    """Insert rows in order. Returns (created, skipped, errors); existing codes are skipped."""
    existing = (await s.execute(
        select(FrameworkRequirement).where(FrameworkRequirement.framework_id == fw.id)
    )).scalars().all()
    by_code: dict[str, int] = {r.code: r.id for r in existing}

    created = 0
    skipped = 0
    errors: list[str] = []

    for idx, row in enumerate(rows, 1):
        code = str(row.get("code") or "").strip()
        name = str(row.get("name") or "").strip()
        if not code or not name:
            errors.append(f"Row {idx}: code and name are required")
            continue
        if code in by_code:
            skipped += 1
            continue

        parent_id = None
        parent_code = row.get("parent_code")
        if parent_code:
            parent_id = by_code.get(str(parent_code).strip())
            if parent_id is None:
                errors.append(f"Row {idx}: unknown parent_code '{parent_code}'")
                continue

        sort_order = row.get("sort_order")
        req = FrameworkRequirement(
            framework_id=fw.id,
            parent_id=parent_id,
            code=code,
            name=name,
            description=row.get("description"),
            category=row.get("category"),
            sort_order=int(sort_order) if sort_order not in (None, "") else idx,
        )
        s.add(req)
        await s.flush()
        by_code[code] = req.id
        created += 1

    log.info("Imported %d requirements into framework %s (%d skipped, %d errors)",
             created, fw.id, skipped, len(errors))
    return created, skipped, errors
