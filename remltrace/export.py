"""
Export of summary tables to Word (.docx) documents.

Tables are written with python-docx. Formatting (fonts, decimals, header
shading, booktabs-style rules, alignment, page orientation) is controlled
through TableFormat.
"""

import io
import warnings
import pandas as pd
from dataclasses import dataclass, replace
from pathlib import Path
from typing import Optional, Union, Dict, List

from docx import Document
from docx.enum.section import WD_ORIENT
from docx.enum.table import WD_TABLE_ALIGNMENT
from docx.enum.text import WD_ALIGN_PARAGRAPH
from docx.oxml import OxmlElement
from docx.oxml.ns import qn
from docx.shared import Inches, Pt

from .tables import format_table, summary_statistics, trace_summary_table


_TABLE_ALIGN = {
    'left': WD_TABLE_ALIGNMENT.LEFT,
    'center': WD_TABLE_ALIGNMENT.CENTER,
    'right': WD_TABLE_ALIGNMENT.RIGHT,
}

_TEXT_ALIGN = {
    'left': WD_ALIGN_PARAGRAPH.LEFT,
    'center': WD_ALIGN_PARAGRAPH.CENTER,
    'right': WD_ALIGN_PARAGRAPH.RIGHT,
}


@dataclass
class TableFormat:
    """
    Formatting options for exported tables.

    Attributes
    ----------
    decimals : int or dict, default=3
        Decimal places, globally or per column
    font_name : str, default='Times New Roman'
        Font for table text, captions and notes
    font_size : float, default=10
        Font size in points for table cells
    header_bold : bool, default=True
        Bold header row
    header_shading : str, optional
        Hex fill colour for the header row, e.g. 'D9D9D9'
    style : str, optional
        Built-in Word table style, e.g. 'Table Grid'
    booktabs : bool, default=True
        Rules above and below the table and under the header only
    alignment : str, default='center'
        Table position on the page
    numeric_alignment : str, default='right'
        Alignment of numeric columns
    include_index : bool, default=True
        Write the row index as leading column(s)
    index_label : str, optional
        Header for the index column (defaults to the index name)
    autofit : bool, default=True
        Let Word size the columns
    na_rep : str, default=''
        Text for missing values
    thousands : bool, default=False
        Group thousands with commas
    """
    decimals: Union[int, Dict[str, int]] = 3
    font_name: str = 'Times New Roman'
    font_size: float = 10
    header_bold: bool = True
    header_shading: Optional[str] = None
    style: Optional[str] = None
    booktabs: bool = True
    alignment: str = 'center'
    numeric_alignment: str = 'right'
    include_index: bool = True
    index_label: Optional[str] = None
    autofit: bool = True
    na_rep: str = ''
    thousands: bool = False

    def __post_init__(self):
        if self.alignment not in _TABLE_ALIGN:
            raise ValueError(f"alignment must be one of {list(_TABLE_ALIGN)}")
        if self.numeric_alignment not in _TEXT_ALIGN:
            raise ValueError(f"numeric_alignment must be one of {list(_TEXT_ALIGN)}")


_TBLPR_AFTER_BORDERS = ('w:shd', 'w:tblLayout', 'w:tblCellMar', 'w:tblLook',
                        'w:tblCaption', 'w:tblDescription')
_TCPR_AFTER_BORDERS = ('w:shd', 'w:noWrap', 'w:tcMar', 'w:textDirection',
                       'w:tcFitText', 'w:vAlign', 'w:hideMark')
_TCPR_AFTER_SHADING = _TCPR_AFTER_BORDERS[1:]


def _set_cell_shading(cell, color: str) -> None:
    tcPr = cell._tc.get_or_add_tcPr()
    for old in tcPr.findall(qn('w:shd')):
        tcPr.remove(old)
    shading = OxmlElement('w:shd')
    shading.set(qn('w:fill'), color)
    shading.set(qn('w:val'), 'clear')
    tcPr.insert_element_before(shading, *_TCPR_AFTER_SHADING)


def _set_table_borders(table, edges: Dict[str, Optional[str]]) -> None:
    """Set table borders; edges maps edge name to size in eighths of a point, None for no rule."""
    tblPr = table._tbl.tblPr
    for old in tblPr.findall(qn('w:tblBorders')):
        tblPr.remove(old)
    borders = OxmlElement('w:tblBorders')
    for edge in ('top', 'left', 'bottom', 'right', 'insideH', 'insideV'):
        el = OxmlElement(f'w:{edge}')
        size = edges.get(edge)
        el.set(qn('w:val'), 'single' if size else 'none')
        el.set(qn('w:sz'), size or '0')
        el.set(qn('w:space'), '0')
        el.set(qn('w:color'), '000000' if size else 'auto')
        borders.append(el)
    tblPr.insert_element_before(borders, *_TBLPR_AFTER_BORDERS)


def _set_bottom_rule(cell, size: str = '6') -> None:
    tcPr = cell._tc.get_or_add_tcPr()
    for old in tcPr.findall(qn('w:tcBorders')):
        tcPr.remove(old)
    borders = OxmlElement('w:tcBorders')
    bottom = OxmlElement('w:bottom')
    bottom.set(qn('w:val'), 'single')
    bottom.set(qn('w:sz'), size)
    bottom.set(qn('w:space'), '0')
    bottom.set(qn('w:color'), '000000')
    borders.append(bottom)
    tcPr.insert_element_before(borders, *_TCPR_AFTER_BORDERS)


def _write_cell(cell, text: str, fmt: TableFormat, bold: bool = False,
                align: Optional[str] = None) -> None:
    cell.text = ''
    paragraph = cell.paragraphs[0]
    run = paragraph.add_run(text)
    run.bold = bold
    run.font.name = fmt.font_name
    run.font.size = Pt(fmt.font_size)
    if align is not None:
        paragraph.alignment = _TEXT_ALIGN[align]


def _header_rows(table: pd.DataFrame, fmt: TableFormat) -> List[List[str]]:
    """Header text, one list per header row (MultiIndex columns give several)."""
    if isinstance(table.columns, pd.MultiIndex):
        levels = [[str(v) for v in table.columns.get_level_values(i)]
                  for i in range(table.columns.nlevels)]
    else:
        levels = [[str(c) for c in table.columns]]

    if fmt.include_index:
        names = list(table.index.names)
        if fmt.index_label is not None:
            names = [fmt.index_label] + names[1:]
        index_header = ['' if n is None else str(n) for n in names]
        blank = [''] * len(index_header)
        levels = [(index_header if i == len(levels) - 1 else blank) + row
                  for i, row in enumerate(levels)]
    return levels


def add_table(document, table: pd.DataFrame, caption: Optional[str] = None,
              notes: Optional[str] = None, fmt: Optional[TableFormat] = None):
    """
    Append a DataFrame to a python-docx Document as a formatted table.

    Parameters
    ----------
    document : docx.document.Document
        Target document
    table : pd.DataFrame
        Table to write; numeric values are formatted per fmt.decimals
    caption : str, optional
        Caption paragraph placed above the table
    notes : str, optional
        Note paragraph placed below the table
    fmt : TableFormat, optional
        Formatting options

    Returns
    -------
    docx.table.Table
    """
    fmt = fmt or TableFormat()
    numeric_cols = [pd.api.types.is_numeric_dtype(table[col])
                    and not pd.api.types.is_bool_dtype(table[col])
                    for col in table.columns]
    body = format_table(table, decimals=fmt.decimals, thousands=fmt.thousands,
                        na_rep=fmt.na_rep)

    if caption:
        p = document.add_paragraph()
        run = p.add_run(caption)
        run.bold = True
        run.font.name = fmt.font_name
        run.font.size = Pt(fmt.font_size + 1)
        p.paragraph_format.keep_with_next = True

    headers = _header_rows(table, fmt)
    n_index = table.index.nlevels if fmt.include_index else 0
    n_cols = n_index + len(table.columns)
    doc_table = document.add_table(rows=len(headers) + len(body), cols=n_cols)
    if fmt.style:
        doc_table.style = document.styles[fmt.style]
    doc_table.alignment = _TABLE_ALIGN[fmt.alignment]
    doc_table.autofit = fmt.autofit

    for r, header in enumerate(headers):
        for c, text in enumerate(header):
            cell = doc_table.cell(r, c)
            align = 'center' if c >= n_index else 'left'
            _write_cell(cell, text, fmt, bold=fmt.header_bold, align=align)
            if fmt.header_shading:
                _set_cell_shading(cell, fmt.header_shading)
            if fmt.booktabs and r == len(headers) - 1:
                _set_bottom_rule(cell)

    for r, (label, row) in enumerate(body.iterrows(), start=len(headers)):
        if fmt.include_index:
            labels = label if isinstance(label, tuple) else (label,)
            for c, value in enumerate(labels):
                _write_cell(doc_table.cell(r, c), str(value), fmt, align='left')
        for j, value in enumerate(row):
            align = fmt.numeric_alignment if numeric_cols[j] else 'left'
            _write_cell(doc_table.cell(r, n_index + j), value, fmt, align=align)

    if fmt.booktabs:
        _set_table_borders(doc_table, {'top': '12', 'bottom': '12'})

    if notes:
        p = document.add_paragraph()
        run = p.add_run(f"Note. {notes}")
        run.italic = True
        run.font.name = fmt.font_name
        run.font.size = Pt(max(fmt.font_size - 1, 6))

    return doc_table


def _as_table_items(tables) -> List[tuple]:
    if isinstance(tables, pd.DataFrame):
        return [(None, tables)]
    if isinstance(tables, dict):
        return list(tables.items())
    return [(None, t) for t in tables]


def _prepare_path(path: Union[str, Path]) -> Path:
    path = Path(path)
    if path.suffix.lower() != '.docx':
        warnings.warn(f"Output '{path}' does not end in .docx; writing {path.with_suffix('.docx')}")
        path = path.with_suffix('.docx')
    path.parent.mkdir(parents=True, exist_ok=True)
    return path


def new_document(title: Optional[str] = None, fmt: Optional[TableFormat] = None,
                 landscape: bool = False, margins: float = 1.0):
    """Blank Document with page setup, base font and optional title."""
    fmt = fmt or TableFormat()
    document = Document()
    style = document.styles['Normal']
    style.font.name = fmt.font_name
    style.font.size = Pt(fmt.font_size + 1)

    for section in document.sections:
        if landscape:
            section.orientation = WD_ORIENT.LANDSCAPE
            section.page_width, section.page_height = section.page_height, section.page_width
        section.top_margin = Inches(margins)
        section.bottom_margin = Inches(margins)
        section.left_margin = Inches(margins)
        section.right_margin = Inches(margins)

    if title:
        document.add_heading(title, level=1)
    return document


def export_tables(tables, path: Union[str, Path], title: Optional[str] = None,
                  fmt: Optional[TableFormat] = None, landscape: bool = False,
                  margins: float = 1.0, notes: Optional[Dict[str, str]] = None) -> Path:
    """
    Write one or more tables to a .docx file.

    Parameters
    ----------
    tables : pd.DataFrame, list of pd.DataFrame or dict
        A dict maps caption to table
    path : str or Path
        Output file; '.docx' is enforced
    title : str, optional
        Document heading
    fmt : TableFormat, optional
        Formatting options shared by all tables
    landscape : bool, default=False
        Landscape page orientation
    margins : float, default=1.0
        Page margins in inches
    notes : dict, optional
        Caption -> note text placed under that table

    Returns
    -------
    Path
        The file written

    Examples
    --------
    >>> fmt = TableFormat(decimals=2, header_shading='D9D9D9')
    >>> export_tables({'Table 1. Variance components': table}, 'results.docx', fmt=fmt)
    """
    items = _as_table_items(tables)
    if len(items) == 0:
        raise ValueError("No tables to export")
    for _, table in items:
        if not isinstance(table, pd.DataFrame):
            raise ValueError("tables must be pandas DataFrames")

    fmt = fmt or TableFormat()
    notes = notes or {}
    path = _prepare_path(path)
    document = new_document(title=title, fmt=fmt, landscape=landscape, margins=margins)

    for i, (caption, table) in enumerate(items):
        if i > 0:
            document.add_paragraph()
        add_table(document, table, caption=caption, notes=notes.get(caption), fmt=fmt)

    document.save(str(path))
    return path


def export_table(table: pd.DataFrame, path: Union[str, Path],
                 caption: Optional[str] = None, notes: Optional[str] = None,
                 **kwargs) -> Path:
    """Write a single table to a .docx file; see export_tables."""
    if caption is None:
        return export_tables([table], path, **kwargs)
    return export_tables({caption: table}, path, notes={caption: notes} if notes else None,
                         **kwargs)


def export_diagnostics_report(trace, path: Union[str, Path], fmt: Optional[TableFormat] = None,
                              figure=None, title: str = 'REML Convergence Diagnostics',
                              landscape: bool = False) -> Path:
    """
    Write a convergence report: summary statistics, parameter path
    summary, path checks and optionally a figure.

    Parameters
    ----------
    trace : ConvergenceTrace
        Loaded convergence log
    path : str or Path
        Output .docx file
    fmt : TableFormat, optional
        Table formatting
    figure : matplotlib.figure.Figure, optional
        Figure embedded after the tables
    title : str
        Document heading
    landscape : bool, default=False
        Landscape page orientation

    Returns
    -------
    Path
    """
    fmt = fmt or TableFormat()
    path = _prepare_path(path)
    document = new_document(title=title, fmt=fmt, landscape=landscape)

    diagnostics = trace.diagnose()
    columns = list(trace.parameters.columns) + [trace.loglik_col]
    stats_table = summary_statistics(trace.data, columns=columns)

    add_table(document, stats_table, caption='Table 1. Summary statistics over iterations', fmt=fmt)
    document.add_paragraph()
    add_table(document, trace_summary_table(trace),
              caption='Table 2. Parameter paths', fmt=fmt,
              notes='at_best is the value at the iteration with the highest log-likelihood.')
    document.add_paragraph()

    check_fmt = replace(fmt, include_index=False)
    add_table(document, diagnostics.to_frame(), caption='Table 3. Path checks', fmt=check_fmt,
              notes='A non-monotonic log-likelihood indicates an unstable optimizer path, '
                    'not necessarily multiple maxima.')

    if figure is not None:
        buffer = io.BytesIO()
        figure.savefig(buffer, format='png', dpi=200, bbox_inches='tight')
        buffer.seek(0)
        document.add_paragraph()
        document.add_picture(buffer, width=Inches(6.0))
        document.paragraphs[-1].alignment = WD_ALIGN_PARAGRAPH.CENTER

    document.save(str(path))
    return path
