"""
PDF quote document.

Uses fpdf2 (pure Python, no system dependencies). Sections:
1. Workshop header + client / project
2. One price table per garment (selected sizes only)
3. Totals: flagged as an estimate for individual quotes
4. Quote conditions + workshop conditions

White-labeled: uses the workshop name/logo text from the account profile.
"""

from datetime import datetime

from fpdf import FPDF

from .schemas import QuotePricing, SpecificConditions

CONDITION_LABELS = [
    ("validity", "Validez"),
    ("delivery_time", "Tiempo de entrega"),
    ("delivery_place", "Lugar de entrega"),
    ("quote_date", "Fecha de cotizacion"),
]


def _fmt(amount) -> str:
    """Format a number as Bs X,XXX.XX"""
    try:
        return f"Bs {float(amount):,.2f}"
    except (ValueError, TypeError):
        return "Bs 0.00"


def _safe(text: str) -> str:
    """Replace Unicode chars that can't be rendered by built-in PDF fonts (latin-1)."""
    if not text:
        return ""
    return (
        str(text)
        .replace("\u2022", "-")
        .replace("\u2014", " - ")
        .replace("\u2013", "-")
        .replace("\u201c", '"')
        .replace("\u201d", '"')
        .replace("\u2018", "'")
        .replace("\u2019", "'")
        .encode("latin-1", errors="replace")
        .decode("latin-1")
    )


class QuotePDF(FPDF):
    def __init__(self):
        super().__init__()
        self.set_auto_page_break(auto=True, margin=20)

    def footer(self):
        self.set_y(-15)
        self.set_font("Helvetica", "I", 8)
        self.set_text_color(150, 150, 150)
        self.cell(0, 10, f"Pagina {self.page_no()}/{{nb}}", align="C")

    def section_header(self, title):
        self.set_font("Helvetica", "B", 11)
        self.set_fill_color(20, 75, 135)
        self.set_text_color(255, 255, 255)
        self.cell(0, 8, f"  {_safe(title)}", fill=True, new_x="LMARGIN", new_y="NEXT")
        self.set_text_color(0, 0, 0)
        self.ln(2)

    def table_header(self, cols):
        """cols: [(label, width), ...]; the last column is right-aligned."""
        self.set_font("Helvetica", "B", 8)
        self.set_fill_color(240, 240, 240)
        for i, (label, width) in enumerate(cols):
            align = "R" if i == len(cols) - 1 else "L"
            self.cell(width, 6, label, border="B", fill=True, align=align)
        self.ln()

    def table_row(self, values, widths):
        self.set_font("Helvetica", "", 9)
        for i, (val, width) in enumerate(zip(values, widths)):
            align = "R" if i == len(widths) - 1 else "L"
            self.cell(width, 5.5, _safe(str(val)), align=align)
        self.ln()

    def total_row(self, label, amount, bold=False):
        self.set_font("Helvetica", "B" if bold else "", 10)
        self.cell(130, 6, _safe(label))
        self.cell(60, 6, _fmt(amount), align="R")
        self.ln()


def generate_quote_pdf(project: dict, pricing: QuotePricing, workshop: dict) -> bytes:
    """
    Render a project quote.

    Args:
        project: client_name, project_name, quote_mode, specific_conditions, created_at
        pricing: QuotePricing from pricing_engine.price_project
        workshop: name, address, phone, tax_id, conditions

    Returns:
        PDF bytes
    """
    pdf = QuotePDF()
    pdf.alias_nb_pages()
    pdf.add_page()
    pw = pdf.w - pdf.l_margin - pdf.r_margin

    # Header
    workshop_name = workshop.get("name") or "Cotizacion"
    pdf.set_font("Helvetica", "B", 20)
    pdf.cell(0, 10, _safe(workshop_name), new_x="LMARGIN", new_y="NEXT")

    info = " | ".join(p for p in [workshop.get("address"), workshop.get("phone"), workshop.get("tax_id")] if p)
    if info:
        pdf.set_font("Helvetica", "", 9)
        pdf.set_text_color(100, 100, 100)
        pdf.cell(0, 5, _safe(info), new_x="LMARGIN", new_y="NEXT")
        pdf.set_text_color(0, 0, 0)
    pdf.ln(4)

    created = project.get("created_at") or datetime.utcnow()
    pdf.set_font("Helvetica", "B", 14)
    pdf.cell(0, 8, _safe(f"COTIZACION: {project.get('project_name', '')}"), new_x="LMARGIN", new_y="NEXT")
    pdf.set_font("Helvetica", "", 10)
    pdf.cell(0, 5, _safe(f"Cliente: {project.get('client_name', '')}"), new_x="LMARGIN", new_y="NEXT")
    pdf.cell(0, 5, f"Fecha: {created.strftime('%d/%m/%Y')}", new_x="LMARGIN", new_y="NEXT")
    pdf.ln(6)

    # Garments
    size_cols = [("Talla", 130), ("Precio unitario", 60)]
    for item in pricing.line_items:
        title = item.name or "Prenda"
        pdf.section_header(f"{title} (x{item.quantity})")
        pdf.table_header(size_cols)
        selected = [entry for entry in item.size_price_table if entry.is_selected]
        if not selected:
            pdf.table_row(["Precio base", _fmt(item.base_price_per_unit)], [c[1] for c in size_cols])
        for entry in selected:
            pdf.table_row([entry.size, _fmt(entry.price)], [c[1] for c in size_cols])
        pdf.ln(4)

    # Totals
    totals = pricing.totals
    pdf.section_header("TOTALES")
    if totals.is_estimate:
        pdf.total_row("Total estimado", totals.estimated_grand_total, bold=True)
        pdf.set_font("Helvetica", "I", 8)
        pdf.set_text_color(100, 100, 100)
        pdf.multi_cell(
            pw, 4,
            "Cotizacion individual: el total final depende de las tallas que elija cada persona.",
        )
        pdf.set_text_color(0, 0, 0)
    else:
        pdf.total_row(f"Impuestos ({pricing.tax_percent:g}%)", totals.total_tax)
        pdf.ln(1)
        pdf.set_fill_color(20, 75, 135)
        pdf.set_text_color(255, 255, 255)
        pdf.set_font("Helvetica", "B", 13)
        pdf.cell(130, 10, "  TOTAL", fill=True)
        pdf.cell(60, 10, f"{_fmt(totals.grand_total)}  ", fill=True, align="R")
        pdf.set_text_color(0, 0, 0)
        pdf.ln(12)
    pdf.ln(4)

    # Conditions
    conditions = SpecificConditions.model_validate(project.get("specific_conditions") or {})
    lines = [
        f"{label}: {getattr(conditions, field)}"
        for field, label in CONDITION_LABELS
        if getattr(conditions, field)
    ]
    if lines or workshop.get("conditions"):
        pdf.section_header("CONDICIONES")
        pdf.set_font("Helvetica", "", 9)
        for line in lines:
            pdf.set_x(pdf.l_margin)
            pdf.cell(pw, 5, _safe(f"  - {line}"), new_x="LMARGIN", new_y="NEXT")
        if workshop.get("conditions"):
            pdf.ln(2)
            pdf.set_x(pdf.l_margin)
            pdf.multi_cell(pw, 4.5, _safe(workshop["conditions"]))

    return bytes(pdf.output())
