"""
Category catalogue.

The transaction form offers these categories, and the cash-flow
statement groups them under its operating headings. Depreciation,
financing and capex categories sit outside the operating groups so the
statement can compute EBITDA, EBIT and the final net flow.
"""

from vela_ledger.models.cash_flow import CategoryGroup

INCOME_CATEGORIES = [
    "Instalaciones completas",
    "Mensualidades del sistema",
    "Talleres o capacitaciones",
    "Creación de páginas",
    "Hosting y mantenimiento",
    "Servicios de branding o redes sociales",
    "Colaboraciones externas",
    "Comisiones por referidos o integraciones",
    "Reembolsos o recuperaciones",
    "Bonos o incentivos recibidos",
]

EXPENSE_CATEGORIES = [
    "Hosting, dominios, licencias de software",
    "Sueldos o comisiones del equipo",
    "Honorarios de programadores o diseñadores externos",
    "Campañas pagadas",
    "Material gráfico o contenido audiovisual",
    "Contabilidad, facturación y herramientas financieras",
    "Internet, telefonía y servicios básicos",
    "Viajes, comidas de trabajo, eventos",
    "Papelería, mantenimiento o compras menores",
    "IVA, ISR y retenciones",
    "Cuotas y trámites legales",
]

# Expense category that hides the "VAT included" switch on the form
TAX_CATEGORY = "IVA, ISR y retenciones"

DEPRECIATION_CATEGORIES = [
    "Depreciaciones y amortizaciones",
]

FINANCING_CATEGORIES = [
    "Préstamos recibidos",
    "Aportaciones de socios",
    "Pago de préstamos",
    "Intereses pagados",
]

CAPEX_CATEGORIES = [
    "Compra de equipo",
    "Inversiones en activos",
]

INCOME_GROUPS = [
    CategoryGroup(
        name="Ventas de servicios CRM",
        categories=[
            "Instalaciones completas",
            "Mensualidades del sistema",
            "Talleres o capacitaciones",
        ],
    ),
    CategoryGroup(
        name="Desarrollo web y branding",
        categories=[
            "Creación de páginas",
            "Hosting y mantenimiento",
            "Servicios de branding o redes sociales",
        ],
    ),
    CategoryGroup(
        name="Proyectos especiales y comisiones",
        categories=[
            "Colaboraciones externas",
            "Comisiones por referidos o integraciones",
        ],
    ),
    CategoryGroup(
        name="Otros ingresos",
        categories=[
            "Reembolsos o recuperaciones",
            "Bonos o incentivos recibidos",
        ],
    ),
]

EXPENSE_GROUPS = [
    CategoryGroup(
        name="Costo de ventas / servicios",
        categories=[
            "Honorarios de programadores o diseñadores externos",
            "Hosting, dominios, licencias de software",
        ],
    ),
    CategoryGroup(
        name="Gastos de administración",
        categories=[
            "Sueldos o comisiones del equipo",
            "Contabilidad, facturación y herramientas financieras",
            "Internet, telefonía y servicios básicos",
            "Viajes, comidas de trabajo, eventos",
            "Papelería, mantenimiento o compras menores",
            "Cuotas y trámites legales",
        ],
    ),
    CategoryGroup(
        name="Gastos de marketing",
        categories=[
            "Campañas pagadas",
            "Material gráfico o contenido audiovisual",
        ],
    ),
    CategoryGroup(
        name="Impuestos",
        categories=[TAX_CATEGORY],
    ),
]


def categories_for(transaction_type: str) -> list[str]:
    """Options of the category select for a transaction type."""
    if transaction_type == "income":
        return INCOME_CATEGORIES + FINANCING_CATEGORIES[:2]
    if transaction_type == "expense":
        return (
            EXPENSE_CATEGORIES
            + DEPRECIATION_CATEGORIES
            + FINANCING_CATEGORIES[2:]
            + CAPEX_CATEGORIES
        )
    return []
